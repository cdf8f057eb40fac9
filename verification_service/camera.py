"""
Frame source module.

A frame source is the single stream resource owned by a live session:
- PushFrameSource: frames uploaded by the browser over HTTP
- CameraSource: local webcam or network stream opened with OpenCV

Both return (frame, timestamp_ms) pairs. The timestamp is the source's own
clock and is what the scheduler uses to skip duplicate frames.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from .errors import CameraAccessError, ImageDecodeError
from .logging_config import get_logger

logger = get_logger(__name__)

Frame = Tuple[np.ndarray, float]


class FrameSource(ABC):
    """
    Camera interface consumed by a live session.

    acquire() hands out a lease number. release(lease) only closes the stream
    while that lease is still the latest one; release() without a lease
    always closes it.
    """

    _lease = 0

    @abstractmethod
    def acquire(self) -> int:
        """Open the stream and return its lease. Raises CameraAccessError on failure."""

    @abstractmethod
    def read(self) -> Optional[Frame]:
        """Return the current (frame, timestamp_ms), or None if unavailable."""

    @abstractmethod
    def release(self, lease: Optional[int] = None) -> None:
        """Stop all capture tracks."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        ...

    def _next_lease(self) -> int:
        self._lease += 1
        return self._lease

    def _is_stale(self, lease: Optional[int]) -> bool:
        if lease is not None and lease != self._lease:
            logger.debug(f'Ignoring release of superseded lease {lease} (current {self._lease})')
            return True
        return False


class PushFrameSource(FrameSource):
    """
    Latest-frame buffer filled by the browser.

    read() keeps returning the latest frame until a newer one is pushed, so
    repeated reads see the same timestamp.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._timestamp_ms: float = -1.0
        self._open = False

    def acquire(self) -> int:
        with self._lock:
            self._frame = None
            self._timestamp_ms = -1.0
            self._open = True
            lease = self._next_lease()
        logger.info('Push frame source ready')
        return lease

    def push(self, frame: np.ndarray, timestamp_ms: float) -> bool:
        """
        Store a new frame (thread-safe).

        Args:
            frame: Decoded BGR frame
            timestamp_ms: Browser video clock in milliseconds

        Returns:
            False if the source is closed or the timestamp went backwards
        """
        with self._lock:
            if not self._open:
                return False
            if timestamp_ms < self._timestamp_ms:
                logger.debug(f'Dropping out-of-order frame ({timestamp_ms} < {self._timestamp_ms})')
                return False
            self._frame = frame
            self._timestamp_ms = float(timestamp_ms)
            return True

    def push_encoded(self, data: bytes, timestamp_ms: float) -> bool:
        return self.push(decode_image(data), timestamp_ms)

    def read(self) -> Optional[Frame]:
        with self._lock:
            if not self._open or self._frame is None:
                return None
            return self._frame, self._timestamp_ms

    def release(self, lease: Optional[int] = None) -> None:
        with self._lock:
            if self._is_stale(lease):
                return
            self._open = False
            self._frame = None
        logger.info('Push frame source released')

    @property
    def is_open(self) -> bool:
        return self._open


class CameraSource(FrameSource):
    """OpenCV capture over a device index or stream URL."""

    def __init__(self, source: Union[int, str], max_retries: int = 3):
        """
        Args:
            source: Device index, or RTSP/HTTP URL
            max_retries: Connection attempts before giving up
        """
        self.source = parse_camera_source(source)
        self.max_retries = max(1, max_retries)
        self._capture: Optional[cv2.VideoCapture] = None

    def acquire(self) -> int:
        """
        Connect to camera with retry logic.

        Returns:
            Lease for this connection

        Raises:
            CameraAccessError: If connection fails after max_retries
        """
        if self._capture is not None:
            self.release()

        label = self.source if isinstance(self.source, int) else _sanitize_url(self.source)

        for attempt in range(self.max_retries):
            logger.info(f'Connecting to camera {label} (attempt {attempt + 1}/{self.max_retries})...')

            capture = cv2.VideoCapture(self.source)
            if capture.isOpened():
                ret, frame = capture.read()
                if ret and frame is not None:
                    logger.info(f'✅ Camera connected, frame size: {frame.shape[1]}x{frame.shape[0]}')
                    self._capture = capture
                    return self._next_lease()
                logger.warning('Camera opened but failed to read frame')
            else:
                logger.warning('Failed to open camera')
            capture.release()

            # Exponential backoff
            if attempt < self.max_retries - 1:
                wait_time = 2 ** attempt
                logger.info(f'Retrying in {wait_time} seconds...')
                time.sleep(wait_time)

        raise CameraAccessError(f'Cannot connect to camera {label} after {self.max_retries} attempts')

    def read(self) -> Optional[Frame]:
        if self._capture is None:
            return None

        ret, frame = self._capture.read()
        if not ret or frame is None:
            return None

        timestamp_ms = self._capture.get(cv2.CAP_PROP_POS_MSEC)
        if not timestamp_ms or timestamp_ms <= 0:
            # Live devices often report no position
            timestamp_ms = time.monotonic() * 1000.0
        return frame, float(timestamp_ms)

    def release(self, lease: Optional[int] = None) -> None:
        if self._capture is None or self._is_stale(lease):
            return
        try:
            self._capture.release()
        except cv2.error as e:
            logger.warning(f'Error releasing camera: {e}')
        self._capture = None
        logger.info('Camera released')

    @property
    def is_open(self) -> bool:
        return self._capture is not None


def parse_camera_source(source: Union[int, str]) -> Union[int, str]:
    """Device indices become ints; anything else is treated as a URL."""
    if isinstance(source, int):
        return source
    source = source.strip()
    return int(source) if source.isdigit() else source


def decode_image(data: bytes) -> np.ndarray:
    """
    Decode encoded image bytes (JPEG, PNG, ...) into a BGR array.

    Raises:
        ImageDecodeError: If the payload is not an image
    """
    if not data:
        raise ImageDecodeError('Empty image payload')
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ImageDecodeError('Failed to decode image')
    return image


def _sanitize_url(url: str) -> str:
    """
    Remove password from URL for logging.

    Args:
        url: URL with potential password

    Returns:
        Sanitized URL
    """
    if '://' not in url:
        return url

    protocol, rest = url.split('://', 1)
    if '@' not in rest:
        return url

    creds, host = rest.rsplit('@', 1)
    username = creds.split(':', 1)[0]
    return f'{protocol}://{username}@{host}'
