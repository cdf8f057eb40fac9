"""
Enrollment module.

Builds the single reference embedding from a still image:
detect (IMAGE mode) -> exactly one face -> crop -> optional grayscale ->
embed -> atomic swap. Failed attempts leave the stored reference untouched.
"""

import threading
from typing import Optional

import numpy as np
import requests

from .camera import decode_image
from .config import Config
from .errors import MultipleFacesDetected, NoFaceDetected
from .logging_config import get_logger
from .provider import ModelProvider
from .recognition.cropping import crop_face, to_grayscale
from .types import RunningMode

logger = get_logger(__name__)


class EnrollmentStore:
    """
    Holds zero or one reference embedding.

    The stored array is read-only and is swapped as a whole, so a reader
    never sees a half-updated embedding.
    """

    def __init__(self, provider: ModelProvider, config: Config):
        """
        Args:
            provider: Model provider used for detection and embedding
            config: Service configuration
        """
        self.provider = provider
        self.config = config
        self._lock = threading.Lock()
        self._reference: Optional[np.ndarray] = None

    @property
    def reference(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._reference

    @property
    def has_reference(self) -> bool:
        return self.reference is not None

    def clear(self) -> None:
        with self._lock:
            self._reference = None
        logger.info('Reference embedding cleared')

    def enroll(self, image: np.ndarray) -> np.ndarray:
        """
        Enroll a reference face from an image.

        Args:
            image: BGR image containing exactly one face

        Returns:
            The new reference embedding

        Raises:
            NoFaceDetected: If no face is found
            MultipleFacesDetected: If more than one face is found
            InitializationError: If the provider is not initialized
        """
        with self.provider.use_mode(RunningMode.IMAGE):
            detections = self.provider.detect(image)

            if not detections:
                logger.warning('Enrollment rejected: no face detected')
                raise NoFaceDetected('No face detected in the uploaded image')
            if len(detections) > 1:
                logger.warning(f'Enrollment rejected: {len(detections)} faces detected')
                raise MultipleFacesDetected(len(detections))

            face = crop_face(image, detections[0], self.config.crop_padding)
            if self.config.grayscale:
                face = to_grayscale(face)

            embedding = np.array(self.provider.embed(face), dtype=np.float32).reshape(-1)

        embedding.setflags(write=False)
        with self._lock:
            self._reference = embedding

        logger.info(
            f'✅ Reference enrolled (dim={embedding.shape[0]}, '
            f'det_score={detections[0].score:.2f})'
        )
        return embedding

    def enroll_bytes(self, data: bytes) -> np.ndarray:
        """Decode an uploaded image and enroll it."""
        return self.enroll(decode_image(data))

    def enroll_url(self, url: str) -> np.ndarray:
        """
        Download an image and enroll it.

        Raises:
            requests.exceptions.RequestException: If the download fails
        """
        logger.info(f'Downloading enrollment image from {url}...')
        response = requests.get(url, timeout=self.config.download_timeout)
        response.raise_for_status()
        return self.enroll_bytes(response.content)
