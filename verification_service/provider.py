"""
Model provider module.

Wraps face detection and embedding behind a small interface with two
inference modes (IMAGE for uploads, VIDEO for live frames). All inference
and mode switches share one lock, so a mode switch always completes before
the next request and requests in different modes never interleave.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, List, Optional

import numpy as np

from .config import Config
from .errors import InitializationError, TransientInferenceError
from .logging_config import get_logger
from .types import Detection, RunningMode

logger = get_logger(__name__)


class ModelProvider(ABC):
    """Detector + embedder capability with explicit running modes."""

    def __init__(self):
        self._lock = threading.RLock()
        self._ready = False
        self.mode = RunningMode.IMAGE

    @property
    def is_ready(self) -> bool:
        return self._ready

    def initialize(self) -> None:
        """
        Load the underlying models (one-time setup).

        Raises:
            InitializationError: If the models cannot be loaded
        """
        with self._lock:
            if self._ready:
                return
            try:
                self._load()
                self._apply_mode(self.mode)
            except InitializationError:
                raise
            except Exception as e:
                raise InitializationError(f'Failed to load face models: {e}') from e
            self._ready = True

    def set_mode(self, mode: RunningMode) -> None:
        """Switch inference mode; blocks until no request is in flight."""
        with self._lock:
            self._require_ready()
            if mode == self.mode:
                return
            logger.debug(f'Switching provider mode {self.mode.value} -> {mode.value}')
            self._apply_mode(mode)
            self.mode = mode

    @contextmanager
    def use_mode(self, mode: RunningMode) -> Iterator['ModelProvider']:
        """Hold the provider in ``mode`` for the duration of the block."""
        with self._lock:
            self.set_mode(mode)
            yield self

    def detect(self, image: np.ndarray) -> List[Detection]:
        with self._lock:
            self._require_ready()
            return self._guarded(self._detect, image)

    def embed(self, image: np.ndarray) -> np.ndarray:
        with self._lock:
            self._require_ready()
            return self._guarded(self._embed, image)

    def _require_ready(self) -> None:
        if not self._ready:
            raise InitializationError('Model provider is not initialized')

    @staticmethod
    def _guarded(func, image):
        try:
            return func(image)
        except (InitializationError, TransientInferenceError):
            raise
        except Exception as e:
            raise TransientInferenceError(f'{func.__name__} failed: {e}') from e

    @abstractmethod
    def _load(self) -> None:
        ...

    @abstractmethod
    def _apply_mode(self, mode: RunningMode) -> None:
        ...

    @abstractmethod
    def _detect(self, image: np.ndarray) -> List[Detection]:
        ...

    @abstractmethod
    def _embed(self, image: np.ndarray) -> np.ndarray:
        ...


class InsightFaceProvider(ModelProvider):
    """
    InsightFace-backed provider.

    Uses the detection, 106-point landmark and recognition models of a
    FaceAnalysis pack. Modes differ only in detector input size.
    """

    def __init__(self, config: Config):
        """
        Args:
            config: Service configuration
        """
        super().__init__()
        self.config = config
        self.face_app = None

    def _load(self) -> None:
        from insightface.app import FaceAnalysis

        logger.info(f'Initializing InsightFace ({self.config.insightface_model})...')

        face_app = FaceAnalysis(
            name=self.config.insightface_model,
            allowed_modules=['detection', 'landmark_2d_106', 'recognition'],
            providers=list(self.config.insightface_providers),
        )
        missing = {'detection', 'landmark_2d_106', 'recognition'} - set(face_app.models)
        if missing:
            raise InitializationError(f'Model pack lacks required models: {sorted(missing)}')

        self.face_app = face_app
        logger.info('✅ InsightFace initialized')

    def _det_size(self, mode: RunningMode):
        if mode == RunningMode.VIDEO:
            return self.config.video_det_size
        return self.config.image_det_size

    def _apply_mode(self, mode: RunningMode) -> None:
        det_size = self._det_size(mode)
        self.face_app.prepare(
            ctx_id=0,
            det_thresh=self.config.det_thresh,
            det_size=det_size,
        )
        logger.debug(f'Detector prepared for {mode.value} (det_size={det_size})')

    def _detect(self, image: np.ndarray) -> List[Detection]:
        from insightface.app.common import Face

        height, width = image.shape[:2]
        bboxes, kpss = self.face_app.det_model.detect(image, max_num=0, metric='default')
        landmark_model = self.face_app.models['landmark_2d_106']

        detections: List[Detection] = []
        for i in range(bboxes.shape[0]):
            x1, y1, x2, y2, score = bboxes[i, :5]
            face = Face(
                bbox=bboxes[i, 0:4],
                kps=kpss[i] if kpss is not None else None,
                det_score=score,
            )
            landmark_model.get(image, face)
            landmarks = _normalize_points(face.get('landmark_2d_106'), width, height)

            detections.append(Detection(
                x=float(x1),
                y=float(y1),
                width=float(x2 - x1),
                height=float(y2 - y1),
                score=float(score),
                landmarks=landmarks,
            ))
        return detections

    def _embed(self, image: np.ndarray) -> np.ndarray:
        rec_model = self.face_app.models['recognition']
        feat = rec_model.get_feat(image)
        return np.asarray(feat, dtype=np.float32).reshape(-1)


def _normalize_points(points: Optional[np.ndarray], width: int, height: int) -> Optional[np.ndarray]:
    """Pixel landmark coordinates -> [0, 1] frame coordinates."""
    if points is None:
        return None
    points = np.asarray(points, dtype=np.float32)[:, :2]
    return points / np.array([width, height], dtype=np.float32)
