"""Shared fakes for the test suite."""

import threading
from collections import deque
from dataclasses import replace
from typing import List, Optional

import numpy as np
import pytest

from verification_service.camera import FrameSource
from verification_service.config import load_config
from verification_service.provider import ModelProvider
from verification_service.types import Detection, RunningMode

FRAME_W = 640
FRAME_H = 480


def make_config(**overrides):
    base = replace(
        load_config(),
        crop_padding=40,
        grayscale=False,
        hold_duration_seconds=3.0,
        ellipse_rx_ratio=0.15,
        ellipse_ry_ratio=0.4,
        containment_tolerance=1.2,
        error_backoff_seconds=0.01,
        cycle_interval_seconds=0.001,
        camera_source='push',
    )
    return replace(base, **overrides)


def oval_landmarks(scale: float = 0.8, count: int = 106) -> np.ndarray:
    """Normalized landmarks on an ellipse concentric with the target region."""
    theta = np.linspace(0.0, 2 * np.pi, count, endpoint=False)
    x = 0.5 + scale * 0.15 * np.cos(theta)
    y = 0.5 + scale * 0.4 * np.sin(theta)
    return np.stack([x, y], axis=1).astype(np.float32)


def face(scale: float = 0.8, x: float = 280, y: float = 160, size: float = 80) -> Detection:
    return Detection(x=x, y=y, width=size, height=size, score=0.95, landmarks=oval_landmarks(scale))


def blank_frame(value: int = 0) -> np.ndarray:
    return np.full((FRAME_H, FRAME_W, 3), value, dtype=np.uint8)


class FakeProvider(ModelProvider):
    """Scripted provider: returns queued detections, fixed embeddings."""

    def __init__(self, detections: Optional[List[List[Detection]]] = None,
                 embedding: Optional[np.ndarray] = None, ready: bool = True):
        super().__init__()
        self.script = deque(detections or [])
        self.default_detections: List[Detection] = []
        self.embedding = np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float32) if embedding is None else embedding
        self.detect_calls = 0
        self.embed_calls = 0
        self.modes_seen: List[RunningMode] = []
        self.mode_switches: List[RunningMode] = []
        self.fail_load = False
        self.fail_next_detect: Optional[Exception] = None
        self.detect_gate: Optional[threading.Event] = None
        self.detect_started = threading.Event()
        if ready:
            self.initialize()

    def _load(self):
        if self.fail_load:
            raise RuntimeError('model file missing')

    def _apply_mode(self, mode):
        self.mode_switches.append(mode)

    def _detect(self, image):
        self.detect_calls += 1
        self.modes_seen.append(self.mode)
        self.detect_started.set()
        if self.detect_gate is not None:
            self.detect_gate.wait(5)
        if self.fail_next_detect is not None:
            error, self.fail_next_detect = self.fail_next_detect, None
            raise error
        if self.script:
            return self.script.popleft()
        return list(self.default_detections)

    def _embed(self, image):
        self.embed_calls += 1
        return np.array(self.embedding, dtype=np.float32)


class ListFrameSource(FrameSource):
    """Replays (frame, timestamp_ms) pairs, then keeps returning the last one."""

    def __init__(self, timestamps, fail_acquire: Optional[Exception] = None):
        self.frames = deque((blank_frame(), float(ts)) for ts in timestamps)
        self.last = None
        self.fail_acquire = fail_acquire
        self.acquired = 0
        self.released = 0
        self._open = False

    def acquire(self):
        if self.fail_acquire is not None:
            raise self.fail_acquire
        self.acquired += 1
        self._open = True
        return self._next_lease()

    def read(self):
        if not self._open:
            return None
        if self.frames:
            self.last = self.frames.popleft()
        return self.last

    def release(self, lease=None):
        if self._is_stale(lease):
            return
        self.released += 1
        self._open = False

    @property
    def is_open(self):
        return self._open


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def provider():
    return FakeProvider()
