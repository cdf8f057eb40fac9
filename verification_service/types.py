"""
Shared data types.

Detections are produced fresh per inference call; FrameResult is the
per-cycle emission consumed by the renderer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class RunningMode(str, Enum):
    """Inference mode of the model provider."""
    IMAGE = 'IMAGE'
    VIDEO = 'VIDEO'


class ProgressState(str, Enum):
    IDLE = 'idle'
    ACCUMULATING = 'accumulating'
    COMPLETE = 'complete'


@dataclass
class Detection:
    """
    A single detected face.

    Bounding box is in pixel space (origin x/y, width, height).
    Landmarks, if present, are an (N, 2) array of points normalized to
    [0, 1] frame coordinates.
    """
    x: float
    y: float
    width: float
    height: float
    score: float
    landmarks: Optional[np.ndarray] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x': float(self.x),
            'y': float(self.y),
            'width': float(self.width),
            'height': float(self.height),
            'score': float(self.score),
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    state: ProgressState
    progress: float
    in_position: bool
    multiple_faces: bool


@dataclass
class FrameResult:
    """Renderer emission for one processed frame."""
    timestamp_ms: float
    face_count: int
    progress: ProgressSnapshot
    similarity_score: Optional[float] = None
    detections: List[Detection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestampMs': self.timestamp_ms,
            'faceCount': self.face_count,
            'state': self.progress.state.value,
            'progressFraction': self.progress.progress,
            'inPosition': self.progress.in_position,
            'multipleFaces': self.progress.multiple_faces,
            'similarityScore': self.similarity_score,
            'detections': [d.to_dict() for d in self.detections],
        }
