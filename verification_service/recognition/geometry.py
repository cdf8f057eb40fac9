"""
Geometric positioning gate.

Checks whether a face outline lies inside a target ellipse centred in the
frame. Every sampled contour point must be inside; there is no majority
vote.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

# Face contour of the 106-point 2D landmark set (jaw line, ear to ear)
FACE_CONTOUR_INDICES: Sequence[int] = tuple(range(33))


@dataclass(frozen=True)
class TargetEllipse:
    """Target region in pixel space."""
    cx: float
    cy: float
    rx: float
    ry: float

    @classmethod
    def for_frame(
        cls,
        width: int,
        height: int,
        rx_ratio: float = 0.15,
        ry_ratio: float = 0.4
    ) -> 'TargetEllipse':
        """Ellipse centred in a frame, radii relative to frame size."""
        return cls(
            cx=width / 2.0,
            cy=height / 2.0,
            rx=width * rx_ratio,
            ry=height * ry_ratio,
        )

    def normalized_distance(self, points_px: np.ndarray) -> np.ndarray:
        """((x-cx)/rx)^2 + ((y-cy)/ry)^2 for each (x, y) row."""
        dx = (points_px[:, 0] - self.cx) / self.rx
        dy = (points_px[:, 1] - self.cy) / self.ry
        return dx * dx + dy * dy


def is_face_in_position(
    landmarks: Optional[np.ndarray],
    ellipse: TargetEllipse,
    frame_width: int,
    frame_height: int,
    tolerance: float = 1.2,
    indices: Sequence[int] = FACE_CONTOUR_INDICES
) -> bool:
    """
    Check if all face contour points fall inside the target ellipse.

    Args:
        landmarks: (N, 2) landmark points normalized to [0, 1]
        ellipse: Target region in pixel space
        frame_width: Frame width in pixels
        frame_height: Frame height in pixels
        tolerance: Maximum normalized distance for a point to count as inside
        indices: Ordered landmark indices outlining the face

    Returns:
        True only if every sampled point is inside
    """
    if landmarks is None or len(indices) == 0:
        return False

    points = np.asarray(landmarks, dtype=np.float64)
    if points.ndim != 2 or points.shape[0] <= max(indices):
        return False

    sampled = points[list(indices), :2]
    points_px = sampled * np.array([frame_width, frame_height], dtype=np.float64)

    distances = ellipse.normalized_distance(points_px)
    return bool(np.all(distances <= tolerance))
