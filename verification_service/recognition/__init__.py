"""
Recognition algorithms package.

Contains modules for:
- Face cropping and grayscale normalization
- Positioning gate (target ellipse containment)
- Positioning progress tracking
- Embedding comparison
"""

from .cropping import crop_face, to_grayscale
from .geometry import FACE_CONTOUR_INDICES, TargetEllipse, is_face_in_position
from .progress import ProgressTracker
from .matching import cosine_similarity

__all__ = [
    'crop_face',
    'to_grayscale',
    'FACE_CONTOUR_INDICES',
    'TargetEllipse',
    'is_face_in_position',
    'ProgressTracker',
    'cosine_similarity',
]
