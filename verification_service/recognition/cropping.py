"""
Face cropping module.

Extracts a padded region around a detected face and optionally normalizes
it to grayscale before embedding.

Edge policy: the sampling window is clamped to the source image and the
part of the padded window outside the source is zero-filled, so the output
always has the full padded size.
"""

import cv2
import numpy as np
from ..types import Detection

# BGR order (OpenCV): Y = 0.299R + 0.587G + 0.114B
_LUMA_WEIGHTS_BGR = np.array([0.114, 0.587, 0.299], dtype=np.float64)


def crop_face(image: np.ndarray, detection: Detection, padding: int) -> np.ndarray:
    """
    Crop a face with fixed padding on all four sides.

    Args:
        image: Source image (H, W) or (H, W, C)
        detection: Detection whose bounding box is cropped
        padding: Pixels added on each side

    Returns:
        Crop of shape (height + 2 * padding, width + 2 * padding[, C])
    """
    x0 = int(round(detection.x)) - padding
    y0 = int(round(detection.y)) - padding
    out_w = max(int(round(detection.width)) + 2 * padding, 0)
    out_h = max(int(round(detection.height)) + 2 * padding, 0)
    x1 = x0 + out_w
    y1 = y0 + out_h

    src_h, src_w = image.shape[:2]

    # Clamp sampling region to source bounds
    cx0, cy0 = max(x0, 0), max(y0, 0)
    cx1, cy1 = min(x1, src_w), min(y1, src_h)

    if cx1 <= cx0 or cy1 <= cy0:
        return np.zeros((out_h, out_w) + image.shape[2:], dtype=image.dtype)

    region = image[cy0:cy1, cx0:cx1]
    if (cx0, cy0, cx1, cy1) == (x0, y0, x1, y1):
        return region.copy()

    return cv2.copyMakeBorder(
        region,
        top=cy0 - y0,
        bottom=y1 - cy1,
        left=cx0 - x0,
        right=x1 - cx1,
        borderType=cv2.BORDER_CONSTANT,
        value=[0] * (image.shape[2] if image.ndim == 3 else 1),
    )


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert a BGR(A) image to grayscale, keeping three colour channels.

    Luminance is written back into B, G and R; alpha is left unchanged.
    Applying this twice yields the same pixels as applying it once.

    Args:
        image: BGR or BGRA image

    Returns:
        New image with the same shape and dtype
    """
    if image.ndim != 3 or image.shape[2] < 3:
        return image.copy()

    luma = image[..., :3].astype(np.float64) @ _LUMA_WEIGHTS_BGR

    if np.issubdtype(image.dtype, np.integer):
        info = np.iinfo(image.dtype)
        luma = np.clip(np.rint(luma), info.min, info.max)

    result = image.copy()
    result[..., :3] = luma.astype(image.dtype)[..., np.newaxis]
    return result
