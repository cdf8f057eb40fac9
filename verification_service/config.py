"""
Configuration module for Verification Service.

Loads configuration from environment variables with sensible defaults.
All settings are immutable after initialization.
"""

import os
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration for Verification Service.

    Service Identity:
        service_name: Name of this service instance (used as log context)
        http_host: Interface the Flask server binds to
        http_port: Port for Flask HTTP server

    Camera Settings:
        camera_source: Frame source - can be:
            - "push" for frames uploaded by the browser
            - Integer (0, 1, 2) for local webcam
            - RTSP/HTTP URL for a network stream
        camera_retries: Connection attempts before CameraAccessError

    Model Provider:
        insightface_model: InsightFace model pack name
        insightface_providers: ONNX Runtime execution providers
        image_det_size: Detector input size in IMAGE mode (uploads)
        video_det_size: Detector input size in VIDEO mode (live frames)
        det_thresh: Minimum detection confidence

    Cropping:
        crop_padding: Pixels added on every side of a face bounding box
        grayscale: Normalize crops to grayscale before embedding

    Positioning:
        hold_duration_seconds: Time a face must stay in position
        ellipse_rx_ratio: Target ellipse x-radius relative to frame width
        ellipse_ry_ratio: Target ellipse y-radius relative to frame height
        containment_tolerance: Max normalized ellipse distance per landmark

    Scheduling:
        error_backoff_seconds: Pause after a failed cycle
        cycle_interval_seconds: Pause between cycles
        stop_timeout_seconds: How long stop() waits for the loop to exit

    System:
        download_timeout: Timeout for enrollment image downloads
        max_upload_mb: Maximum request body size
        debug_mode: Enable debug logging
    """

    # Service
    service_name: str
    http_host: str
    http_port: int

    # Camera
    camera_source: str
    camera_retries: int

    # InsightFace
    insightface_model: str
    insightface_providers: Tuple[str, ...]
    image_det_size: Tuple[int, int]
    video_det_size: Tuple[int, int]
    det_thresh: float

    # Cropping
    crop_padding: int
    grayscale: bool

    # Positioning
    hold_duration_seconds: float
    ellipse_rx_ratio: float
    ellipse_ry_ratio: float
    containment_tolerance: float

    # Scheduling
    error_backoff_seconds: float
    cycle_interval_seconds: float
    stop_timeout_seconds: float

    # System
    download_timeout: float
    max_upload_mb: int
    debug_mode: bool


def _parse_size(raw: str) -> Tuple[int, int]:
    """Parse "640x640" or "640" into a (width, height) tuple."""
    parts = raw.lower().split('x')
    if len(parts) == 1:
        return int(parts[0]), int(parts[0])
    return int(parts[0]), int(parts[1])


def load_config() -> Config:
    """
    Load configuration from environment variables.

    Returns:
        Config: Immutable configuration object
    """
    providers_raw = os.getenv('INSIGHTFACE_PROVIDERS', 'CPUExecutionProvider')

    return Config(
        # Service
        service_name=os.getenv('SERVICE_NAME', 'verification'),
        http_host=os.getenv('HTTP_HOST', '0.0.0.0'),
        http_port=int(os.getenv('HTTP_PORT', '5001')),

        # Camera
        camera_source=os.getenv('CAMERA_SOURCE', 'push'),
        camera_retries=int(os.getenv('CAMERA_RETRIES', '3')),

        # InsightFace
        insightface_model=os.getenv('INSIGHTFACE_MODEL', 'buffalo_l'),
        insightface_providers=tuple(p.strip() for p in providers_raw.split(',') if p.strip()),
        image_det_size=_parse_size(os.getenv('IMAGE_DET_SIZE', '640x640')),
        video_det_size=_parse_size(os.getenv('VIDEO_DET_SIZE', '320x320')),
        det_thresh=float(os.getenv('DET_THRESH', '0.5')),

        # Cropping
        crop_padding=int(os.getenv('CROP_PADDING', '40')),
        grayscale=os.getenv('GRAYSCALE', 'false').lower() == 'true',

        # Positioning
        hold_duration_seconds=float(os.getenv('HOLD_DURATION', '3.0')),
        ellipse_rx_ratio=float(os.getenv('ELLIPSE_RX_RATIO', '0.15')),
        ellipse_ry_ratio=float(os.getenv('ELLIPSE_RY_RATIO', '0.4')),
        containment_tolerance=float(os.getenv('CONTAINMENT_TOLERANCE', '1.2')),

        # Scheduling
        error_backoff_seconds=float(os.getenv('ERROR_BACKOFF', '1.0')),
        cycle_interval_seconds=float(os.getenv('CYCLE_INTERVAL', '0.05')),
        stop_timeout_seconds=float(os.getenv('STOP_TIMEOUT', '5.0')),

        # System
        download_timeout=float(os.getenv('DOWNLOAD_TIMEOUT', '10')),
        max_upload_mb=int(os.getenv('MAX_UPLOAD_MB', '10')),
        debug_mode=os.getenv('DEBUG', 'false').lower() == 'true',
    )
