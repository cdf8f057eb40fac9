"""
Flask application for HTTP API.

Provides:
- GET /health: Service health check
- POST /enroll, DELETE /enroll: Reference enrollment
- POST /session/start, POST /session/stop: Live session control
- POST /session/frame: Browser-pushed video frames
- GET /session/state: Latest per-frame result for the renderer
"""

import math
import time
from typing import Optional

import requests
from flask import Flask, jsonify, request
from flask_cors import CORS

from .camera import CameraSource, FrameSource, PushFrameSource
from .config import Config
from .enrollment import EnrollmentStore
from .errors import (
    CameraAccessError,
    ImageDecodeError,
    InitializationError,
    MultipleFacesDetected,
    NoFaceDetected,
)
from .logging_config import get_logger
from .provider import ModelProvider
from .session import ComparisonSession

logger = get_logger(__name__)


def build_frame_source(config: Config, push_source: PushFrameSource) -> FrameSource:
    """Pick the frame source named by ``config.camera_source``."""
    if config.camera_source.strip().lower() == 'push':
        return push_source
    return CameraSource(config.camera_source, max_retries=config.camera_retries)


def create_app(
    config: Config,
    provider: ModelProvider,
    store: Optional[EnrollmentStore] = None,
    session: Optional[ComparisonSession] = None,
    push_source: Optional[PushFrameSource] = None
) -> Flask:
    """
    Create and configure Flask application.

    Args:
        config: Service configuration
        provider: Initialized (or failed) model provider
        store: Enrollment store (created if omitted)
        session: Live session (created if omitted)
        push_source: Buffer for browser-pushed frames (created if omitted)

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_mb * 1024 * 1024
    CORS(app)

    store = store or EnrollmentStore(provider, config)
    session = session or ComparisonSession(provider, store, config)
    push_source = push_source or PushFrameSource()
    started_at = time.monotonic()

    app.extensions['verification'] = {
        'provider': provider,
        'store': store,
        'session': session,
        'push_source': push_source,
    }

    def error(message: str, status: int, kind: Optional[str] = None):
        body = {'error': message}
        if kind:
            body['type'] = kind
        return jsonify(body), status

    @app.route('/health')
    def health():
        """Health check endpoint."""
        return jsonify({
            'status': 'ok' if provider.is_ready else 'degraded',
            'modelsReady': provider.is_ready,
            'enrolled': store.has_reference,
            'sessionActive': session.is_active,
            'service': config.service_name,
            'uptimeSeconds': round(time.monotonic() - started_at, 1),
        })

    @app.route('/enroll', methods=['POST'])
    def enroll():
        """Enroll the reference face from an uploaded file or an image URL."""
        try:
            upload = request.files.get('image')
            if upload is not None:
                embedding = store.enroll_bytes(upload.read())
            else:
                payload = request.get_json(silent=True) or {}
                url = payload.get('url')
                if not url:
                    return error('Provide an "image" file or a JSON "url"', 400)
                embedding = store.enroll_url(url)
        except NoFaceDetected as e:
            return error(str(e), 422, 'NoFaceDetected')
        except MultipleFacesDetected as e:
            return error(str(e), 422, 'MultipleFacesDetected')
        except ImageDecodeError as e:
            return error(str(e), 400, 'ImageDecodeError')
        except InitializationError as e:
            return error(str(e), 503, 'InitializationError')
        except requests.exceptions.RequestException as e:
            logger.error(f'Enrollment download failed: {e}')
            return error(f'Failed to download image: {e}', 502)

        return jsonify({'enrolled': True, 'dimension': int(embedding.shape[0])})

    @app.route('/enroll', methods=['DELETE'])
    def clear_enrollment():
        store.clear()
        return jsonify({'enrolled': False})

    @app.route('/session/start', methods=['POST'])
    def start_session():
        source = build_frame_source(config, push_source)
        try:
            session_id = session.start(source)
        except InitializationError as e:
            return error(str(e), 503, 'InitializationError')
        except CameraAccessError as e:
            return error(str(e), 503, 'CameraAccessError')
        return jsonify({'sessionId': session_id, 'active': True})

    @app.route('/session/stop', methods=['POST'])
    def stop_session():
        session.stop()
        return jsonify({'active': False})

    @app.route('/session/frame', methods=['POST'])
    def push_frame():
        """Accept one browser frame with its video clock timestamp (ms)."""
        upload = request.files.get('frame')
        if upload is None:
            return error('Missing "frame" file', 400)
        try:
            timestamp_ms = float(request.form.get('timestamp', ''))
        except ValueError:
            return error('Missing or invalid "timestamp"', 400)
        if not math.isfinite(timestamp_ms):
            return error('"timestamp" must be a finite number', 400)

        if not push_source.is_open:
            return error('No active push session', 409)

        try:
            accepted = push_source.push_encoded(upload.read(), timestamp_ms)
        except ImageDecodeError as e:
            return error(str(e), 400, 'ImageDecodeError')

        return jsonify({'accepted': accepted})

    @app.route('/session/state')
    def session_state():
        """Latest renderer emission."""
        result = session.latest_result
        return jsonify({
            'active': session.is_active,
            'sessionId': session.session_id,
            'result': result.to_dict() if result is not None else None,
        })

    return app
