"""
Verification Service - Main Entry Point

Loads the face models once, then serves the enrollment and live comparison
HTTP API.
"""

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from .app import create_app
from .config import load_config
from .errors import InitializationError
from .logging_config import setup_logging, get_logger
from .provider import InsightFaceProvider

logger = get_logger(__name__)


def _load_local_env() -> None:
    """Load environment variables from verification_service/.env if present."""
    env_path = Path(__file__).resolve().parent / '.env'
    if not env_path.exists():
        return

    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, value = line.split('=', 1)
        os.environ.setdefault(key.strip(), value.strip())


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Verification Service - Live Face Comparison'
    )
    parser.add_argument('--host', type=str, help='Bind address (or set HTTP_HOST)')
    parser.add_argument('--port', type=int, help='HTTP port (or set HTTP_PORT)')
    parser.add_argument(
        '--camera-source',
        type=str,
        help='"push", a device index, or a stream URL (or set CAMERA_SOURCE)'
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    return parser.parse_args()


def main() -> None:
    """Main entry point."""
    _load_local_env()
    args = parse_args()

    config = load_config()
    overrides = {}
    if args.host:
        overrides['http_host'] = args.host
    if args.port:
        overrides['http_port'] = args.port
    if args.camera_source:
        overrides['camera_source'] = args.camera_source
    if args.debug:
        overrides['debug_mode'] = True
    if overrides:
        config = replace(config, **overrides)

    setup_logging(config.service_name, config.debug_mode)

    logger.info('=' * 60)
    logger.info('Verification Service')
    logger.info('=' * 60)
    logger.info(f'Camera source: {config.camera_source}')
    logger.info(f'Hold duration: {config.hold_duration_seconds}s')
    logger.info(f'Model: {config.insightface_model}')
    logger.info('=' * 60)

    provider = InsightFaceProvider(config)
    try:
        provider.initialize()
    except InitializationError as e:
        logger.error(f'Fatal error: {e}', exc_info=True)
        sys.exit(1)

    app = create_app(config, provider)

    try:
        app.run(
            host=config.http_host,
            port=config.http_port,
            threaded=True,
            debug=False,
            use_reloader=False
        )
    except KeyboardInterrupt:
        logger.info('Received keyboard interrupt, shutting down...')
    finally:
        app.extensions['verification']['session'].stop()


if __name__ == '__main__':
    main()
