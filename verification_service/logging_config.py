"""
Logging configuration for Verification Service.

Every record is tagged with the service name and, when emitted on behalf of
a live comparison session, with that session's identifier. The session is
bound per thread of execution with session_context(); records logged outside
any session carry "-".
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_SESSION = '-'

_current_session: ContextVar[str] = ContextVar('session_id', default=NO_SESSION)


def current_session_id() -> str:
    return _current_session.get()


@contextmanager
def session_context(session_id: Optional[str]) -> Iterator[None]:
    """Tag records logged inside the block with ``session_id``."""
    token = _current_session.set(session_id or NO_SESSION)
    try:
        yield
    finally:
        _current_session.reset(token)


class ServiceContextFilter(logging.Filter):
    """Stamp records with the service name and the bound session."""

    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = self.service_name
        record.session_id = _current_session.get()
        return True


def setup_logging(service_name: str, debug: bool = False) -> None:
    """
    Configure logging for the service.

    Args:
        service_name: Service instance name for log context
        debug: Enable debug level logging
    """
    level = logging.DEBUG if debug else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s [%(levelname)s] [%(service)s] [session=%(session_id)s] %(name)s: %(message)s'
    ))
    console_handler.addFilter(ServiceContextFilter(service_name))

    root_logger.addHandler(console_handler)

    # Flask's request log is noisy with frame uploads
    logging.getLogger('werkzeug').setLevel(logging.WARNING if not debug else logging.INFO)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
