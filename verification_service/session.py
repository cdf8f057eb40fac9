"""
Live comparison session.

A session owns everything one live comparison needs: the frame source, the
progress tracker, the pipeline and the scheduler thread. It is created by
the caller and passed around explicitly.
"""

import threading
import uuid
from typing import Callable, Optional

from .camera import FrameSource
from .config import Config
from .enrollment import EnrollmentStore
from .errors import InitializationError
from .logging_config import get_logger, session_context
from .pipeline import LivePipeline
from .provider import ModelProvider
from .recognition.progress import ProgressTracker
from .scheduler import FrameScheduler
from .types import FrameResult

logger = get_logger(__name__)


class ComparisonSession:
    """Single live session bound to one frame source at a time."""

    def __init__(
        self,
        provider: ModelProvider,
        store: EnrollmentStore,
        config: Config,
        on_result: Optional[Callable[[FrameResult], None]] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Args:
            provider: Shared model provider
            store: Enrollment store holding the reference
            config: Service configuration
            on_result: Renderer callback for every applied frame
            clock: Time source for the progress tracker (seconds)
        """
        self.provider = provider
        self.store = store
        self.config = config
        self.on_result = on_result
        self.clock = clock

        self.session_id: Optional[str] = None
        self.source: Optional[FrameSource] = None
        self.lease: Optional[int] = None
        self.scheduler: Optional[FrameScheduler] = None

        self._lock = threading.Lock()
        self._result_lock = threading.Lock()
        self._latest: Optional[FrameResult] = None

    @property
    def is_active(self) -> bool:
        return self.scheduler is not None and self.scheduler.is_active

    @property
    def latest_result(self) -> Optional[FrameResult]:
        with self._result_lock:
            return self._latest

    def start(self, source: FrameSource) -> str:
        """
        Start comparing frames from ``source``.

        Any previously held source is stopped first.

        Args:
            source: Frame source to acquire

        Returns:
            New session identifier

        Raises:
            InitializationError: If the model provider is not ready
            CameraAccessError: If the source cannot be acquired
        """
        with self._lock:
            if not self.provider.is_ready:
                raise InitializationError('Model provider is not initialized')

            self._teardown()

            lease = source.acquire()

            tracker_kwargs = {'clock': self.clock} if self.clock is not None else {}
            tracker = ProgressTracker(self.config.hold_duration_seconds, **tracker_kwargs)
            pipeline = LivePipeline(self.provider, self.store, tracker, self.config)

            self.session_id = uuid.uuid4().hex[:8]
            self.source = source
            self.lease = lease
            with self._result_lock:
                self._latest = None

            self.scheduler = FrameScheduler(
                source,
                pipeline,
                self.config,
                on_result=self._publish,
                name=f'Session-{self.session_id}',
                lease=lease,
                session_id=self.session_id,
            )
            self.scheduler.start()

            with session_context(self.session_id):
                logger.info(
                    f'Session started (reference={"yes" if self.store.has_reference else "no"})'
                )
            return self.session_id

    def stop(self) -> None:
        """Stop the session and release its frame source."""
        with self._lock:
            self._teardown()

    def _teardown(self) -> None:
        if self.scheduler is not None:
            logger.info(f'Stopping session {self.session_id}')
            # The scheduler thread releases the source on exit
            self.scheduler.stop(self.config.stop_timeout_seconds)
            if self.scheduler.is_alive():
                logger.warning(
                    f'Session {self.session_id} loop still busy, releasing its source now'
                )
                self.source.release(self.lease)
        elif self.source is not None:
            self.source.release(self.lease)

        self.scheduler = None
        self.source = None
        self.lease = None

    def _publish(self, result: FrameResult) -> None:
        with self._result_lock:
            self._latest = result
        if self.on_result is not None:
            self.on_result(result)
