"""
Frame scheduling loop.

Drives the live pipeline on a dedicated thread:
- one inference cycle per new frame, never two in flight
- frames with an already-processed timestamp are skipped
- a failed cycle is logged and followed by a fixed back-off
- cancellation is cooperative via a stop flag checked every cycle

The frame source is released when the loop exits, under the lease the
loop was started with.
"""

import threading
from enum import Enum
from typing import Callable, Optional

from .camera import FrameSource
from .config import Config
from .errors import TransientInferenceError
from .logging_config import get_logger, session_context
from .pipeline import LivePipeline
from .types import FrameResult

logger = get_logger(__name__)


class CycleOutcome(str, Enum):
    PROCESSED = 'processed'
    SKIPPED = 'skipped'
    NO_FRAME = 'no_frame'
    DISCARDED = 'discarded'
    STOPPED = 'stopped'


class FrameScheduler:
    """Per-session frame loop."""

    def __init__(
        self,
        source: FrameSource,
        pipeline: LivePipeline,
        config: Config,
        on_result: Optional[Callable[[FrameResult], None]] = None,
        name: str = 'frame-scheduler',
        lease: Optional[int] = None,
        session_id: Optional[str] = None
    ):
        """
        Initialize scheduler.

        Args:
            source: Acquired frame source (released on exit)
            pipeline: Live comparison pipeline
            config: Service configuration
            on_result: Called with every applied FrameResult
            name: Thread name
            lease: Lease returned by source.acquire()
            session_id: Session tagged on the loop's log records
        """
        self.source = source
        self.pipeline = pipeline
        self.config = config
        self.on_result = on_result
        self.name = name
        self.lease = lease
        self.session_id = session_id

        self.stop_flag = threading.Event()
        self.last_timestamp: Optional[float] = None
        self.cycles = 0
        self.skipped = 0
        self.failures = 0

        self._apply_lock = threading.RLock()
        self.thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return not self.stop_flag.is_set()

    def run_cycle(self) -> CycleOutcome:
        """
        Run a single scheduling cycle.

        Returns:
            What happened to the current frame
        """
        if not self.is_active:
            return CycleOutcome.STOPPED

        current = self.source.read()
        if current is None:
            return CycleOutcome.NO_FRAME

        frame, timestamp_ms = current
        if timestamp_ms == self.last_timestamp:
            self.skipped += 1
            return CycleOutcome.SKIPPED
        self.last_timestamp = timestamp_ms

        inference = self.pipeline.infer(frame, timestamp_ms)

        with self._apply_lock:
            if not self.is_active:
                logger.debug(f'Discarding result for frame {timestamp_ms:.0f}ms after stop')
                return CycleOutcome.DISCARDED
            result = self.pipeline.apply(inference)
            self.cycles += 1
            if self.on_result is not None:
                self.on_result(result)

        return CycleOutcome.PROCESSED

    def run(self) -> None:
        """Loop until stopped, then release the frame source."""
        with session_context(self.session_id):
            self._loop()

    def _loop(self) -> None:
        logger.info('🎬 Starting frame loop...')

        try:
            while self.is_active:
                try:
                    self.run_cycle()
                except TransientInferenceError as e:
                    self.failures += 1
                    logger.warning(f'Cycle failed: {e}')
                    self.stop_flag.wait(self.config.error_backoff_seconds)
                    continue
                except Exception as e:
                    self.failures += 1
                    logger.error(f'Unexpected cycle error: {e}', exc_info=True)
                    self.stop_flag.wait(self.config.error_backoff_seconds)
                    continue

                self.stop_flag.wait(self.config.cycle_interval_seconds)
        finally:
            # A stale lease leaves a re-acquired source open
            self.source.release(self.lease)
            logger.info(
                f'Frame loop stopped (cycles={self.cycles}, '
                f'skipped={self.skipped}, failures={self.failures})'
            )

    def start(self) -> None:
        """Start the loop on a daemon thread."""
        if self.thread and self.thread.is_alive():
            logger.debug('Frame loop already running')
            return

        self.stop_flag.clear()
        self.thread = threading.Thread(target=self.run, daemon=True, name=self.name)
        self.thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Request cancellation and wait for the loop to exit.

        An in-flight inference call finishes; its result is discarded.
        """
        with self._apply_lock:
            self.stop_flag.set()

        if self.thread and self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout=timeout)
            if self.thread.is_alive():
                logger.warning('Frame loop did not exit within timeout')

    def is_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()
