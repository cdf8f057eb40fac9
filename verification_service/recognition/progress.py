"""
Positioning progress module.

Tracks how long a single face has stayed inside the target region and
reports progress towards the hold duration:
- IDLE: no face, several faces, or face out of position
- ACCUMULATING: single face in position, timer running
- COMPLETE: single face held in position for the full duration

Any break resets to IDLE with progress 0.
"""

import time
from typing import Callable, Optional
from ..logging_config import get_logger
from ..types import ProgressSnapshot, ProgressState

logger = get_logger(__name__)


class ProgressTracker:
    """
    Time-accumulating positioning state machine.

    Inputs per cycle are the detected face count and, when exactly one face
    is present, the positioning gate verdict.
    """

    def __init__(
        self,
        hold_duration_seconds: float = 3.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize progress tracker.

        Args:
            hold_duration_seconds: Time the face must stay in position
            clock: Time source in seconds
        """
        if hold_duration_seconds <= 0:
            raise ValueError('hold_duration_seconds must be positive')

        self.hold_duration = hold_duration_seconds
        self.clock = clock
        self.state = ProgressState.IDLE
        self.start_time: Optional[float] = None
        self.progress = 0.0

    def reset(self) -> None:
        if self.state is not ProgressState.IDLE:
            logger.debug(f'Progress reset from {self.state.value}')
        self.state = ProgressState.IDLE
        self.start_time = None
        self.progress = 0.0

    def update(
        self,
        face_count: int,
        in_position: bool,
        now: Optional[float] = None
    ) -> ProgressSnapshot:
        """
        Advance the state machine by one cycle.

        Args:
            face_count: Number of faces detected this cycle
            in_position: Gate verdict (ignored unless face_count == 1)
            now: Current time in seconds (defaults to the tracker clock)

        Returns:
            Snapshot of state, progress and gating signals
        """
        if now is None:
            now = self.clock()

        single_in_position = face_count == 1 and in_position

        if not single_in_position:
            self.reset()
        elif self.state is ProgressState.IDLE:
            self.state = ProgressState.ACCUMULATING
            self.start_time = now
            self.progress = 0.0
        else:
            elapsed = now - self.start_time
            self.progress = min(max(elapsed / self.hold_duration, 0.0), 1.0)
            if elapsed >= self.hold_duration and self.state is not ProgressState.COMPLETE:
                self.state = ProgressState.COMPLETE
                logger.info(f'✅ Face held in position for {elapsed:.1f}s')

        return ProgressSnapshot(
            state=self.state,
            progress=self.progress,
            in_position=single_in_position,
            multiple_faces=face_count > 1,
        )
