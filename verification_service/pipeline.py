"""
Live comparison pipeline.

One cycle is split in two halves:
- infer(): model calls only (detect, crop, embed); touches no session state
- apply(): positioning gate, progress tracker, similarity score

The scheduler runs infer(), checks that the session is still active, and
only then calls apply(), so results of calls that finish after cancellation
are dropped.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .config import Config
from .enrollment import EnrollmentStore
from .logging_config import get_logger
from .provider import ModelProvider
from .recognition.cropping import crop_face, to_grayscale
from .recognition.geometry import TargetEllipse, is_face_in_position
from .recognition.matching import cosine_similarity
from .recognition.progress import ProgressTracker
from .types import Detection, FrameResult, RunningMode

logger = get_logger(__name__)


@dataclass
class Inference:
    """Raw model output for one frame."""
    timestamp_ms: float
    frame_width: int
    frame_height: int
    detections: List[Detection] = field(default_factory=list)
    embedding: Optional[np.ndarray] = None
    reference: Optional[np.ndarray] = None


class LivePipeline:
    """Per-session comparison pipeline."""

    def __init__(
        self,
        provider: ModelProvider,
        store: EnrollmentStore,
        tracker: ProgressTracker,
        config: Config
    ):
        self.provider = provider
        self.store = store
        self.tracker = tracker
        self.config = config
        self.similarity: Optional[float] = None
        self._scored_reference: Optional[np.ndarray] = None

    def infer(self, frame: np.ndarray, timestamp_ms: float) -> Inference:
        """
        Run detection and, for a single face with a reference, embedding.

        Args:
            frame: BGR frame
            timestamp_ms: Frame timestamp

        Returns:
            Inference result (not yet applied)
        """
        height, width = frame.shape[:2]
        reference = self.store.reference

        with self.provider.use_mode(RunningMode.VIDEO):
            detections = self.provider.detect(frame)

            embedding = None
            if len(detections) == 1 and reference is not None:
                face = crop_face(frame, detections[0], self.config.crop_padding)
                if self.config.grayscale:
                    face = to_grayscale(face)
                embedding = self.provider.embed(face)

        return Inference(
            timestamp_ms=timestamp_ms,
            frame_width=width,
            frame_height=height,
            detections=detections,
            embedding=embedding,
            reference=reference,
        )

    def apply(self, inference: Inference) -> FrameResult:
        """
        Update positioning state and similarity from an inference result.

        Raises:
            DimensionMismatch: If embedding and reference differ in size
        """
        face_count = len(inference.detections)

        score = None
        if inference.embedding is not None and inference.reference is not None:
            score = cosine_similarity(inference.reference, inference.embedding)

        in_position = False
        if face_count == 1:
            ellipse = TargetEllipse.for_frame(
                inference.frame_width,
                inference.frame_height,
                rx_ratio=self.config.ellipse_rx_ratio,
                ry_ratio=self.config.ellipse_ry_ratio,
            )
            in_position = is_face_in_position(
                inference.detections[0].landmarks,
                ellipse,
                inference.frame_width,
                inference.frame_height,
                tolerance=self.config.containment_tolerance,
            )

        snapshot = self.tracker.update(face_count, in_position)

        # A score only stands for the reference it was computed against
        if inference.reference is not self._scored_reference:
            self.similarity = None
            self._scored_reference = inference.reference
        if score is not None:
            self.similarity = score

        return FrameResult(
            timestamp_ms=inference.timestamp_ms,
            face_count=face_count,
            progress=snapshot,
            similarity_score=self.similarity,
            detections=inference.detections,
        )
