"""
Progress tracking and cooperative cancellation for multi-stage runs.

A run moves through a fixed sequence of stages, each weighted by how much
of the whole it represents. Stages report their own 0-100 percentage; the
aggregator folds those into one overall percentage and forwards only the
non-negative increments to a progress sink, so a progress bar fed with the
increments ends at exactly 100.

Cancellation is cooperative: long-running stages poll is_cancelled() (or
call raise_if_cancelled()) and unwind by raising OperationCancelledError.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Dict, Optional

from .errors import OperationCancelledError


logger = logging.getLogger(__name__)


# (increment percent, message)
ProgressSink = Callable[[float, str], None]


class ProcessStage(Enum):
    """Stages of a generation run, in the order they execute."""
    INITIALIZING = "Initializing"
    FETCHING_FILES = "Fetching Files"
    IDENTIFYING_ABSTRACTIONS = "Identifying Abstractions"
    ANALYZING_RELATIONSHIPS = "Analyzing Relationships"
    ORDERING_CHAPTERS = "Ordering Chapters"
    WRITING_CHAPTERS = "Writing Chapters"
    COMBINING_TUTORIAL = "Combining Tutorial"
    COMPLETED = "Completed"


# Relative weight of each stage; the aggregate is renormalized by the sum
STAGE_WEIGHTS: Dict[ProcessStage, int] = {
    ProcessStage.INITIALIZING: 5,
    ProcessStage.FETCHING_FILES: 15,
    ProcessStage.IDENTIFYING_ABSTRACTIONS: 20,
    ProcessStage.ANALYZING_RELATIONSHIPS: 15,
    ProcessStage.ORDERING_CHAPTERS: 10,
    ProcessStage.WRITING_CHAPTERS: 25,
    ProcessStage.COMBINING_TUTORIAL: 10,
    ProcessStage.COMPLETED: 0,
}


class CancellationToken:
    """Thread-safe cancellation flag supplied by whoever hosts the run."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()


class ProgressAggregator:
    """
    Stage-weighted progress for one run at a time.

    Construct one per host and pass it down to every stage; call reset()
    before each run. The aggregator does not enforce stage order - callers
    start the stage they are entering.

    Example:
        progress = ProgressAggregator()
        progress.reset()
        progress.set_progress_objects(sink, token)
        progress.start_stage(ProcessStage.FETCHING_FILES)
        progress.update_stage_progress(50, "Scanning files...")
        progress.complete_stage()
    """

    def __init__(
        self,
        sink: Optional[ProgressSink] = None,
        token: Optional[CancellationToken] = None,
        weights: Optional[Dict[ProcessStage, int]] = None,
    ):
        self._sink = sink
        self._token = token
        self._weights = dict(weights or STAGE_WEIGHTS)
        self._total_weight = sum(self._weights.values())
        self._current_stage = ProcessStage.INITIALIZING
        self._stage_progress: Dict[ProcessStage, float] = {}
        self._total_progress = 0.0
        self._last_reported = 0.0
        self.reset()

    def set_progress_objects(
        self,
        sink: Optional[ProgressSink],
        token: Optional[CancellationToken],
    ) -> None:
        """Attach the progress sink and cancellation token for this run."""
        self._sink = sink
        self._token = token

    @property
    def current_stage(self) -> ProcessStage:
        return self._current_stage

    @property
    def total_progress(self) -> float:
        """Highest aggregate percentage reported so far."""
        return self._last_reported

    def stage_progress(self, stage: ProcessStage) -> float:
        return self._stage_progress.get(stage, 0.0)

    def start_stage(self, stage: ProcessStage) -> None:
        self._current_stage = stage
        self._stage_progress[stage] = 0.0
        self._calculate_total_progress()
        self._report(0.0, f"{stage.value}...")
        logger.info(f"Starting stage: {stage.value}")

    def update_stage_progress(self, percentage: float, message: Optional[str] = None) -> None:
        """
        Update progress within the current stage.

        Args:
            percentage: Percentage of the current stage (clamped to 0-100)
            message: Optional message to display
        """
        percentage = min(100.0, max(0.0, float(percentage)))
        self._stage_progress[self._current_stage] = percentage
        self._calculate_total_progress()

        stage_message = message or f"{self._current_stage.value}: {round(percentage)}%"
        self._report_increment(stage_message)

    def complete_stage(self) -> None:
        self._stage_progress[self._current_stage] = 100.0
        self._calculate_total_progress()
        self._report_increment(f"{self._current_stage.value} completed")
        logger.info(f"Completed stage: {self._current_stage.value}")

    def is_cancelled(self) -> bool:
        return self._token is not None and self._token.is_cancellation_requested

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled():
            raise OperationCancelledError()

    def reset(self) -> None:
        """Zero every stage; call once at the start of each run."""
        self._current_stage = ProcessStage.INITIALIZING
        self._stage_progress = {stage: 0.0 for stage in ProcessStage}
        self._total_progress = 0.0
        self._last_reported = 0.0

    def _calculate_total_progress(self) -> None:
        if self._total_weight <= 0:
            self._total_progress = 0.0
            return

        weighted = sum(
            (progress / 100.0) * self._weights.get(stage, 0)
            for stage, progress in self._stage_progress.items()
        )
        self._total_progress = (weighted / self._total_weight) * 100.0

    def _report_increment(self, message: str) -> None:
        # Never report a negative increment; a stage restarted from zero
        # only resumes reporting once it passes the previous high-water mark
        increment = max(0.0, self._total_progress - self._last_reported)
        self._last_reported = max(self._last_reported, self._total_progress)
        self._report(increment, message)

    def _report(self, increment: float, message: str) -> None:
        if self._sink is not None:
            self._sink(increment, message)
        logger.debug(f"Progress: {message} ({round(self._last_reported)}%)")
