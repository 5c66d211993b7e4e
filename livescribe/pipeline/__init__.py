"""Recording session coordination, transcript lines and statistics."""

from .coordinator import PipelineCoordinator, PipelineSnapshot
from .state import RecordingEvent, RecordingState, RecordingStatus
from .stats import SessionStats, aggregate_stats, update_stats
from .transcript import TranscriptLine

__all__ = [
    "PipelineCoordinator",
    "PipelineSnapshot",
    "RecordingEvent",
    "RecordingState",
    "RecordingStatus",
    "SessionStats",
    "aggregate_stats",
    "update_stats",
    "TranscriptLine",
]
