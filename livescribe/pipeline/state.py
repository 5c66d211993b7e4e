"""Recording session state machine."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RecordingStatus(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    RECORDING = "recording"
    ERROR = "error"


class RecordingEvent(str, Enum):
    INITIALIZE = "initialize"
    INIT_SUCCEEDED = "init_succeeded"
    INIT_FAILED = "init_failed"
    START = "start"
    STOP = "stop"
    FAILURE = "failure"


@dataclass(frozen=True)
class RecordingState:
    """Current session state. ``message`` is only set for ERROR."""
    status: RecordingStatus = RecordingStatus.IDLE
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "RecordingState":
        return cls(RecordingStatus.IDLE)

    @classmethod
    def error(cls, message: str) -> "RecordingState":
        return cls(RecordingStatus.ERROR, message)

    @property
    def is_recording(self) -> bool:
        return self.status is RecordingStatus.RECORDING


S = RecordingStatus
E = RecordingEvent

TRANSITIONS: dict[tuple[RecordingStatus, RecordingEvent], RecordingStatus] = {
    (S.IDLE, E.INITIALIZE): S.INITIALIZING,
    (S.ERROR, E.INITIALIZE): S.INITIALIZING,
    (S.INITIALIZING, E.INIT_SUCCEEDED): S.IDLE,
    (S.INITIALIZING, E.INIT_FAILED): S.ERROR,
    (S.IDLE, E.START): S.RECORDING,
    (S.ERROR, E.START): S.RECORDING,
    (S.RECORDING, E.STOP): S.IDLE,
    (S.RECORDING, E.FAILURE): S.ERROR,
}


def next_state(
    current: RecordingState,
    event: RecordingEvent,
    message: Optional[str] = None,
) -> Optional[RecordingState]:
    """Return the state after ``event``, or None if the transition is not allowed."""
    target = TRANSITIONS.get((current.status, event))
    if target is None:
        return None
    if target is S.ERROR:
        return RecordingState.error(message or "Unknown error")
    return RecordingState(target)
