"""Error types shared by the audio pipeline and decode backends."""

from dataclasses import dataclass
from typing import Iterable, Optional


class LiveScribeError(Exception):
    """Base class for all pipeline errors."""

    pass


class InvalidArgument(LiveScribeError, ValueError):
    """Raised for malformed input to a single call."""

    pass


class ConfigMismatch(InvalidArgument):
    """Raised when audio does not match a backend's configured sample rate."""

    pass


class ResourceNotFound(LiveScribeError):
    """Raised when a model or asset required by an engine is missing."""

    def __init__(self, message: str, checked_paths: Iterable[str] = ()):
        self.checked_paths = [str(p) for p in checked_paths]
        if self.checked_paths:
            message = message + ". Checked:\n" + "\n".join(self.checked_paths)
        super().__init__(message)


class EngineInitFailed(LiveScribeError):
    """Raised when a backend throws during construction."""

    def __init__(self, engine_id: str, cause: Optional[BaseException] = None):
        self.engine_id = engine_id
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to initialize engine '{engine_id}'{detail}")


class RuntimeDecodeFailure(LiveScribeError):
    """Raised when a backend fails in the middle of a recording session."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


@dataclass(frozen=True)
class CaptureError:
    """Capture failure delivered in-band through the frame queue, not raised."""
    message: str
