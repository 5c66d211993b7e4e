"""Registry of selectable ASR engines."""

from dataclasses import dataclass

from ..errors import InvalidArgument


@dataclass(frozen=True)
class EngineDescriptor:
    """A selectable engine. ``id`` is stable and safe to persist."""
    id: str
    display_name: str
    is_streaming: bool = False


ENGINES: tuple[EngineDescriptor, ...] = (
    # VAD + batch decoders
    EngineDescriptor("whisper", "Whisper"),
    EngineDescriptor("vosk", "Vosk"),
    # Streaming decoders with endpoint detection
    EngineDescriptor("streaming-en", "Streaming EN", is_streaming=True),
    EngineDescriptor("streaming-zh-en", "Streaming ZH-EN", is_streaming=True),
)

_BY_ID = {engine.id: engine for engine in ENGINES}


def get_engine(engine_id: str) -> EngineDescriptor:
    """Look up an engine by id."""
    try:
        return _BY_ID[engine_id]
    except KeyError:
        known = ", ".join(_BY_ID)
        raise InvalidArgument(f"Unknown engine '{engine_id}' (known: {known})") from None


def segment_engines() -> list[EngineDescriptor]:
    return [e for e in ENGINES if not e.is_streaming]


def streaming_engines() -> list[EngineDescriptor]:
    return [e for e in ENGINES if e.is_streaming]
