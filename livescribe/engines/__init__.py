"""Decode backends and the engine factory."""

from .base import DecodeOutcome, SegmentDecoder, StreamingDecoder, StreamingResult
from .factory import BackendResult, EngineContext, EngineFactory
from .registry import ENGINES, EngineDescriptor, get_engine

__all__ = [
    "DecodeOutcome",
    "SegmentDecoder",
    "StreamingDecoder",
    "StreamingResult",
    "BackendResult",
    "EngineContext",
    "EngineFactory",
    "ENGINES",
    "EngineDescriptor",
    "get_engine",
]
