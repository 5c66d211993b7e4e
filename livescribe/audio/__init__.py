"""Audio pipeline components for continuous speech capture and segmentation."""

from .level import audio_level
from .pcm import pcm16_to_float
from .segmenter import SegmentBuffer
from .vad import SileroVad, SpeechSegment

__all__ = [
    "audio_level",
    "pcm16_to_float",
    "SegmentBuffer",
    "SileroVad",
    "SpeechSegment",
]
