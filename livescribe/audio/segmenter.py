"""Segment buffer: queue semantics over a voice activity detector."""

import logging
from typing import Protocol

import numpy as np

from .vad import SpeechSegment

logger = logging.getLogger(__name__)


class VadProvider(Protocol):
    """Voice activity detector that queues finished utterances."""

    def accept_waveform(self, samples: np.ndarray) -> None: ...

    def empty(self) -> bool: ...

    def front(self) -> SpeechSegment: ...

    def pop(self) -> None: ...

    def reset(self) -> None: ...

    def is_speech_detected(self) -> bool: ...


class SegmentBuffer:
    """Feeds audio into a VAD and hands out finished speech segments in order."""

    def __init__(self, provider: VadProvider):
        self._vad = provider

    def accept_waveform(self, frame: np.ndarray) -> None:
        """Feed audio samples to the VAD."""
        self._vad.accept_waveform(frame)

    def has_segments(self) -> bool:
        """Check if there are speech segments ready."""
        return not self._vad.empty()

    def pop_segment(self) -> SpeechSegment:
        """Remove and return the oldest ready segment."""
        if self._vad.empty():
            raise IndexError("No speech segment ready")
        segment = self._vad.front()
        self._vad.pop()
        return segment

    def pop_all(self) -> list[SpeechSegment]:
        """Drain every ready segment in order."""
        segments = []
        while not self._vad.empty():
            segments.append(self.pop_segment())
        return segments

    def reset(self) -> None:
        """Reset VAD state (call between recordings)."""
        self._vad.reset()

    def is_speech_detected(self) -> bool:
        return self._vad.is_speech_detected()

    def close(self) -> None:
        release = getattr(self._vad, "release", None)
        if release is None:
            return
        try:
            release()
            logger.info("VAD released")
        except Exception as e:
            logger.warning(f"Error releasing VAD: {e}")
