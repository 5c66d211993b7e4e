"""Decode backend interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np


@dataclass(frozen=True)
class DecodeOutcome:
    """Text produced by one segment decode or one streaming endpoint."""
    text: str
    decode_time_ms: float


@dataclass(frozen=True)
class StreamingResult:
    """Current transcription from a streaming decoder."""
    text: str
    is_final: bool
    timestamps: tuple[float, ...] = field(default_factory=tuple)


class SegmentDecoder(ABC):
    """Stateless decoder: one finished segment in, one transcript out."""

    name: str = "segment"
    sample_rate: int = 16000

    @abstractmethod
    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        """Decode a single, already-finalized speech segment."""

    def close(self) -> None:
        """Release backend resources."""


class StreamingDecoder(ABC):
    """
    Stateful decoder fed continuously, with endpoint detection.

    Callers feed frames with ``accept_waveform``, then call ``decode`` until
    ``is_ready`` is false. After an endpoint, ``reset`` must be called to
    start the next utterance.
    """

    name: str = "streaming"
    sample_rate: int = 16000

    @abstractmethod
    def accept_waveform(self, samples: np.ndarray, sample_rate: int) -> None:
        """Append audio to the decoder's buffer without decoding."""

    @abstractmethod
    def input_finished(self) -> None:
        """Signal that no more audio will be provided."""

    @abstractmethod
    def is_ready(self) -> bool:
        """Check if enough audio is buffered to run a decode step."""

    @abstractmethod
    def decode(self) -> None:
        """Run one decode step over buffered audio."""

    @abstractmethod
    def is_endpoint(self) -> bool:
        """Check if the current utterance has ended."""

    @abstractmethod
    def get_result(self) -> StreamingResult:
        """Return the current transcription without changing state."""

    @abstractmethod
    def reset(self) -> None:
        """Clear buffered audio and decode state for a new utterance."""

    @property
    @abstractmethod
    def utterance_samples(self) -> int:
        """Samples accepted since the last reset."""

    def close(self) -> None:
        """Release backend resources."""
