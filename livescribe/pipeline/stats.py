"""Running statistics for a recording session."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .transcript import TranscriptLine


@dataclass(frozen=True)
class SessionStats:
    """Totals over every transcript line emitted in a session."""
    total_segments: int = 0
    total_audio_duration_ms: float = 0.0
    total_decode_time_ms: float = 0.0
    average_rtf: float = 0.0

    def formatted(self) -> str:
        if self.total_segments == 0:
            return "No segments yet"
        total_audio_sec = self.total_audio_duration_ms / 1000.0
        return (
            f"{self.total_segments} segments | {total_audio_sec:.1f}s audio | "
            f"avg RTF: {self.average_rtf:.2f}"
        )


def update_stats(stats: SessionStats, line: "TranscriptLine") -> SessionStats:
    """Fold one transcript line into the running totals."""
    audio_ms = stats.total_audio_duration_ms + line.segment_duration_ms
    decode_ms = stats.total_decode_time_ms + line.decode_time_ms
    return SessionStats(
        total_segments=stats.total_segments + 1,
        total_audio_duration_ms=audio_ms,
        total_decode_time_ms=decode_ms,
        average_rtf=decode_ms / audio_ms if audio_ms > 0 else 0.0,
    )


def aggregate_stats(lines: Iterable["TranscriptLine"]) -> SessionStats:
    """Compute stats for a whole transcript in emission order."""
    lines = list(lines)
    audio_ms = sum(line.segment_duration_ms for line in lines)
    decode_ms = sum(line.decode_time_ms for line in lines)
    return SessionStats(
        total_segments=len(lines),
        total_audio_duration_ms=audio_ms,
        total_decode_time_ms=decode_ms,
        average_rtf=decode_ms / audio_ms if audio_ms > 0 else 0.0,
    )
