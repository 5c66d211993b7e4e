"""Transcript lines and transcript export."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .stats import SessionStats


@dataclass(frozen=True)
class TranscriptLine:
    """A single transcript line with decode metrics."""
    index: int
    text: str
    engine_name: str
    segment_duration_ms: float
    decode_time_ms: float
    rtf: float

    def formatted(self) -> str:
        metrics = (
            f"seg={self.segment_duration_ms:.0f}ms "
            f"decode={self.decode_time_ms:.0f}ms "
            f"rtf={self.rtf:.2f}"
        )
        return f"{self.index}: [{self.engine_name}] {self.text} | {metrics}"


def normalize_text(text: Optional[str]) -> str:
    """Trim and lower-case decoded text. Blank input gives an empty string."""
    return (text or "").strip().lower()


def real_time_factor(decode_time_ms: float, duration_ms: float) -> float:
    return decode_time_ms / duration_ms if duration_ms > 0 else 0.0


def export_transcript(
    lines: Iterable[TranscriptLine],
    engine_name: str,
    stats: SessionStats,
    generated_at: Optional[datetime] = None,
) -> str:
    """Render a shareable plain-text transcript. Empty when there are no lines."""
    lines = list(lines)
    if not lines:
        return ""

    generated_at = generated_at or datetime.now()
    header = (
        f"ASR Transcript ({engine_name})\n"
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"Stats: {stats.formatted()}\n"
        "---\n\n"
    )
    body = "\n".join(f"{line.index + 1}. {line.text}" for line in lines)
    return header + body
