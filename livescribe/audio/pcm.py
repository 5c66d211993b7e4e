"""Conversion between 16-bit PCM and normalized float samples."""

from typing import Optional

import numpy as np

from ..errors import InvalidArgument

PCM16_SCALE = 32768.0


def pcm16_to_float(samples: np.ndarray, length: Optional[int] = None) -> np.ndarray:
    """
    Convert 16-bit integer samples to float32 samples in [-1.0, 1.0).

    Args:
        samples: Integer sample array
        length: Number of leading samples to convert (defaults to all)

    Returns:
        float32 array of ``length`` samples, each ``sample / 32768.0``
    """
    samples = np.asarray(samples)
    if length is None:
        length = len(samples)

    if length < 0 or length > len(samples):
        raise InvalidArgument(
            f"Invalid PCM length {length} for buffer of {len(samples)} samples"
        )

    return samples[:length].astype(np.float32) / np.float32(PCM16_SCALE)


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Convert normalized float samples back to int16, clipping out-of-range values."""
    scaled = np.asarray(samples, dtype=np.float64) * PCM16_SCALE
    return np.clip(np.round(scaled), -32768, 32767).astype(np.int16)
