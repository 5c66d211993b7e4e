"""Audio level metering for UI feedback."""

import numpy as np

MIN_DB = -60.0
MAX_DB = 0.0


def audio_level(frame: np.ndarray) -> float:
    """Return the frame's RMS level mapped from [-60, 0] dB onto [0, 1]."""
    if frame is None or len(frame) == 0:
        return 0.0

    samples = np.asarray(frame, dtype=np.float64)
    rms = float(np.sqrt(np.mean(samples * samples)))

    db = 20.0 * np.log10(rms) if rms > 0 else MIN_DB
    normalized = (db - MIN_DB) / (MAX_DB - MIN_DB)

    return float(min(max(normalized, 0.0), 1.0))
