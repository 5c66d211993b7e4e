"""Segment decoding using faster-whisper."""

import logging
from typing import Optional

import numpy as np
from faster_whisper import WhisperModel

from ..config import EngineConfig
from ..errors import ConfigMismatch
from .base import SegmentDecoder

logger = logging.getLogger(__name__)


class WhisperSegmentDecoder(SegmentDecoder):
    """Speech-to-text for finished segments using faster-whisper."""

    name = "Whisper"

    def __init__(self, config: EngineConfig, sample_rate: int = 16000):
        self.config = config
        self.model_name = config.whisper_model
        self.device = config.whisper_device
        self.compute_type = config.whisper_compute_type
        self.sample_rate = sample_rate

        self._model: Optional[WhisperModel] = None
        self._load_model()

    def _load_model(self) -> None:
        """Load the Whisper model."""
        logger.info(f"Loading Whisper model: {self.model_name} on {self.device}")
        try:
            self._model = WhisperModel(
                self.model_name,
                device=self.device,
                compute_type=self.compute_type,
            )
            logger.info("Whisper model loaded")
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise

    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        if sample_rate != self.sample_rate:
            raise ConfigMismatch(
                f"Whisper sample rate mismatch: {sample_rate} != {self.sample_rate}"
            )
        if self._model is None:
            raise RuntimeError("Whisper engine has been closed")

        segments, _ = self._model.transcribe(
            np.asarray(samples, dtype=np.float32),
            beam_size=self.config.whisper_beam_size,
            language=self.config.whisper_language,
            vad_filter=False,  # We already did VAD
        )

        return " ".join(seg.text.strip() for seg in segments).strip()

    def close(self) -> None:
        if self._model is not None:
            logger.info("Released Whisper engine")
        self._model = None
