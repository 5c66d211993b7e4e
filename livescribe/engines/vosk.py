"""Segment decoding using Vosk (Kaldi) models."""

import json
import logging
from pathlib import Path

import numpy as np
from vosk import KaldiRecognizer, Model

from ..audio.pcm import float_to_pcm16
from ..errors import ConfigMismatch
from .base import SegmentDecoder

logger = logging.getLogger(__name__)


class VoskSegmentDecoder(SegmentDecoder):
    """Decodes finished segments with a Vosk model loaded from disk."""

    name = "Vosk"

    def __init__(self, model_dir: str | Path, sample_rate: int = 16000):
        model_dir = Path(model_dir)
        if not model_dir.is_dir():
            raise FileNotFoundError(f"Vosk model dir does not exist: {model_dir}")

        self.model_dir = model_dir
        self.sample_rate = sample_rate

        logger.info(f"Loading Vosk model from {model_dir}")
        self._model = Model(str(model_dir))
        self._recognizer = KaldiRecognizer(self._model, float(sample_rate))
        self._recognizer.SetWords(False)

    def decode(self, samples: np.ndarray, sample_rate: int) -> str:
        if sample_rate != self.sample_rate:
            raise ConfigMismatch(
                f"Vosk sample rate mismatch: {sample_rate} != {self.sample_rate}"
            )
        if self._recognizer is None:
            raise RuntimeError("Vosk engine has been closed")

        self._recognizer.AcceptWaveform(float_to_pcm16(samples).tobytes())
        result = self._recognizer.FinalResult()
        self._recognizer.Reset()

        try:
            return json.loads(result).get("text", "")
        except (ValueError, AttributeError):
            logger.warning(f"Unparseable Vosk result: {result!r}")
            return ""

    def close(self) -> None:
        self._recognizer = None
        self._model = None
        logger.info("Released Vosk engine")
