"""Voice Activity Detection using Silero VAD."""

import logging
from collections import deque
from dataclasses import dataclass

import numpy as np
import torch

from ..config import VadConfig

logger = logging.getLogger(__name__)


@dataclass
class SpeechSegment:
    """A detected speech segment."""
    samples: np.ndarray
    start_sample: int

    def __len__(self) -> int:
        return len(self.samples)


class SileroVad:
    """
    Silero VAD model driven by a windowed speech/silence state machine.

    Finished utterances are queued and read with ``empty()``, ``front()``
    and ``pop()``.
    """

    def __init__(self, config: VadConfig, sample_rate: int = 16000):
        self.config = config
        self.sample_rate = sample_rate
        self.threshold = config.threshold
        self.window_samples = config.window_samples

        # Calculate samples for timing thresholds
        self.min_speech_samples = int(config.min_speech_ms * sample_rate / 1000)
        self.min_silence_samples = int(config.min_silence_ms * sample_rate / 1000)
        self.max_speech_samples = int(config.max_speech_ms * sample_rate / 1000)

        # State tracking
        self._is_speaking = False
        self._speech_buffer: list[np.ndarray] = []
        self._buffered_samples = 0
        self._silence_samples = 0
        self._speech_start = 0
        self._processed_samples = 0
        self._pending = np.zeros(0, dtype=np.float32)
        self._segments: deque[SpeechSegment] = deque()

        # Load Silero VAD model
        self._model = None
        self._load_model()

    def _load_model(self) -> None:
        """Load the Silero VAD model."""
        logger.info("Loading Silero VAD model...")
        try:
            self._model, _ = torch.hub.load(
                repo_or_dir=self.config.repo,
                model="silero_vad",
                force_reload=False,
                onnx=False,
            )
            self._model.eval()
            logger.info("Silero VAD model loaded")
        except Exception as e:
            logger.error(f"Failed to load Silero VAD: {e}")
            raise

    def accept_waveform(self, samples: np.ndarray) -> None:
        """Feed samples; complete windows are classified immediately."""
        samples = np.asarray(samples, dtype=np.float32)
        if len(self._pending):
            samples = np.concatenate([self._pending, samples])

        offset = 0
        while offset + self.window_samples <= len(samples):
            window = samples[offset:offset + self.window_samples]
            self._process_window(window, self._speech_probability(window))
            offset += self.window_samples

        self._pending = samples[offset:].copy()

    def _speech_probability(self, window: np.ndarray) -> float:
        audio_tensor = torch.from_numpy(window).float()
        with torch.no_grad():
            return float(self._model(audio_tensor, self.sample_rate).item())

    def _process_window(self, window: np.ndarray, speech_prob: float) -> None:
        """Update speech detection state machine for one window."""
        is_speech = speech_prob >= self.threshold

        if is_speech:
            if not self._is_speaking:
                self._is_speaking = True
                self._speech_start = self._processed_samples
                self._speech_buffer = []
                self._buffered_samples = 0
                logger.debug("Speech started")

            self._append(window)
            self._silence_samples = 0

            if self._buffered_samples >= self.max_speech_samples:
                logger.debug("Maximum speech length reached, cutting segment")
                self._end_speech_segment()

        elif self._is_speaking:
            # Still in speech segment, buffer the silence
            self._append(window)
            self._silence_samples += len(window)

            if self._silence_samples >= self.min_silence_samples:
                self._end_speech_segment()

        self._processed_samples += len(window)

    def _append(self, window: np.ndarray) -> None:
        self._speech_buffer.append(window)
        self._buffered_samples += len(window)

    def _end_speech_segment(self) -> None:
        """Queue the current utterance unless it is too short."""
        if self._speech_buffer:
            full_audio = np.concatenate(self._speech_buffer)
            speech_samples = len(full_audio) - self._silence_samples

            if speech_samples < self.min_speech_samples:
                logger.debug("Speech segment too short, discarding")
            else:
                self._segments.append(SpeechSegment(full_audio, self._speech_start))
                logger.debug(f"Speech segment: {len(full_audio) * 1000 // self.sample_rate}ms")

        self._is_speaking = False
        self._speech_buffer = []
        self._buffered_samples = 0
        self._silence_samples = 0

    def empty(self) -> bool:
        return not self._segments

    def front(self) -> SpeechSegment:
        return self._segments[0]

    def pop(self) -> None:
        self._segments.popleft()

    def is_speech_detected(self) -> bool:
        return self._is_speaking

    def reset(self) -> None:
        """Reset VAD state and drop queued segments."""
        self._is_speaking = False
        self._speech_buffer = []
        self._buffered_samples = 0
        self._silence_samples = 0
        self._speech_start = 0
        self._processed_samples = 0
        self._pending = np.zeros(0, dtype=np.float32)
        self._segments.clear()
        if self._model is not None:
            self._model.reset_states()

    def release(self) -> None:
        """Drop the model reference."""
        self._model = None
        self._segments.clear()
