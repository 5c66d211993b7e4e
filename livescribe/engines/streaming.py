"""Streaming decoding using sherpa-onnx online transducer models."""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np
import sherpa_onnx

from ..config import EndpointConfig, EngineConfig
from ..errors import ConfigMismatch
from .base import StreamingDecoder, StreamingResult
from .endpoint import evaluate_endpoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamingModel:
    """File layout of a streaming transducer model."""
    display_name: str
    model_dir: str
    encoder: str
    decoder: str
    joiner: str
    tokens: str = "tokens.txt"

    def files(self, model_root: str | Path) -> list[Path]:
        base = Path(model_root).expanduser() / self.model_dir
        return [base / name for name in (self.encoder, self.decoder, self.joiner, self.tokens)]


STREAMING_MODELS = {
    "streaming-en": StreamingModel(
        display_name="English Small",
        model_dir="sherpa-onnx-streaming-zipformer-en-20M-2023-02-17",
        encoder="encoder-epoch-99-avg-1.int8.onnx",
        decoder="decoder-epoch-99-avg-1.onnx",
        joiner="joiner-epoch-99-avg-1.int8.onnx",
    ),
    "streaming-zh-en": StreamingModel(
        display_name="Bilingual ZH-EN",
        model_dir="sherpa-onnx-streaming-zipformer-bilingual-zh-en-2023-02-20",
        encoder="encoder-epoch-99-avg-1.int8.onnx",
        decoder="decoder-epoch-99-avg-1.onnx",
        joiner="joiner-epoch-99-avg-1.int8.onnx",
    ),
}


class SherpaStreamingDecoder(StreamingDecoder):
    """
    Streaming ASR using a sherpa-onnx ``OnlineRecognizer``.

    Endpointing is done here rather than inside sherpa-onnx so the rules
    can be evaluated against the configured thresholds: trailing silence is
    the audio after the last decoded token, and the utterance length is the
    number of samples accepted since the last reset.
    """

    def __init__(
        self,
        model: StreamingModel,
        model_root: str | Path,
        engine_config: EngineConfig,
        endpoint_config: EndpointConfig,
        sample_rate: int = 16000,
    ):
        self.model = model
        self.endpoint_config = endpoint_config
        self.sample_rate = sample_rate
        self.name = f"Sherpa Streaming ({model.display_name})"

        encoder, decoder, joiner, tokens = (str(p) for p in model.files(model_root))
        self._recognizer = sherpa_onnx.OnlineRecognizer.from_transducer(
            tokens=tokens,
            encoder=encoder,
            decoder=decoder,
            joiner=joiner,
            num_threads=engine_config.streaming_num_threads,
            sample_rate=sample_rate,
            feature_dim=80,
            decoding_method=engine_config.streaming_decoding_method,
            enable_endpoint_detection=False,
        )
        self._stream = self._recognizer.create_stream()
        self._utterance_samples = 0
        logger.info(f"Initialized {self.name}")

    def accept_waveform(self, samples: np.ndarray, sample_rate: int) -> None:
        if sample_rate != self.sample_rate:
            raise ConfigMismatch(
                f"Streaming sample rate mismatch: {sample_rate} != {self.sample_rate}"
            )
        if self._stream is None:
            return
        self._stream.accept_waveform(sample_rate, np.asarray(samples, dtype=np.float32))
        self._utterance_samples += len(samples)

    def input_finished(self) -> None:
        if self._stream is not None:
            self._stream.input_finished()

    def is_ready(self) -> bool:
        if self._recognizer is None or self._stream is None:
            return False
        return self._recognizer.is_ready(self._stream)

    def decode(self) -> None:
        if self.is_ready():
            self._recognizer.decode_stream(self._stream)

    def _text(self) -> str:
        return self._recognizer.get_result(self._stream).strip()

    def _timestamps(self) -> tuple[float, ...]:
        return tuple(float(t) for t in self._recognizer.timestamps(self._stream))

    def is_endpoint(self) -> bool:
        if self._recognizer is None or self._stream is None:
            return False

        utterance_length = self._utterance_samples / self.sample_rate
        contains_speech = bool(self._text())
        timestamps = self._timestamps()
        last_token = timestamps[-1] if (contains_speech and timestamps) else 0.0
        trailing_silence = max(utterance_length - last_token, 0.0)

        rule = evaluate_endpoint(
            self.endpoint_config, trailing_silence, utterance_length, contains_speech
        )
        if rule is not None:
            logger.debug(f"Endpoint rule {rule} fired after {utterance_length:.2f}s")
        return rule is not None

    def get_result(self) -> StreamingResult:
        if self._recognizer is None or self._stream is None:
            return StreamingResult("", False)

        return StreamingResult(
            text=self._text(),
            is_final=self.is_endpoint(),
            timestamps=self._timestamps(),
        )

    def reset(self) -> None:
        if self._recognizer is None or self._stream is None:
            return
        self._recognizer.reset(self._stream)
        self._utterance_samples = 0

    @property
    def utterance_samples(self) -> int:
        return self._utterance_samples

    def close(self) -> None:
        logger.info(f"Closing {self.name}")
        self._stream = None
        self._recognizer = None
