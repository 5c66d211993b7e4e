"""Factory that builds decode backends for engine ids."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ..audio.segmenter import SegmentBuffer
from ..audio.vad import SileroVad
from ..config import Config
from ..errors import EngineInitFailed, InvalidArgument, LiveScribeError, ResourceNotFound
from .base import SegmentDecoder, StreamingDecoder
from .registry import get_engine
from .streaming import STREAMING_MODELS, SherpaStreamingDecoder
from .vosk import VoskSegmentDecoder
from .whisper import WhisperSegmentDecoder

logger = logging.getLogger(__name__)

Backend = Union[SegmentDecoder, StreamingDecoder]


@dataclass
class EngineContext:
    """Everything a backend needs to be constructed."""
    config: Config = field(default_factory=Config)

    @property
    def sample_rate(self) -> int:
        return self.config.audio.sample_rate

    @property
    def model_root(self) -> Path:
        return Path(self.config.engines.model_root).expanduser()


@dataclass
class BackendResult:
    """Outcome of a factory call: a backend or the error that prevented it."""
    backend: Optional[Any] = None
    error: Optional[LiveScribeError] = None

    @property
    def ok(self) -> bool:
        return self.backend is not None and self.error is None


def _is_populated_dir(path: Path) -> bool:
    return path.is_dir() and any(path.iterdir())


def _looks_like_path(name: str) -> bool:
    return name.startswith((".", "/", "~")) or Path(name).is_absolute()


class EngineFactory:
    """Creates backends, returning failures instead of raising them."""

    def __init__(self, context: EngineContext):
        self.context = context

    def create(self, engine_id: str) -> BackendResult:
        """Create the backend for ``engine_id``."""
        try:
            engine = get_engine(engine_id)
        except InvalidArgument as e:
            return BackendResult(error=e)

        try:
            if engine.is_streaming:
                return BackendResult(backend=self._create_streaming(engine_id))
            if engine_id == "vosk":
                return BackendResult(backend=self._create_vosk())
            return BackendResult(backend=self._create_whisper())
        except LiveScribeError as e:
            logger.error(f"Cannot create {engine.display_name} engine: {e}")
            return BackendResult(error=e)
        except Exception as e:
            logger.error(f"Failed to create {engine.display_name} engine: {e}")
            return BackendResult(error=EngineInitFailed(engine_id, e))

    def create_segment_buffer(self) -> BackendResult:
        """Create the VAD-backed segment buffer used by segment engines."""
        try:
            vad = SileroVad(self.context.config.vad, self.context.sample_rate)
            return BackendResult(backend=SegmentBuffer(vad))
        except Exception as e:
            logger.error(f"Failed to create VAD: {e}")
            return BackendResult(error=EngineInitFailed("vad", e))

    def vosk_candidates(self) -> list[Path]:
        return [Path(p).expanduser() for p in self.context.config.engines.vosk_model_candidates]

    def _create_whisper(self) -> WhisperSegmentDecoder:
        engines = self.context.config.engines
        if _looks_like_path(engines.whisper_model):
            model_dir = Path(engines.whisper_model).expanduser()
            if not _is_populated_dir(model_dir):
                raise ResourceNotFound("Whisper model dir not found", [model_dir])
        logger.info("Creating Whisper engine")
        return WhisperSegmentDecoder(engines, self.context.sample_rate)

    def _create_vosk(self) -> VoskSegmentDecoder:
        candidates = self.vosk_candidates()
        model_dir = next((c for c in candidates if _is_populated_dir(c)), None)
        if model_dir is None:
            raise ResourceNotFound("Vosk model dir not found", candidates)
        logger.info(f"Creating Vosk engine with model: {model_dir}")
        return VoskSegmentDecoder(model_dir, self.context.sample_rate)

    def _create_streaming(self, engine_id: str) -> SherpaStreamingDecoder:
        model = STREAMING_MODELS[engine_id]
        files = model.files(self.context.model_root)
        if not all(f.is_file() for f in files):
            raise ResourceNotFound(f"Streaming model '{model.model_dir}' not found", files)
        logger.info(f"Creating streaming engine: {model.display_name}")
        return SherpaStreamingDecoder(
            model,
            self.context.model_root,
            self.context.config.engines,
            self.context.config.endpoint,
            self.context.sample_rate,
        )
