"""Configuration management for LiveScribe."""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class AudioConfig:
    """Audio capture configuration."""
    device: str = "default"
    sample_rate: int = 16000
    channels: int = 1
    frame_samples: int = 512
    queue_frames: int = 256


@dataclass
class VadConfig:
    """Voice activity detection configuration."""
    repo: str = "snakers4/silero-vad"
    threshold: float = 0.5
    min_speech_ms: int = 250
    min_silence_ms: int = 500
    max_speech_ms: int = 20000
    window_samples: int = 512


@dataclass
class EngineConfig:
    """Decode backend configuration."""
    default_engine: str = "whisper"
    model_root: str = "./models"
    whisper_model: str = "small.en"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    whisper_beam_size: int = 5
    whisper_language: Optional[str] = "en"
    vosk_model_candidates: list[str] = field(
        default_factory=lambda: ["./models/vosk-model", "~/.local/share/livescribe/vosk-model"]
    )
    streaming_num_threads: int = 2
    streaming_decoding_method: str = "greedy_search"


@dataclass
class EndpointConfig:
    """Endpoint rules for streaming decoders, in seconds."""
    rule1_min_trailing_silence: float = 2.4
    rule2_min_trailing_silence: float = 1.2
    rule3_min_utterance_length: float = 15.0


@dataclass
class PreferencesConfig:
    """Persisted user preference storage."""
    path: str = "./data/preferences.yaml"


@dataclass
class WebConfig:
    """HTTP control API configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = "./logs/livescribe.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Main configuration container."""
    audio: AudioConfig = field(default_factory=AudioConfig)
    vad: VadConfig = field(default_factory=VadConfig)
    engines: EngineConfig = field(default_factory=EngineConfig)
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(
            audio=AudioConfig(**data.get("audio", {})),
            vad=VadConfig(**data.get("vad", {})),
            engines=EngineConfig(**data.get("engines", {})),
            endpoint=EndpointConfig(**data.get("endpoint", {})),
            preferences=PreferencesConfig(**data.get("preferences", {})),
            web=WebConfig(**data.get("web", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(asdict(self), f, default_flow_style=False, sort_keys=False)

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        log_level = getattr(logging, self.logging.level.upper(), logging.INFO)

        handlers = [logging.StreamHandler()]

        if self.logging.file:
            log_path = Path(self.logging.file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path))

        logging.basicConfig(
            level=log_level,
            format=self.logging.format,
            handlers=handlers,
        )

    def ensure_directories(self) -> None:
        """Create necessary directories."""
        Path(self.engines.model_root).mkdir(parents=True, exist_ok=True)
        Path(self.preferences.path).parent.mkdir(parents=True, exist_ok=True)


def load_config(path: Optional[str] = None) -> Config:
    """Load configuration from file or environment."""
    if path is None:
        path = os.environ.get("LIVESCRIBE_CONFIG", "config/settings.yaml")
    return Config.from_yaml(path)
