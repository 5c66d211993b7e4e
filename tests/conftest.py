"""Pytest configuration and shared fixtures."""

import tempfile
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import numpy as np
import pytest

from livescribe.audio.segmenter import SegmentBuffer
from livescribe.audio.vad import SpeechSegment
from livescribe.config import AudioConfig, Config, EngineConfig, PreferencesConfig, VadConfig
from livescribe.engines.base import SegmentDecoder, StreamingDecoder, StreamingResult
from livescribe.engines.factory import BackendResult
from livescribe.errors import EngineInitFailed


# ==================== Helpers ====================

def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeClock:
    """Clock that advances by a fixed step on every call."""

    def __init__(self, step: float = 0.05):
        self.step = step
        self.now = 0.0
        self.calls = 0

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        self.calls += 1
        return value


class FakeVad:
    """VAD provider that cuts a segment every ``segment_samples`` samples."""

    def __init__(self, segment_samples: int = 16000):
        self.segment_samples = segment_samples
        self._buffer: list[np.ndarray] = []
        self._buffered = 0
        self._offset = 0
        self._segments: list[SpeechSegment] = []
        self.reset_calls = 0
        self.released = False

    def accept_waveform(self, samples):
        self._buffer.append(np.asarray(samples, dtype=np.float32))
        self._buffered += len(samples)
        if self._buffered >= self.segment_samples:
            audio = np.concatenate(self._buffer)
            self._segments.append(SpeechSegment(audio, self._offset))
            self._offset += len(audio)
            self._buffer = []
            self._buffered = 0

    def empty(self):
        return not self._segments

    def front(self):
        return self._segments[0]

    def pop(self):
        self._segments.pop(0)

    def reset(self):
        self._buffer = []
        self._buffered = 0
        self._segments = []
        self.reset_calls += 1

    def is_speech_detected(self):
        return self._buffered > 0

    def release(self):
        self.released = True


class FakeSegmentDecoder(SegmentDecoder):
    """Segment decoder returning scripted texts in order (last one repeats)."""

    def __init__(self, texts=("hello",), name: str = "Fake", error: Exception = None):
        self.texts = list(texts)
        self.name = name
        self.error = error
        self.calls = []
        self.closed = False

    def decode(self, samples, sample_rate):
        self.calls.append((len(samples), sample_rate))
        if self.error is not None:
            raise self.error
        if len(self.calls) <= len(self.texts):
            return self.texts[len(self.calls) - 1]
        return self.texts[-1]

    def close(self):
        self.closed = True


class BlockingSegmentDecoder(FakeSegmentDecoder):
    """Segment decoder whose first decode waits until ``release()`` is called."""

    def __init__(self, texts=("hello",), name: str = "Fake"):
        super().__init__(texts, name)
        self._gate = threading.Event()
        self._counter_lock = threading.Lock()
        self.active = 0
        self.max_active = 0
        self.active_at_close = None

    def decode(self, samples, sample_rate):
        with self._counter_lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            first = not self.calls
        try:
            if first:
                self._gate.wait(timeout=10.0)
            return super().decode(samples, sample_rate)
        finally:
            with self._counter_lock:
                self.active -= 1

    def release(self):
        self._gate.set()

    def close(self):
        self.active_at_close = self.active
        super().close()


class FakeStreamingDecoder(StreamingDecoder):
    """
    Streaming decoder with scripted behavior.

    Text appears once ``speech_samples`` have been accepted; the endpoint
    fires once ``endpoint_samples`` have been accepted.
    """

    step_samples = 800

    def __init__(
        self,
        text: str = "hello world",
        speech_samples: int = 1600,
        endpoint_samples: int = 16000,
        name: str = "FakeStreaming",
    ):
        self.name = name
        self.text = text
        self.speech_samples = speech_samples
        self.endpoint_samples = endpoint_samples
        self._accepted = 0
        self._pending = 0
        self.decode_steps = 0
        self.reset_calls = 0
        self.closed = False

    def accept_waveform(self, samples, sample_rate):
        self._accepted += len(samples)
        self._pending += len(samples)

    def input_finished(self):
        pass

    def is_ready(self):
        return self._pending >= self.step_samples

    def decode(self):
        self._pending -= self.step_samples
        self.decode_steps += 1

    def is_endpoint(self):
        return self._accepted >= self.endpoint_samples

    def get_result(self):
        text = self.text if self._accepted >= self.speech_samples else ""
        return StreamingResult(text=text, is_final=self.is_endpoint())

    def reset(self):
        self._accepted = 0
        self._pending = 0
        self.reset_calls += 1

    @property
    def utterance_samples(self):
        return self._accepted

    def close(self):
        self.closed = True


class FakeFactory:
    """Engine factory returning prepared fakes, or errors per engine id."""

    def __init__(self):
        self.decoders = {}
        self.errors = {}
        self.vad_error = None
        self.created = []
        self.vads = []

    def create(self, engine_id):
        self.created.append(engine_id)
        if engine_id in self.errors:
            return BackendResult(error=self.errors[engine_id])
        if engine_id in self.decoders:
            return BackendResult(backend=self.decoders[engine_id]())
        if engine_id.startswith("streaming"):
            return BackendResult(backend=FakeStreamingDecoder())
        return BackendResult(backend=FakeSegmentDecoder())

    def create_segment_buffer(self):
        if self.vad_error is not None:
            return BackendResult(error=EngineInitFailed("vad", self.vad_error))
        vad = FakeVad()
        self.vads.append(vad)
        return BackendResult(backend=SegmentBuffer(vad))


class FakeSource:
    """Audio source replaying a list of frames, then idling."""

    def __init__(self, frames=()):
        self.items = list(frames)
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def read(self, timeout=0.1):
        if self.items:
            return self.items.pop(0)
        time.sleep(min(timeout, 0.01))
        return None

    def stop(self):
        self.stopped = True


def make_frames(count: int, samples: int = 1600, amplitude: float = 0.1):
    return [np.full(samples, amplitude, dtype=np.float32) for _ in range(count)]


# ==================== Path Fixtures ====================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir):
    """Create a temporary config file."""
    config_path = temp_dir / "settings.yaml"
    config_content = """
audio:
  device: "default"
  sample_rate: 16000
  channels: 1
  frame_samples: 512

vad:
  threshold: 0.6
  min_silence_ms: 300

engines:
  default_engine: "vosk"
  model_root: "{model_root}"
  whisper_model: "tiny"

endpoint:
  rule2_min_trailing_silence: 0.8

preferences:
  path: "{prefs}"

logging:
  level: "DEBUG"
  file: null
""".format(model_root=str(temp_dir / "models"), prefs=str(temp_dir / "prefs.yaml"))

    config_path.write_text(config_content)
    return config_path


# ==================== Config Fixtures ====================

@pytest.fixture
def test_config(temp_dir):
    """Configuration pointing all paths into the temp dir."""
    return Config(
        audio=AudioConfig(sample_rate=16000, frame_samples=512, queue_frames=8),
        vad=VadConfig(threshold=0.5, min_speech_ms=250, min_silence_ms=500, max_speech_ms=20000),
        engines=EngineConfig(
            default_engine="whisper",
            model_root=str(temp_dir / "models"),
            whisper_model="tiny",
            whisper_device="cpu",
            whisper_compute_type="float32",
            vosk_model_candidates=[str(temp_dir / "vosk-a"), str(temp_dir / "vosk-b")],
        ),
        preferences=PreferencesConfig(path=str(temp_dir / "prefs.yaml")),
    )


# ==================== Audio Fixtures ====================

@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk of 512 samples."""
    return (np.random.randn(512).astype(np.float32) * 0.1)


@pytest.fixture
def silence_audio_chunk():
    """Generate a silent audio chunk."""
    return np.zeros(512, dtype=np.float32)


# ==================== Mock Fixtures ====================

@pytest.fixture
def mock_whisper_model():
    """Create a mock Whisper model."""
    mock_model = MagicMock()
    mock_segment = MagicMock()
    mock_segment.text = " Test transcription "
    mock_model.transcribe.return_value = ([mock_segment], MagicMock())
    return mock_model


@pytest.fixture
def mock_vad_model():
    """Create a mock Silero VAD model."""
    mock_model = MagicMock()
    mock_model.return_value = MagicMock(item=MagicMock(return_value=0.8))
    mock_model.reset_states = MagicMock()
    return mock_model


@pytest.fixture
def fake_factory():
    return FakeFactory()


@pytest.fixture
def fake_clock():
    return FakeClock(step=0.05)
