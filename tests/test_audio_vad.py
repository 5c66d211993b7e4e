"""Tests for the voice activity detection module."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from livescribe.audio.vad import SileroVad, SpeechSegment
from livescribe.config import VadConfig


def _speech(vad, windows):
    vad._model.return_value = MagicMock(item=MagicMock(return_value=0.9))
    vad.accept_waveform(np.full(512 * windows, 0.1, dtype=np.float32))


def _silence(vad, windows):
    vad._model.return_value = MagicMock(item=MagicMock(return_value=0.1))
    vad.accept_waveform(np.zeros(512 * windows, dtype=np.float32))


class TestSpeechSegment:
    """Tests for SpeechSegment dataclass."""

    def test_speech_segment_creation(self, sample_audio_chunk):
        """Test creating a speech segment."""
        segment = SpeechSegment(samples=sample_audio_chunk, start_sample=1024)

        assert segment.start_sample == 1024
        assert len(segment) == len(sample_audio_chunk)


class TestSileroVad:
    """Tests for SileroVad class."""

    @pytest.fixture
    def vad_config(self):
        """Create test VAD config."""
        return VadConfig(
            threshold=0.5,
            min_speech_ms=250,
            min_silence_ms=500,
            max_speech_ms=4000,
            window_samples=512,
        )

    @pytest.fixture
    def vad(self, vad_config, mock_vad_model):
        """Create VAD instance with mocked model."""
        with patch("livescribe.audio.vad.torch.hub.load") as mock_load:
            mock_load.return_value = (mock_vad_model, None)
            return SileroVad(vad_config, sample_rate=16000)

    def test_init(self, vad):
        """Test VAD initialization."""
        assert vad.sample_rate == 16000
        assert vad.threshold == 0.5
        assert vad.min_silence_samples == 8000
        assert vad.empty()
        assert not vad.is_speech_detected()

    @patch("livescribe.audio.vad.torch.hub.load")
    def test_load_model_failure(self, mock_load, vad_config):
        """Test model loading failure."""
        mock_load.side_effect = Exception("Load failed")

        with pytest.raises(Exception):
            SileroVad(vad_config)

    def test_speech_detected(self, vad):
        """Test speech windows start an utterance."""
        _speech(vad, 2)

        assert vad.is_speech_detected()
        assert vad.empty()

    def test_silence_only(self, vad):
        """Test silence never produces segments."""
        _silence(vad, 40)

        assert not vad.is_speech_detected()
        assert vad.empty()

    def test_segment_after_silence(self, vad):
        """Test a segment is queued once trailing silence is long enough."""
        _speech(vad, 20)
        _silence(vad, 16)  # 16 * 512 = 8192 >= 8000

        assert not vad.empty()
        segment = vad.front()
        assert len(segment) == 36 * 512
        assert segment.start_sample == 0
        assert not vad.is_speech_detected()

    def test_segment_start_offset(self, vad):
        """Test segments record where the utterance began."""
        _silence(vad, 4)
        _speech(vad, 20)
        _silence(vad, 16)

        assert vad.front().start_sample == 4 * 512

    def test_fifo_order(self, vad):
        """Test segments come out in speech order."""
        _speech(vad, 20)
        _silence(vad, 16)
        _speech(vad, 30)
        _silence(vad, 16)

        first = vad.front()
        vad.pop()
        second = vad.front()
        vad.pop()

        assert first.start_sample < second.start_sample
        assert len(second) == 46 * 512
        assert vad.empty()

    def test_short_speech_discarded(self, vad):
        """Test utterances shorter than min_speech_ms are dropped."""
        _speech(vad, 2)  # 64ms
        _silence(vad, 16)

        assert vad.empty()

    def test_max_speech_cuts_segment(self, vad):
        """Test long speech is cut at max_speech_ms."""
        _speech(vad, 130)  # 4000ms = 125 windows

        assert not vad.empty()
        assert len(vad.front()) == 125 * 512

    def test_partial_windows_are_buffered(self, vad):
        """Test samples not filling a window wait for the next call."""
        vad._model.return_value = MagicMock(item=MagicMock(return_value=0.9))
        vad.accept_waveform(np.zeros(300, dtype=np.float32))
        assert vad._model.call_count == 0

        vad.accept_waveform(np.zeros(300, dtype=np.float32))
        assert vad._model.call_count == 1
        assert len(vad._pending) == 88

    def test_reset(self, vad):
        """Test reset clears state, queue and model state."""
        _speech(vad, 20)
        _silence(vad, 16)
        _speech(vad, 2)

        vad.reset()

        assert vad.empty()
        assert not vad.is_speech_detected()
        assert len(vad._pending) == 0
        vad._model.reset_states.assert_called_once()

    def test_release(self, vad):
        """Test release drops the model."""
        vad.release()
        assert vad._model is None
