"""Tests for the main entry point."""

from unittest.mock import MagicMock, patch

import pytest

from livescribe.config import Config, PreferencesConfig
from livescribe.engines.registry import get_engine
from livescribe.main import LiveScribe, main
from livescribe.pipeline.coordinator import PipelineSnapshot
from livescribe.pipeline.state import RecordingState
from livescribe.pipeline.transcript import TranscriptLine


def raise_keyboard(*args):
    raise KeyboardInterrupt()


class TestLiveScribe:
    """Tests for LiveScribe class."""

    @pytest.fixture
    def mock_config(self, temp_dir):
        """Create configuration with paths in the temp dir."""
        config = Config(preferences=PreferencesConfig(path=str(temp_dir / "prefs.yaml")))
        config.engines.model_root = str(temp_dir / "models")
        config.logging.file = None
        return config

    @pytest.fixture
    def app(self, mock_config):
        """Create LiveScribe with a mocked coordinator."""
        with patch("livescribe.main.PipelineCoordinator") as mock_coordinator:
            app = LiveScribe(mock_config)
            app._mock_coordinator_class = mock_coordinator
            yield app

    def test_init(self, app, mock_config):
        """Test LiveScribe wiring."""
        assert not app._running
        kwargs = app._mock_coordinator_class.call_args[1]
        assert kwargs["preferences"] is app.preferences
        app.coordinator.on_update.assert_called_once()
        app.coordinator.force_engine.assert_not_called()

    @patch("livescribe.main.AudioCapture")
    def test_source_factory_builds_capture(self, mock_capture, app, mock_config):
        """Test each recording gets a fresh AudioCapture."""
        source_factory = app._mock_coordinator_class.call_args[1]["source_factory"]

        source_factory()

        mock_capture.assert_called_once_with(mock_config.audio)

    def test_forced_engine(self, mock_config):
        """Test --engine is forwarded without persisting."""
        with patch("livescribe.main.PipelineCoordinator"):
            app = LiveScribe(mock_config, forced_engine="vosk")

        app.coordinator.force_engine.assert_called_once_with("vosk")

    def test_start_initializes_engine(self, app):
        """Test start builds the engine but does not record."""
        app.coordinator.initialize.return_value = True

        app.start(enable_web=False)

        assert app._running
        app.coordinator.initialize.assert_called_once()
        app.coordinator.start_recording.assert_not_called()

    def test_start_autostart(self, app):
        """Test autostart begins recording once initialized."""
        app.coordinator.initialize.return_value = True

        app.start(enable_web=False, autostart=True)

        app.coordinator.start_recording.assert_called_once()

    def test_autostart_skipped_on_init_failure(self, app):
        """Test autostart does nothing if the engine failed to build."""
        app.coordinator.initialize.return_value = False

        app.start(enable_web=False, autostart=True)

        app.coordinator.start_recording.assert_not_called()

    def test_start_already_running(self, app):
        """Test starting when already running."""
        app.start(enable_web=False)
        app.start(enable_web=False)

        assert app.coordinator.initialize.call_count == 1

    def test_stop(self, app):
        """Test stop closes the coordinator."""
        app.start(enable_web=False)

        app.stop()

        assert not app._running
        app.coordinator.close.assert_called_once()

    def test_stop_not_running(self, app):
        """Test stopping when not running."""
        app.stop()
        app.coordinator.close.assert_not_called()

    def test_on_update_prints_new_lines(self, app, capsys):
        """Test only lines not yet printed are written."""
        lines = (
            TranscriptLine(0, "first", "Whisper", 1000.0, 50.0, 0.05),
            TranscriptLine(1, "second", "Whisper", 1000.0, 50.0, 0.05),
        )
        engine = get_engine("whisper")

        app._on_update(PipelineSnapshot(RecordingState(), engine, lines[:1]))
        app._on_update(PipelineSnapshot(RecordingState(), engine, lines))

        out = capsys.readouterr().out
        assert out.count("first") == 1
        assert out.count("second") == 1

    @patch("livescribe.main.uvicorn")
    def test_start_web_server(self, mock_uvicorn, app):
        """Test starting web server."""
        mock_uvicorn.Server.return_value = MagicMock()

        app._start_web_server("127.0.0.1", 8080)

        assert app._web_thread is not None
        assert mock_uvicorn.Config.call_args[1]["port"] == 8080

    def test_stop_web_server(self, app):
        """Test stopping web server."""
        mock_server = MagicMock()
        app._web_server = mock_server
        app._web_thread = MagicMock()

        app._stop_web_server()

        assert mock_server.should_exit is True

    def test_stop_web_server_not_running(self, app):
        """Test stopping web server when not running."""
        app._stop_web_server()  # Should not fail


class TestMain:
    """Tests for main function."""

    @patch("livescribe.main.AudioCapture")
    def test_list_audio(self, mock_audio, capsys):
        """Test listing audio devices."""
        mock_audio.list_devices.return_value = [
            {"id": 0, "name": "Test Device", "channels": 2}
        ]

        with patch("sys.argv", ["livescribe", "--list-audio"]):
            main()

        assert "Test Device" in capsys.readouterr().out

    def test_list_engines(self, capsys):
        """Test listing engines."""
        with patch("sys.argv", ["livescribe", "--list-engines"]):
            main()

        out = capsys.readouterr().out
        assert "streaming-zh-en" in out
        assert "whisper" in out

    def test_unknown_engine(self):
        """Test an unknown --engine exits with a usage error."""
        with patch("sys.argv", ["livescribe", "-e", "nope"]):
            with pytest.raises(SystemExit):
                main()

    @patch("livescribe.main.signal.signal")
    @patch("livescribe.main.LiveScribe")
    @patch("livescribe.main.load_config")
    def test_main_with_config(self, mock_load, mock_app_class, mock_signal, temp_dir):
        """Test main with config file."""
        mock_app = MagicMock()
        mock_app_class.return_value = mock_app

        with patch("time.sleep", side_effect=raise_keyboard):
            with patch("sys.argv", ["livescribe", "-c", str(temp_dir / "config.yaml")]):
                main()

        mock_load.assert_called_once_with(str(temp_dir / "config.yaml"))
        mock_app.start.assert_called_once_with(enable_web=True, autostart=False)
        mock_app.stop.assert_called_once()

    @patch("livescribe.main.signal.signal")
    @patch("livescribe.main.LiveScribe")
    @patch("livescribe.main.load_config")
    def test_main_no_web_autostarts(self, mock_load, mock_app_class, mock_signal):
        """Test --no-web starts recording right away."""
        mock_app = MagicMock()
        mock_app_class.return_value = mock_app

        with patch("time.sleep", side_effect=raise_keyboard):
            with patch("sys.argv", ["livescribe", "--no-web"]):
                main()

        mock_app.start.assert_called_once_with(enable_web=False, autostart=True)

    @patch("livescribe.main.signal.signal")
    @patch("livescribe.main.LiveScribe")
    @patch("livescribe.main.load_config")
    def test_main_custom_port_and_engine(self, mock_load, mock_app_class, mock_signal):
        """Test -p overrides the port and -e forces the engine."""
        mock_config = MagicMock()
        mock_load.return_value = mock_config

        with patch("time.sleep", side_effect=raise_keyboard):
            with patch("sys.argv", ["livescribe", "-p", "9000", "-e", "vosk"]):
                main()

        assert mock_config.web.port == 9000
        mock_app_class.assert_called_once_with(mock_config, forced_engine="vosk")

    @patch("livescribe.main.LiveScribe")
    @patch("livescribe.main.load_config")
    @patch("livescribe.main.signal.signal")
    def test_signal_handlers(self, mock_signal, mock_load, mock_app_class):
        """Test signal handlers are set up."""
        with patch("time.sleep", side_effect=raise_keyboard):
            with patch("sys.argv", ["livescribe"]):
                main()

        assert mock_signal.call_count >= 2  # SIGINT, SIGTERM
