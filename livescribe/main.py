"""Main entry point for LiveScribe - live microphone transcription."""

import argparse
import logging
import signal
import sys
import threading
import time
from typing import Optional

import uvicorn

from .audio.capture import AudioCapture
from .config import Config, load_config
from .engines.factory import EngineContext, EngineFactory
from .engines.registry import ENGINES, get_engine
from .errors import InvalidArgument
from .pipeline.coordinator import PipelineCoordinator, PipelineSnapshot
from .preferences import PreferenceStore
from .web.api import create_app, set_app_instance

logger = logging.getLogger(__name__)


class LiveScribe:
    """Application wiring: capture, coordinator, preferences and web server."""

    def __init__(self, config: Config, forced_engine: Optional[str] = None):
        self.config = config
        self._running = False

        self.preferences = PreferenceStore(config.preferences.path)
        self.factory = EngineFactory(EngineContext(config))
        self.coordinator = PipelineCoordinator(
            config,
            self.factory,
            source_factory=lambda: AudioCapture(config.audio),
            preferences=self.preferences,
        )
        self.coordinator.on_update(self._on_update)

        if forced_engine is not None:
            self.coordinator.force_engine(forced_engine)

        self._last_line_count = 0

        # Web server
        self._web_thread: Optional[threading.Thread] = None
        self._web_server: Optional[uvicorn.Server] = None

    def _on_update(self, snapshot: PipelineSnapshot) -> None:
        """Print new transcript lines to stdout."""
        lines = snapshot.transcript_lines
        if len(lines) < self._last_line_count:
            self._last_line_count = 0
        for line in lines[self._last_line_count:]:
            print(line.formatted(), flush=True)
        self._last_line_count = len(lines)

    def _start_web_server(self, host: str, port: int) -> None:
        """Start the web server in a background thread."""
        logger.info(f"Starting web server on {host}:{port}...")

        set_app_instance(self)
        app = create_app()

        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._web_server = uvicorn.Server(config)

        def run_server():
            self._web_server.run()

        self._web_thread = threading.Thread(target=run_server, daemon=True)
        self._web_thread.start()

        logger.info(f"Web server started at http://{host}:{port}")

    def _stop_web_server(self) -> None:
        """Stop the web server."""
        if self._web_server is not None:
            logger.info("Stopping web server...")
            self._web_server.should_exit = True
            if self._web_thread is not None:
                self._web_thread.join(timeout=5.0)

    def start(self, enable_web: bool = True, autostart: bool = False) -> None:
        """Initialize the engine and start serving."""
        if self._running:
            logger.warning("LiveScribe already running")
            return

        logger.info("Starting LiveScribe...")
        self._running = True
        self.config.ensure_directories()

        if enable_web:
            self._start_web_server(self.config.web.host, self.config.web.port)

        if self.coordinator.initialize() and autostart:
            self.coordinator.start_recording()

        logger.info("LiveScribe started")

    def stop(self) -> None:
        """Stop recording and release everything."""
        if not self._running:
            return

        logger.info("Stopping LiveScribe...")
        self._running = False

        self._stop_web_server()
        self.coordinator.close()

        logger.info("LiveScribe stopped")

    def list_audio_devices(self) -> list[dict]:
        return AudioCapture.list_devices()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="LiveScribe - live transcription")
    parser.add_argument(
        "-c", "--config",
        default=None,
        help="Path to configuration file (default: $LIVESCRIBE_CONFIG or config/settings.yaml)",
    )
    parser.add_argument(
        "-e", "--engine",
        default=None,
        help="Force an engine id for this run, without saving it",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=None,
        help="Web server port (overrides config)",
    )
    parser.add_argument(
        "--no-web",
        action="store_true",
        help="Disable web server",
    )
    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Start recording as soon as the engine is ready",
    )
    parser.add_argument(
        "--list-audio",
        action="store_true",
        help="List available audio devices",
    )
    parser.add_argument(
        "--list-engines",
        action="store_true",
        help="List available ASR engines",
    )
    args = parser.parse_args()

    if args.list_audio:
        print("Available audio devices:")
        for dev in AudioCapture.list_devices():
            print(f"  [{dev['id']}] {dev['name']} ({dev['channels']}ch)")
        return

    if args.list_engines:
        print("Available engines:")
        for engine in ENGINES:
            mode = "streaming" if engine.is_streaming else "segment"
            print(f"  {engine.id:<16} {engine.display_name} ({mode})")
        return

    if args.engine is not None:
        try:
            get_engine(args.engine)
        except InvalidArgument as e:
            parser.error(str(e))

    config = load_config(args.config)
    if args.port is not None:
        config.web.port = args.port
    config.setup_logging()

    logger.info("=" * 50)
    logger.info("LiveScribe - live microphone transcription")
    logger.info("=" * 50)

    app = LiveScribe(config, forced_engine=args.engine)

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}")
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app.start(enable_web=not args.no_web, autostart=args.autostart or args.no_web)

    if not args.no_web:
        logger.info(f"API available at http://localhost:{config.web.port}")

    # Run until interrupted
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        app.stop()


if __name__ == "__main__":
    main()
