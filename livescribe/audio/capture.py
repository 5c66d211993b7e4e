"""Audio capture module for continuous microphone input."""

import logging
import queue
import threading
from typing import Optional, Union

import numpy as np
import sounddevice as sd

from ..config import AudioConfig
from ..errors import CaptureError
from .pcm import pcm16_to_float

logger = logging.getLogger(__name__)


CaptureItem = Union[np.ndarray, CaptureError]


class AudioCapture:
    """Continuous 16-bit microphone capture delivering float frames through a bounded queue."""

    def __init__(self, config: AudioConfig):
        self.config = config
        self.sample_rate = config.sample_rate
        self.channels = config.channels
        self.frame_samples = config.frame_samples

        self._audio_queue: queue.Queue[CaptureItem] = queue.Queue(maxsize=config.queue_frames)
        self._stream: Optional[sd.InputStream] = None
        self._running = False
        self._lock = threading.Lock()
        self._dropped_frames = 0

    def _audio_callback(
        self,
        indata: np.ndarray,
        frames: int,
        time_info: dict,
        status: sd.CallbackFlags,
    ) -> None:
        """Callback for sounddevice stream."""
        if status:
            logger.warning(f"Audio callback status: {status}")

        # First channel only, int16 -> float32
        pcm = indata[:, 0] if indata.ndim > 1 else indata
        self._enqueue(pcm16_to_float(pcm.copy(), frames))

    def _finished_callback(self) -> None:
        """Called by sounddevice when the stream ends."""
        if self._running:
            self._enqueue(CaptureError("Audio stream ended unexpectedly"))

    def _enqueue(self, item: CaptureItem) -> None:
        try:
            self._audio_queue.put_nowait(item)
        except queue.Full:
            # Consumer is behind: drop the oldest frame
            try:
                self._audio_queue.get_nowait()
            except queue.Empty:
                pass
            self._dropped_frames += 1
            if self._dropped_frames % 100 == 1:
                logger.warning(f"Audio queue full, dropped {self._dropped_frames} frames")
            self._audio_queue.put_nowait(item)

    def read(self, timeout: float = 0.1) -> Optional[CaptureItem]:
        """Return the next frame or capture error, or None if nothing arrived in time."""
        try:
            return self._audio_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def start(self) -> None:
        """Start audio capture. Failures are queued as CaptureError."""
        with self._lock:
            if self._running:
                logger.warning("Audio capture already running")
                return

            logger.info(f"Starting audio capture: {self.sample_rate}Hz, {self.channels}ch")

            # Resolve device
            device = None
            if self.config.device != "default":
                try:
                    device = int(self.config.device)
                except ValueError:
                    device = self.config.device

            self._dropped_frames = 0
            self._running = True

            try:
                self._stream = sd.InputStream(
                    device=device,
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype=np.int16,
                    blocksize=self.frame_samples,
                    callback=self._audio_callback,
                    finished_callback=self._finished_callback,
                )
                self._stream.start()
            except Exception as e:
                logger.error(f"Failed to open audio input: {e}")
                self._running = False
                self._stream = None
                self._enqueue(CaptureError(f"Failed to open audio input: {e}"))
                return

            logger.info("Audio capture started")

    def stop(self) -> None:
        """Stop audio capture and release the input stream."""
        with self._lock:
            was_running = self._running
            self._running = False

            if self._stream is not None:
                try:
                    self._stream.stop()
                    self._stream.close()
                except Exception as e:
                    logger.warning(f"Error closing audio stream: {e}")
                self._stream = None

            # Clear queue
            while not self._audio_queue.empty():
                try:
                    self._audio_queue.get_nowait()
                except queue.Empty:
                    break

            if was_running:
                logger.info("Audio capture stopped")

    def is_running(self) -> bool:
        """Check if capture is running."""
        return self._running

    @staticmethod
    def list_devices() -> list[dict]:
        """List available audio input devices."""
        devices = []
        for i, device in enumerate(sd.query_devices()):
            if device["max_input_channels"] > 0:
                devices.append({
                    "id": i,
                    "name": device["name"],
                    "channels": device["max_input_channels"],
                    "sample_rate": device["default_samplerate"],
                })
        return devices
