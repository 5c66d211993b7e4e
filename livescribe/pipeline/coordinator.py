"""Pipeline coordinator: routes captured audio to the active decode backend."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Union

import numpy as np

from ..audio.level import audio_level
from ..audio.segmenter import SegmentBuffer
from ..config import Config
from ..engines.base import DecodeOutcome, SegmentDecoder, StreamingDecoder
from ..engines.factory import EngineFactory
from ..engines.registry import ENGINES, EngineDescriptor, get_engine
from ..errors import CaptureError, InvalidArgument, LiveScribeError, RuntimeDecodeFailure
from ..preferences import PreferenceStore
from .state import TRANSITIONS, RecordingEvent, RecordingState, RecordingStatus, next_state
from .stats import SessionStats, update_stats
from .transcript import TranscriptLine, export_transcript, normalize_text, real_time_factor

logger = logging.getLogger(__name__)


class AudioSource(Protocol):
    """Producer of normalized float frames."""

    def start(self) -> None: ...

    def read(self, timeout: float = 0.1) -> Optional[Union[np.ndarray, CaptureError]]: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class PipelineSnapshot:
    """Immutable view of the coordinator published to observers."""
    recording_state: RecordingState
    selected_engine: EngineDescriptor
    transcript_lines: tuple[TranscriptLine, ...] = ()
    available_engines: tuple[EngineDescriptor, ...] = ENGINES
    audio_level: float = 0.0
    session_stats: SessionStats = field(default_factory=SessionStats)
    partial_text: str = ""


class PipelineCoordinator:
    """
    Owns the recording session state machine and the decode backends.

    A single consumer thread reads frames from the audio source and runs
    every decode for a frame before taking the next one, so transcript
    lines come out in speech order. Observers get immutable snapshots
    through ``on_update`` callbacks.

    Backends belong to that thread until it has exited. A stopped thread
    may still be inside a decode, so engine changes, re-initialization
    and a new recording wait for it and are refused if it outlives
    ``join_timeout``.
    """

    # Seconds to wait for a cancelled consumer thread
    join_timeout = 5.0

    def __init__(
        self,
        config: Config,
        factory: EngineFactory,
        source_factory: Callable[[], AudioSource],
        preferences: Optional[PreferenceStore] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.config = config
        self.sample_rate = config.audio.sample_rate
        self._factory = factory
        self._source_factory = source_factory
        self._preferences = preferences
        self._clock = clock

        self._lock = threading.RLock()
        self._state = RecordingState.idle()
        self._selected = self._initial_engine()
        self._lines: list[TranscriptLine] = []
        self._stats = SessionStats()
        self._audio_level = 0.0
        self._partial_text = ""
        self._next_index = 0
        self._utterance_decode_ms = 0.0

        # Backends, at most one per mode
        self._segment_buffer: Optional[SegmentBuffer] = None
        self._segment_decoder: Optional[SegmentDecoder] = None
        self._segment_engine_id: Optional[str] = None
        self._streaming_decoder: Optional[StreamingDecoder] = None
        self._streaming_engine_id: Optional[str] = None

        self._recording_thread: Optional[threading.Thread] = None
        self._cancel = threading.Event()

        self._callbacks: list[Callable[[PipelineSnapshot], None]] = []

    def _initial_engine(self) -> EngineDescriptor:
        """Saved preference, then configured default, then the first registry entry."""
        candidates = []
        if self._preferences is not None:
            candidates.append(self._preferences.get_engine())
        candidates.append(self.config.engines.default_engine)

        for engine_id in candidates:
            if not engine_id:
                continue
            try:
                return get_engine(engine_id)
            except InvalidArgument:
                logger.warning(f"Ignoring unknown engine id: {engine_id}")
        return ENGINES[0]

    # ==================== Observers ====================

    def on_update(self, callback: Callable[[PipelineSnapshot], None]) -> None:
        """Register callback for state updates."""
        self._callbacks.append(callback)

    def _publish(self, snapshot: PipelineSnapshot) -> None:
        for callback in self._callbacks:
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Update callback error: {e}")

    def _snapshot_locked(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            recording_state=self._state,
            selected_engine=self._selected,
            transcript_lines=tuple(self._lines),
            audio_level=self._audio_level,
            session_stats=self._stats,
            partial_text=self._partial_text,
        )

    def snapshot(self) -> PipelineSnapshot:
        """Get an immutable view of the current state."""
        with self._lock:
            return self._snapshot_locked()

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def selected_engine(self) -> EngineDescriptor:
        return self._selected

    # ==================== State machine ====================

    def _can(self, event: RecordingEvent) -> bool:
        return (self._state.status, event) in TRANSITIONS

    def _apply_locked(self, event: RecordingEvent, message: Optional[str] = None) -> bool:
        new_state = next_state(self._state, event, message)
        if new_state is None:
            logger.warning(f"Ignoring {event.value} while {self._state.status.value}")
            return False
        logger.debug(f"State {self._state.status.value} -> {new_state.status.value}")
        self._state = new_state
        return True

    def _apply(self, event: RecordingEvent, message: Optional[str] = None) -> bool:
        with self._lock:
            changed = self._apply_locked(event, message)
            snapshot = self._snapshot_locked()
        if changed:
            self._publish(snapshot)
        return changed

    # ==================== Backend lifecycle ====================

    def _has_backends(self, engine: EngineDescriptor) -> bool:
        if engine.is_streaming:
            return self._streaming_decoder is not None and self._streaming_engine_id == engine.id
        return (
            self._segment_buffer is not None
            and self._segment_decoder is not None
            and self._segment_engine_id == engine.id
        )

    @staticmethod
    def _close_quietly(backend, label: str) -> None:
        if backend is None:
            return
        try:
            backend.close()
        except Exception as e:
            logger.warning(f"Error closing {label}: {e}")

    def _release_streaming(self) -> None:
        decoder, self._streaming_decoder = self._streaming_decoder, None
        self._streaming_engine_id = None
        self._close_quietly(decoder, "streaming engine")

    def _release_segment_decoder(self) -> None:
        decoder, self._segment_decoder = self._segment_decoder, None
        self._segment_engine_id = None
        self._close_quietly(decoder, "segment engine")

    def _release_segment_pair(self) -> None:
        self._release_segment_decoder()
        buffer, self._segment_buffer = self._segment_buffer, None
        self._close_quietly(buffer, "VAD")

    def _build_backends(self, engine: EngineDescriptor) -> Optional[str]:
        """
        Construct the backends for ``engine``.

        The new backend is built before the old one of the same mode is
        released. On failure the old one is released too, so no stale
        backend is left looking usable.

        Returns:
            Error message, or None on success
        """
        if engine.is_streaming:
            self._release_segment_pair()
            result = self._factory.create(engine.id)
            if not result.ok:
                self._release_streaming()
                return str(result.error)
            self._release_streaming()
            self._streaming_decoder = result.backend
            self._streaming_engine_id = engine.id
            logger.info(f"Streaming engine initialized: {result.backend.name}")
            return None

        self._release_streaming()
        if self._segment_buffer is None:
            vad = self._factory.create_segment_buffer()
            if not vad.ok:
                self._release_segment_decoder()
                return str(vad.error)
            self._segment_buffer = vad.backend

        result = self._factory.create(engine.id)
        if not result.ok:
            self._release_segment_decoder()
            return str(result.error)
        self._release_segment_decoder()
        self._segment_decoder = result.backend
        self._segment_engine_id = engine.id
        logger.info(f"Segment engine initialized: {result.backend.name}")
        return None

    def initialize(self) -> bool:
        """Build the backends for the selected engine."""
        self._wait_for_consumer()
        with self._lock:
            if self._consumer_finishing_locked():
                return False
            if not self._apply_locked(RecordingEvent.INITIALIZE):
                return False
            engine = self._selected
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

        logger.info(f"Initializing engine: {engine.display_name}")
        error = self._build_backends(engine)

        if error is not None:
            logger.error(f"Initialization failed: {error}")
            self._apply(RecordingEvent.INIT_FAILED, f"Initialization failed: {error}")
            return False

        self._apply(RecordingEvent.INIT_SUCCEEDED)
        logger.info("Initialization complete")
        return True

    def select_engine(self, engine_id: str) -> bool:
        """Switch to another engine. Rejected while recording."""
        try:
            engine = get_engine(engine_id)
        except InvalidArgument as e:
            logger.warning(str(e))
            return False

        self._wait_for_consumer()
        with self._lock:
            if self._state.is_recording:
                logger.warning("Cannot change engine while recording")
                return False
            if self._consumer_finishing_locked():
                return False
            # From ERROR the built engine is rebuilt so the session returns to IDLE
            if (
                engine == self._selected
                and self._has_backends(engine)
                and self._state.status is RecordingStatus.IDLE
            ):
                return True
            if not self._apply_locked(RecordingEvent.INITIALIZE):
                return False
            self._selected = engine
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

        logger.info(f"Switching engine to {engine.display_name}")
        error = self._build_backends(engine)

        if error is not None:
            logger.error(f"Error switching engine: {error}")
            self._apply(RecordingEvent.INIT_FAILED, f"Failed to switch engine: {error}")
            return False

        self._apply(RecordingEvent.INIT_SUCCEEDED)
        if self._preferences is not None:
            try:
                self._preferences.set_engine(engine.id)
            except OSError as e:
                logger.warning(f"Could not save engine preference: {e}")
        return True

    def force_engine(self, engine_id: str) -> bool:
        """Select an engine without building it or saving the preference."""
        engine = get_engine(engine_id)
        with self._lock:
            if self._state.is_recording:
                logger.warning("Cannot force engine while recording")
                return False
            self._selected = engine
            snapshot = self._snapshot_locked()
        self._publish(snapshot)
        logger.info(f"Forced ASR engine: {engine.display_name}")
        return True

    # ==================== Recording ====================

    def start_recording(self) -> bool:
        """Start consuming audio. Rejected unless the active engine is built."""
        self._wait_for_consumer()
        with self._lock:
            if not self._can(RecordingEvent.START):
                logger.warning(f"Cannot start recording while {self._state.status.value}")
                return False
            if self._consumer_finishing_locked():
                return False

            engine = self._selected
            if not self._has_backends(engine):
                logger.warning(f"Models not initialized for {engine.display_name}")
                return False

            self._lines = []
            self._stats = SessionStats()
            self._audio_level = 0.0
            self._partial_text = ""
            self._next_index = 0
            self._utterance_decode_ms = 0.0

            if engine.is_streaming:
                self._streaming_decoder.reset()
            else:
                self._segment_buffer.reset()

            self._apply_locked(RecordingEvent.START)
            self._cancel = threading.Event()
            source = self._source_factory()
            self._recording_thread = threading.Thread(
                target=self._recording_loop,
                args=(source, self._cancel),
                name="livescribe-recording",
                daemon=True,
            )
            self._recording_thread.start()
            snapshot = self._snapshot_locked()

        self._publish(snapshot)
        logger.info(f"Recording started (streaming={engine.is_streaming})")
        return True

    def stop_recording(self) -> bool:
        """Stop consuming audio and wait for the capture to be released."""
        with self._lock:
            if not self._apply_locked(RecordingEvent.STOP):
                return False
            self._cancel.set()
            self._audio_level = 0.0
            self._partial_text = ""
            snapshot = self._snapshot_locked()

        self._wait_for_consumer()
        self._publish(snapshot)
        logger.info("Recording stopped")
        return True

    def toggle_recording(self) -> bool:
        status = self._state.status
        if status is RecordingStatus.RECORDING:
            return self.stop_recording()
        if status is RecordingStatus.INITIALIZING:
            logger.warning("Cannot toggle recording while initializing")
            return False
        return self.start_recording()

    def _wait_for_consumer(self, block: bool = False) -> None:
        """
        Join a cancelled consumer thread and forget it once it has exited.

        A thread that is still recording is left alone. Without ``block``
        the wait is bounded by ``join_timeout``.
        """
        with self._lock:
            thread = self._recording_thread
            cancelled = self._cancel.is_set()
        if thread is None or not cancelled or thread is threading.current_thread():
            return

        thread.join(timeout=None if block else self.join_timeout)
        if thread.is_alive():
            logger.warning("Recording thread did not exit in time")
            return

        with self._lock:
            if self._recording_thread is thread:
                self._recording_thread = None

    def _consumer_finishing_locked(self) -> bool:
        """Check for a cancelled consumer thread that still holds the backends."""
        thread = self._recording_thread
        if thread is None or not self._cancel.is_set() or not thread.is_alive():
            return False
        logger.warning("Previous recording is still finishing")
        return True

    def _recording_loop(self, source: AudioSource, cancel: threading.Event) -> None:
        """Consume frames until cancelled or a failure occurs."""
        try:
            source.start()
            while not cancel.is_set():
                item = source.read(timeout=0.1)
                if item is None:
                    continue
                if isinstance(item, CaptureError):
                    self._fail(f"Audio capture error: {item.message}", cancel)
                    break
                self.process_frame(item, cancel)
        except Exception as e:
            logger.error(f"Recording error: {e}", exc_info=True)
            self._fail(f"Recording error: {e}", cancel)
        finally:
            source.stop()

    def _fail(self, message: str, cancel: threading.Event) -> None:
        with self._lock:
            if cancel.is_set():
                return
            cancel.set()
            self._apply_locked(RecordingEvent.FAILURE, message)
            self._audio_level = 0.0
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def process_frame(
        self,
        frame: np.ndarray,
        cancel: Optional[threading.Event] = None,
    ) -> list[TranscriptLine]:
        """
        Run one captured frame through the active backend.

        Returns:
            Transcript lines emitted for this frame
        """
        level = audio_level(frame)
        with self._lock:
            if not self._state.is_recording or (cancel is not None and cancel.is_set()):
                return []
            self._audio_level = level
            engine = self._selected
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

        try:
            if engine.is_streaming:
                return self._process_streaming(frame, cancel)
            return self._process_segments(frame, cancel)
        except LiveScribeError:
            raise
        except Exception as e:
            raise RuntimeDecodeFailure("Decode failed", e) from e

    def _process_segments(
        self,
        frame: np.ndarray,
        cancel: Optional[threading.Event],
    ) -> list[TranscriptLine]:
        buffer, decoder = self._segment_buffer, self._segment_decoder
        if buffer is None or decoder is None:
            return []

        buffer.accept_waveform(frame)

        emitted = []
        while buffer.has_segments():
            if cancel is not None and cancel.is_set():
                logger.debug("Recording stopped, leaving queued segments undecoded")
                break
            segment = buffer.pop_segment()
            segment_duration_ms = len(segment.samples) * 1000.0 / self.sample_rate

            outcome = self._timed_decode(decoder, segment.samples)
            if not outcome.text:
                logger.debug("Discarding blank segment result")
                continue

            line = self._emit(outcome, decoder.name, segment_duration_ms, cancel)
            if line is not None:
                emitted.append(line)
        return emitted

    def _process_streaming(
        self,
        frame: np.ndarray,
        cancel: Optional[threading.Event],
    ) -> list[TranscriptLine]:
        decoder = self._streaming_decoder
        if decoder is None:
            return []

        start = self._clock()
        decoder.accept_waveform(frame, self.sample_rate)
        while decoder.is_ready():
            decoder.decode()
        result = decoder.get_result()
        self._utterance_decode_ms += (self._clock() - start) * 1000.0

        text = normalize_text(result.text)
        if not result.is_final:
            if text:
                with self._lock:
                    self._partial_text = text
            return []

        emitted = []
        if text:
            outcome = DecodeOutcome(text, self._utterance_decode_ms)
            duration_ms = decoder.utterance_samples * 1000.0 / self.sample_rate
            line = self._emit(outcome, decoder.name, duration_ms, cancel)
            if line is not None:
                emitted.append(line)

        # Reset for next utterance
        decoder.reset()
        self._utterance_decode_ms = 0.0
        with self._lock:
            self._partial_text = ""
        return emitted

    def _timed_decode(self, decoder: SegmentDecoder, samples: np.ndarray) -> DecodeOutcome:
        start = self._clock()
        text = decoder.decode(samples, self.sample_rate)
        return DecodeOutcome(normalize_text(text), (self._clock() - start) * 1000.0)

    def _emit(
        self,
        outcome: DecodeOutcome,
        engine_name: str,
        duration_ms: float,
        cancel: Optional[threading.Event],
    ) -> Optional[TranscriptLine]:
        with self._lock:
            if not self._state.is_recording or (cancel is not None and cancel.is_set()):
                logger.debug("Recording stopped, discarding transcript line")
                return None

            line = TranscriptLine(
                index=self._next_index,
                text=outcome.text,
                engine_name=engine_name,
                segment_duration_ms=duration_ms,
                decode_time_ms=outcome.decode_time_ms,
                rtf=real_time_factor(outcome.decode_time_ms, duration_ms),
            )
            self._next_index += 1
            self._lines.append(line)
            self._stats = update_stats(self._stats, line)
            snapshot = self._snapshot_locked()

        logger.info(f"Transcript {line.formatted()}")
        self._publish(snapshot)
        return line

    # ==================== Transcript ====================

    def clear_transcript(self) -> None:
        """Clear lines and stats. Line indices keep counting."""
        with self._lock:
            self._lines = []
            self._stats = SessionStats()
            snapshot = self._snapshot_locked()
        self._publish(snapshot)

    def export_transcript(self) -> str:
        """Get shareable transcript text."""
        with self._lock:
            lines = list(self._lines)
            stats = self._stats
            engine_name = self._selected.display_name
        return export_transcript(lines, engine_name, stats)

    def close(self) -> None:
        """Stop recording and release every backend."""
        logger.info("Releasing pipeline resources")
        if self._state.is_recording:
            self.stop_recording()
        # The consumer is cancelled by now; it exits after its current decode
        self._wait_for_consumer(block=True)
        with self._lock:
            self._release_streaming()
            self._release_segment_pair()
