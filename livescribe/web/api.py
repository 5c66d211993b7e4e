"""FastAPI REST API for controlling LiveScribe."""

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..pipeline.coordinator import PipelineSnapshot

logger = logging.getLogger(__name__)

# Will be set by main.py
_app_instance = None


class ActionResponse(BaseModel):
    """Response model for control actions."""
    success: bool
    message: str
    data: Optional[dict] = None


class StatusResponse(BaseModel):
    """Response model for pipeline status."""
    state: str
    error: Optional[str] = None
    selected_engine: dict
    audio_level: float
    partial_text: str
    stats: dict
    uptime_seconds: float


class EngineRequest(BaseModel):
    """Request body for engine selection."""
    engine_id: str


def set_app_instance(instance) -> None:
    """Set the LiveScribe instance for API access."""
    global _app_instance
    _app_instance = instance


def _require_instance():
    if _app_instance is None:
        raise HTTPException(status_code=503, detail="LiveScribe not initialized")
    return _app_instance


def _engine_dict(engine) -> dict[str, Any]:
    return {
        "id": engine.id,
        "display_name": engine.display_name,
        "is_streaming": engine.is_streaming,
    }


def _stats_dict(snapshot: PipelineSnapshot) -> dict[str, Any]:
    stats = snapshot.session_stats
    return {
        "total_segments": stats.total_segments,
        "total_audio_duration_ms": stats.total_audio_duration_ms,
        "total_decode_time_ms": stats.total_decode_time_ms,
        "average_rtf": stats.average_rtf,
        "summary": stats.formatted(),
    }


def _action(success: bool, ok_message: str, fail_message: str) -> ActionResponse:
    snapshot = _require_instance().coordinator.snapshot()
    return ActionResponse(
        success=success,
        message=ok_message if success else fail_message,
        data={
            "state": snapshot.recording_state.status.value,
            "error": snapshot.recording_state.message,
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="LiveScribe API",
        description="Live microphone transcription control API",
        version="0.1.0",
    )

    # CORS for local network access
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store start time for uptime calculation
    app.state.start_time = datetime.now()

    @app.get("/api/status", response_model=StatusResponse)
    async def get_status():
        """Get current pipeline status."""
        snapshot = _require_instance().coordinator.snapshot()
        uptime = (datetime.now() - app.state.start_time).total_seconds()

        return StatusResponse(
            state=snapshot.recording_state.status.value,
            error=snapshot.recording_state.message,
            selected_engine=_engine_dict(snapshot.selected_engine),
            audio_level=snapshot.audio_level,
            partial_text=snapshot.partial_text,
            stats=_stats_dict(snapshot),
            uptime_seconds=uptime,
        )

    @app.get("/api/engines")
    async def get_engines():
        """List selectable engines."""
        snapshot = _require_instance().coordinator.snapshot()
        return {
            "success": True,
            "data": {
                "selected": snapshot.selected_engine.id,
                "engines": [_engine_dict(e) for e in snapshot.available_engines],
            },
        }

    # Model loading blocks, so these run in the threadpool
    @app.post("/api/engine", response_model=ActionResponse)
    def select_engine(request: EngineRequest):
        """Switch the active engine."""
        instance = _require_instance()
        success = instance.coordinator.select_engine(request.engine_id)
        return _action(
            success,
            f"Engine switched to {request.engine_id}",
            f"Could not switch engine to {request.engine_id}",
        )

    @app.post("/api/initialize", response_model=ActionResponse)
    def initialize():
        """Build the backends for the selected engine."""
        success = _require_instance().coordinator.initialize()
        return _action(success, "Engine initialized", "Initialization did not complete")

    @app.post("/api/recording/start", response_model=ActionResponse)
    def start_recording():
        success = _require_instance().coordinator.start_recording()
        return _action(success, "Recording started", "Recording could not be started")

    @app.post("/api/recording/stop", response_model=ActionResponse)
    def stop_recording():
        success = _require_instance().coordinator.stop_recording()
        return _action(success, "Recording stopped", "Not recording")

    @app.post("/api/recording/toggle", response_model=ActionResponse)
    def toggle_recording():
        success = _require_instance().coordinator.toggle_recording()
        return _action(success, "Recording toggled", "Recording could not be toggled")

    @app.get("/api/transcript")
    async def get_transcript():
        """Get transcript lines of the current session."""
        snapshot = _require_instance().coordinator.snapshot()
        lines = [
            {
                "index": line.index,
                "text": line.text,
                "engine_name": line.engine_name,
                "segment_duration_ms": line.segment_duration_ms,
                "decode_time_ms": line.decode_time_ms,
                "rtf": line.rtf,
            }
            for line in snapshot.transcript_lines
        ]
        return {"success": True, "data": {"lines": lines, "stats": _stats_dict(snapshot)}}

    @app.delete("/api/transcript", response_model=ActionResponse)
    async def clear_transcript():
        _require_instance().coordinator.clear_transcript()
        return ActionResponse(success=True, message="Transcript cleared")

    @app.get("/api/transcript/export", response_class=PlainTextResponse)
    async def export_transcript():
        """Get the transcript as shareable plain text."""
        text = _require_instance().coordinator.export_transcript()
        if not text:
            raise HTTPException(status_code=404, detail="Transcript is empty")
        return text

    @app.get("/api/audio/devices")
    def get_audio_devices():
        """List available audio input devices."""
        instance = _require_instance()
        try:
            return {"success": True, "data": instance.list_audio_devices()}
        except Exception as e:
            logger.error(f"Failed to list audio devices: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    return app
