"""LiveScribe - live microphone transcription with pluggable ASR engines."""

__version__ = "0.1.0"
