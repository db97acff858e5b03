"""
Audioscribe - Exceptions

All Audioscribe errors inherit from AudioscribeError. Each job-level error
carries the HTTP status the transcription endpoint answers with.
"""

from __future__ import annotations

from typing import Optional


class AudioscribeError(Exception):
    """Base exception for all Audioscribe errors."""

    status_code: int = 500


class ModelMissingError(AudioscribeError):
    """The speech model directory is absent or could not be loaded."""

    def __init__(self, model_path: str, reason: Optional[str] = None):
        self.model_path = model_path
        message = reason or (
            "Please download the model from https://alphacephei.com/vosk/models "
            f"and unpack as {model_path} in the current folder."
        )
        super().__init__(message)


class ConversionError(AudioscribeError):
    """The transcoding engine failed to produce a WAV file."""

    def __init__(self, message: str, diagnostic: str = ""):
        self.diagnostic = diagnostic
        super().__init__(message)


class FormatError(AudioscribeError):
    """Transcoded audio does not match the recognizer's PCM format."""

    status_code = 400


class StreamError(AudioscribeError):
    """I/O or decode failure while reading or recognizing PCM data."""


class JobTimeoutError(StreamError):
    """A job ran past its time budget."""
