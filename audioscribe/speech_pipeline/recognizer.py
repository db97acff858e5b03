"""
Audioscribe - Vosk Recognizer
Module : audioscribe/speech_pipeline/recognizer.py

Wraps the Vosk (Kaldi) offline recognizer.

Model vs. session
-----------------
• RecognizerEngine   - the loaded acoustic/language model. Expensive to load,
                       read-only once loaded, shared by every job.
• RecognitionSession - one KaldiRecognizer per job. Holds the decoding state
                       that accumulates across accept() calls, so it is never
                       shared between jobs.

Vosk closes an utterance whenever it detects a pause and returns it from
Result(); FinalResult() only flushes what came after the last pause. The
session collects every closed utterance so finalize() returns the whole
recording, not just its tail.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

from loguru import logger

from audioscribe.exceptions import ModelMissingError

# ── Process-wide engine holder ─────────────────────────────────────────────
_ENGINE: Optional["RecognizerEngine"] = None


class RecognitionSession:
    """Per-job decoding context bound to a loaded model."""

    def __init__(self, recognizer):
        self._recognizer = recognizer
        self._utterances: List[str] = []
        self._finalized = False

    @property
    def is_open(self) -> bool:
        return self._recognizer is not None and not self._finalized

    def accept(self, chunk: bytes) -> None:
        """Feed one chunk of 16-bit mono PCM. Order matters."""
        self._ensure_open()
        if self._recognizer.AcceptWaveform(chunk):
            self._collect(self._recognizer.Result())

    def finalize(self) -> str:
        """Flush the decoder and return the full transcription."""
        self._ensure_open()
        self._collect(self._recognizer.FinalResult())
        self._finalized = True
        return " ".join(self._utterances)

    def close(self) -> None:
        self._recognizer = None

    def _collect(self, raw: str) -> None:
        text = json.loads(raw).get("text", "").strip()
        if text:
            self._utterances.append(text)

    def _ensure_open(self) -> None:
        if self._recognizer is None:
            raise RuntimeError("Recognition session is closed")
        if self._finalized:
            raise RuntimeError("Recognition session already finalized")


class RecognizerEngine:
    """Loaded Vosk model plus the sample rate every session decodes at."""

    def __init__(self, model, model_path: str | Path, sample_rate: int):
        self._model = model
        self.model_path = Path(model_path)
        self.sample_rate = sample_rate

    @classmethod
    def initialize(
        cls,
        model_path: str | Path,
        sample_rate: int = 16000,
        log_level: int = -1,
    ) -> "RecognizerEngine":
        """
        Load the model at *model_path*.

        Raises
        ------
        ModelMissingError : the directory does not exist or Vosk rejects it.
        """
        model_path = Path(model_path)
        if not model_path.is_dir():
            raise ModelMissingError(str(model_path))

        import vosk

        vosk.SetLogLevel(log_level)
        logger.info(f"[Recognizer] Loading Vosk model from '{model_path}' …")
        try:
            model = vosk.Model(str(model_path))
        except Exception as exc:
            raise ModelMissingError(
                str(model_path), f"Vosk could not load model at {model_path}: {exc}"
            ) from exc

        logger.info(f"[Recognizer] ✅ Model loaded ({sample_rate} Hz).")
        return cls(model, model_path, sample_rate)

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def create_session(self) -> RecognitionSession:
        if self._model is None:
            raise RuntimeError("Recognizer engine has been released")

        from vosk import KaldiRecognizer

        return RecognitionSession(KaldiRecognizer(self._model, self.sample_rate))

    def close(self) -> None:
        """Drop the model reference; Vosk frees it with the last session."""
        self._model = None


# ── Public API ─────────────────────────────────────────────────────────────

def load_engine(
    model_path: str | Path,
    sample_rate: int = 16000,
    log_level: int = -1,
) -> RecognizerEngine:
    """Load (and cache) the process-wide recognizer engine."""
    global _ENGINE

    if _ENGINE is not None and _ENGINE.is_loaded:
        if _ENGINE.model_path == Path(model_path) and _ENGINE.sample_rate == sample_rate:
            return _ENGINE
        _ENGINE.close()

    _ENGINE = RecognizerEngine.initialize(model_path, sample_rate, log_level)
    return _ENGINE


def release_engine() -> None:
    """Release the cached engine (server shutdown)."""
    global _ENGINE

    if _ENGINE is not None:
        _ENGINE.close()
        logger.info("[Recognizer] Model released.")
    _ENGINE = None
