"""
Audioscribe - Application Configuration
Reads settings from environment variables / .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # ── App ──────────────────────────────────────────────────
    app_name: str = "Audioscribe Transcription API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    # ── Server ───────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 3000

    # ── Recognizer (Vosk) ────────────────────────────────────
    # Unpacked model directory; the server refuses to start without it.
    vosk_model_path: str = "models/vosk-model-small-en-us-0.15"
    # Passed to vosk.SetLogLevel. -1 silences Kaldi's own logging.
    vosk_log_level: int = -1
    sample_rate: int = 16000
    # Frames handed to the recognizer per accept call.
    chunk_frames: int = 4000
    model_download_url: str = (
        "https://alphacephei.com/vosk/models/vosk-model-small-en-us-0.15.zip"
    )

    # ── Work directories ─────────────────────────────────────
    upload_dir: str = "uploads"
    converted_dir: str = "converted_files"

    # ── Transcoder (FFmpeg) ──────────────────────────────────
    ffmpeg_binary: str = "ffmpeg"
    transcode_timeout_seconds: float = 120.0

    # ── Jobs ─────────────────────────────────────────────────
    job_timeout_seconds: float = 300.0
    # Recognition sessions allowed to decode at the same time.
    max_concurrent_jobs: int = 2


@lru_cache
def get_settings() -> Settings:
    """Cache-backed settings loader."""
    return Settings()
