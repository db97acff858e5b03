"""
Audioscribe - FastAPI Entry Point

Audio Transcription API
Offline speech-to-text: FFmpeg transcoding + Vosk recognition.
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from audioscribe.config import Settings, get_settings
from audioscribe.exceptions import ModelMissingError
from audioscribe.log import configure_logging
from audioscribe.routers import transcription
from audioscribe.schemas import HealthStatus, ServiceStatus
from audioscribe.speech_pipeline.job import ensure_job_dirs
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline
from audioscribe.speech_pipeline.recognizer import load_engine, release_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup / shutdown lifecycle."""
    settings: Settings = app.state.settings
    logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")

    ensure_job_dirs(settings.upload_dir, settings.converted_dir)

    # Fail fast: without a model the server must not accept requests
    engine = load_engine(
        settings.vosk_model_path,
        sample_rate=settings.sample_rate,
        log_level=settings.vosk_log_level,
    )
    app.state.engine = engine
    app.state.pipeline = TranscriptionPipeline.from_settings(engine, settings)
    logger.info(f"📌 Model: {settings.vosk_model_path} @ {settings.sample_rate} Hz")

    yield

    release_engine()
    logger.info("🛑 Shutting down Audioscribe API")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="API for transcribing audio files to text with an offline speech model.",
        docs_url="/api-docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ── CORS (open for local dev - restrict in production) ────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routers ───────────────────────────────────────────────────────────
    app.include_router(transcription.router)

    # ── Root health-check ─────────────────────────────────────────────────
    @app.get("/", tags=["Health"], response_model=ServiceStatus)
    async def root(request: Request):
        engine = getattr(request.app.state, "engine", None)
        return ServiceStatus(
            service=settings.app_name,
            version=settings.app_version,
            status="ok",
            model_loaded=bool(engine is not None and engine.is_loaded),
            sample_rate=settings.sample_rate,
        )

    @app.get("/health", tags=["Health"], response_model=HealthStatus)
    async def health():
        return HealthStatus(status="healthy")

    return app


app = create_app()


def run() -> None:
    """Start the HTTP server (console script `audioscribe`)."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)

    # Load before uvicorn takes over; the lifespan reuses the cached engine
    try:
        load_engine(
            settings.vosk_model_path,
            sample_rate=settings.sample_rate,
            log_level=settings.vosk_log_level,
        )
    except ModelMissingError as exc:
        logger.error(str(exc))
        sys.exit(1)

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )
