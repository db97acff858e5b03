"""
Audioscribe - Single-file transcription
=========================================
Runs the full pipeline (FFmpeg → WAV reader → Vosk) on one local file and
prints the recognized text.

Usage:
    audioscribe-transcribe path/to/recording.mp3
    audioscribe-transcribe call.wav --model models/vosk-model-en-us-0.22
    audioscribe-transcribe call.wav --verbose

The input is copied into the upload directory first, so the pipeline's
cleanup only ever deletes its own copy.
"""

from __future__ import annotations

import argparse
import asyncio
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from audioscribe.config import Settings, get_settings
from audioscribe.exceptions import ConversionError, ModelMissingError, StreamError
from audioscribe.log import configure_logging
from audioscribe.speech_pipeline.job import TranscriptionJob, ensure_job_dirs
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline
from audioscribe.speech_pipeline.recognizer import RecognizerEngine, load_engine, release_engine


async def transcribe_file(
    source: Path,
    engine: RecognizerEngine,
    settings: Settings,
) -> TranscriptionJob:
    """Transcribe a private copy of *source* and return the finished job."""
    ensure_job_dirs(settings.upload_dir, settings.converted_dir)
    job = TranscriptionJob.create(settings.upload_dir, settings.converted_dir, source.name)

    try:
        shutil.copyfile(source, job.input_path)
    except OSError as exc:
        job.discard_files()
        job.fail(StreamError(f"Could not read {source}: {exc}"))
        return job

    pipeline = TranscriptionPipeline.from_settings(engine, settings)
    return await pipeline.run(job)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Transcribe an audio file to text")
    parser.add_argument("audio", type=str, help="Audio or video file FFmpeg can decode")
    parser.add_argument("--model", type=str, default=None, help="Vosk model directory")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline progress")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else "WARNING")

    source = Path(args.audio)
    if not source.is_file():
        print(f"File not found: {source}", file=sys.stderr)
        return 1

    try:
        engine = load_engine(
            args.model or settings.vosk_model_path,
            sample_rate=settings.sample_rate,
            log_level=settings.vosk_log_level,
        )
    except ModelMissingError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    try:
        job = asyncio.run(transcribe_file(source, engine, settings))
    finally:
        release_engine()

    if job.error is not None:
        print(f"{type(job.error).__name__}: {job.error}", file=sys.stderr)
        if isinstance(job.error, ConversionError) and job.error.diagnostic:
            logger.debug(job.error.diagnostic)
        return 1

    print(job.result_text)
    return 0


def run() -> None:
    """Console script `audioscribe-transcribe`."""
    sys.exit(main())


if __name__ == "__main__":
    run()
