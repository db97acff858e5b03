"""
Audioscribe - Transcription Pipeline Orchestrator
Module : audioscribe/speech_pipeline/pipeline.py

Drives one TranscriptionJob from raw upload to text:

  Stage 1 - Transcode          (FFmpeg subprocess, awaited)
  Stage 2 - Open & validate    (WAV header must be 16-bit PCM, mono, 16 kHz)
  Stage 3 - Stream & recognize (chunks fed in file order to one Vosk session)
  Stage 4 - Finalize           (session text becomes the job result)

Every stage failure ends the job in `failed` with a typed error; every exit
path, including timeouts and cancellation, goes through the job's `files()`
scope so neither interchange file survives the call.

Stages 2 and 3 block on file reads and Kaldi decoding, so they run in the
default thread pool and the event loop is never blocked.

Usage
-----
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline

pipeline = TranscriptionPipeline(engine, FfmpegTranscoder())
job = await pipeline.run(TranscriptionJob.create("uploads", "converted_files", "call.mp3"))
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from audioscribe.config import Settings
from audioscribe.exceptions import (
    AudioscribeError,
    FormatError,
    JobTimeoutError,
    StreamError,
)
from audioscribe.speech_pipeline.job import TranscriptionJob
from audioscribe.speech_pipeline.recognizer import RecognizerEngine
from audioscribe.speech_pipeline.schemas import JobStatus, TranscodeOptions
from audioscribe.speech_pipeline.transcoder import FfmpegTranscoder
from audioscribe.speech_pipeline.wav_reader import WavStream, open_wav


class TranscriptionPipeline:
    """Transcoder → WAV reader → recognizer, one job at a time per call."""

    def __init__(
        self,
        engine: RecognizerEngine,
        transcoder: FfmpegTranscoder,
        sample_rate: int = 16000,
        chunk_frames: int = 4000,
        job_timeout: Optional[float] = None,
        max_concurrent_jobs: int = 2,
    ):
        self.engine = engine
        self.transcoder = transcoder
        self.sample_rate = sample_rate
        self.chunk_frames = chunk_frames
        self.job_timeout = job_timeout
        self.options = TranscodeOptions(channels=1, sample_rate_hz=sample_rate)
        self._slots = asyncio.Semaphore(max(1, max_concurrent_jobs))

    @classmethod
    def from_settings(
        cls,
        engine: RecognizerEngine,
        settings: Settings,
        transcoder: Optional[FfmpegTranscoder] = None,
    ) -> "TranscriptionPipeline":
        return cls(
            engine=engine,
            transcoder=transcoder or FfmpegTranscoder(
                binary=settings.ffmpeg_binary,
                timeout=settings.transcode_timeout_seconds,
            ),
            sample_rate=settings.sample_rate,
            chunk_frames=settings.chunk_frames,
            job_timeout=settings.job_timeout_seconds,
            max_concurrent_jobs=settings.max_concurrent_jobs,
        )

    # ══════════════════════════════════════════════════════════════════════
    # Entry point
    # ══════════════════════════════════════════════════════════════════════

    async def run(self, job: TranscriptionJob) -> TranscriptionJob:
        """
        Run *job* to a terminal state and delete its files.

        Pipeline errors are recorded on the job (`job.error`) rather than
        raised; the returned job is always `done` or `failed` unless the
        calling task itself is cancelled.
        """
        logger.info(f"[Pipeline] ▶ Job {job.job_id} | input='{job.input_path.name}'")
        cancel = threading.Event()

        with job.files():
            try:
                await asyncio.wait_for(self._process(job, cancel), timeout=self.job_timeout)
            except asyncio.TimeoutError:
                job.fail(JobTimeoutError(
                    f"Job exceeded {self.job_timeout:g}s during {job.status.value}"
                ))
            except AudioscribeError as exc:
                job.fail(exc)
            finally:
                cancel.set()

        if job.status is JobStatus.done:
            logger.info(f"[Pipeline] ✅ Job {job.job_id} done ({len(job.result_text)} chars)")
        else:
            logger.warning(
                f"[Pipeline] Job {job.job_id} failed: "
                f"{type(job.error).__name__}: {job.error}"
            )
        return job

    # ══════════════════════════════════════════════════════════════════════
    # Stages
    # ══════════════════════════════════════════════════════════════════════

    async def _process(self, job: TranscriptionJob, cancel: threading.Event) -> None:
        # ── Stage 1: Transcode ────────────────────────────────────────────
        job.advance(JobStatus.converting)
        await self.transcoder.convert(job.input_path, job.output_path, self.options)

        async with self._slots:
            # ── Stage 2: Open & validate ──────────────────────────────────
            job.advance(JobStatus.validating)
            stream = await self._in_worker(cancel, self._open_validated, job.output_path, cancel)

            # ── Stage 3 + 4: Stream, recognize, finalize ──────────────────
            job.advance(JobStatus.recognizing)
            text = await self._in_worker(cancel, self._recognize, stream, cancel, job.job_id)

        job.succeed(text)

    async def _in_worker(self, cancel: threading.Event, fn, *args):
        """
        Run *fn* in the default executor.

        If the job is cancelled (timeout or caller), the worker is told to
        stop and awaited before the cancellation propagates, so the
        concurrency slot and the job files are only released once no thread
        is touching them.
        """
        future = asyncio.get_running_loop().run_in_executor(None, fn, *args)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            cancel.set()
            try:
                leftover = await future
            except Exception as exc:
                logger.debug(f"[Pipeline] Worker stopped after cancellation: {exc}")
            else:
                if isinstance(leftover, WavStream):
                    leftover.close()
            raise

    def _open_validated(self, path: Path, cancel: threading.Event) -> WavStream:
        stream = open_wav(path, self.chunk_frames)
        descriptor = stream.descriptor

        if not descriptor.matches(self.sample_rate):
            stream.close()
            raise FormatError(
                f"Invalid WAV file format. Must be 16-bit PCM, mono, "
                f"{self.sample_rate / 1000:g}kHz (got {descriptor.describe()})."
            )
        if cancel.is_set():
            stream.close()
            raise JobTimeoutError("Job cancelled before recognition started")

        return stream

    def _recognize(self, stream: WavStream, cancel: threading.Event, job_id: str) -> str:
        session = None
        fed = 0
        try:
            with stream:
                session = self.engine.create_session()
                for chunk in stream.chunks():
                    if cancel.is_set():
                        raise JobTimeoutError("Job cancelled during recognition")
                    session.accept(chunk)
                    fed += 1
                text = session.finalize()
        except AudioscribeError:
            raise
        except Exception as exc:
            raise StreamError(f"Recognition failed after {fed} chunks: {exc}") from exc
        finally:
            if session is not None:
                session.close()

        logger.debug(f"[Pipeline] Job {job_id}: {fed} chunks recognized")
        return text
