"""
Audioscribe - Transcription Job
Module : audioscribe/speech_pipeline/job.py

One TranscriptionJob per request. The job owns exactly two interchange
files and walks a fixed state machine:

  pending → converting → validating → recognizing → done
                 └────────────┴─────────────┴──────→ failed

Files
-----
  uploads/<timestamp><ext>                   raw upload, reserved at creation
  converted_files/<timestamp>-converted.wav  reserved at creation, written by the transcoder

Both are removed by the `files()` scope whatever the outcome.
"""

from __future__ import annotations

import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from audioscribe.exceptions import AudioscribeError
from audioscribe.speech_pipeline.schemas import JobStatus

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,10}$")
_UPLOAD_READ_SIZE = 1 << 20


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class TranscriptionJob:
    job_id:      str
    input_path:  Path
    output_path: Path
    status:      JobStatus = JobStatus.pending
    result_text: Optional[str] = None
    error:       Optional[AudioscribeError] = None

    # ── Construction ──────────────────────────────────────────────────────

    @classmethod
    def create(
        cls,
        upload_dir: str | Path,
        converted_dir: str | Path,
        original_filename: Optional[str] = None,
    ) -> "TranscriptionJob":
        """
        Reserve a fresh job in *upload_dir* / *converted_dir*.

        Both files are created empty with exclusive-create semantics. The
        converted name carries no upload suffix, so it is claimed first and
        owns the timestamp; on any clash the timestamp is bumped until both
        names are free, so concurrent jobs never share files.
        """
        upload_dir = Path(upload_dir)
        converted_dir = Path(converted_dir)

        suffix = Path(original_filename or "").suffix
        if not _SAFE_SUFFIX.match(suffix):
            suffix = ""

        stamp = _now_ms()
        while True:
            output_path = converted_dir / f"{stamp}-converted.wav"
            input_path = upload_dir / f"{stamp}{suffix}"
            try:
                output_path.touch(exist_ok=False)
            except FileExistsError:
                stamp += 1
                continue
            try:
                input_path.touch(exist_ok=False)
                break
            except FileExistsError:
                delete_temp_file(output_path)
                stamp += 1
            except OSError:
                delete_temp_file(output_path)
                raise

        return cls(
            job_id=str(stamp),
            input_path=input_path,
            output_path=output_path,
        )

    # ── State machine ─────────────────────────────────────────────────────

    def advance(self, status: JobStatus) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Job {self.job_id} is already {self.status.value}")
        if status.is_terminal:
            raise ValueError("Use succeed() or fail() to finish a job")
        logger.debug(f"[Job {self.job_id}] {self.status.value} → {status.value}")
        self.status = status

    def succeed(self, text: str) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Job {self.job_id} is already {self.status.value}")
        self.result_text = text
        self.status = JobStatus.done

    def fail(self, error: AudioscribeError) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Job {self.job_id} is already {self.status.value}")
        self.error = error
        self.status = JobStatus.failed

    # ── Files ─────────────────────────────────────────────────────────────

    @contextmanager
    def files(self) -> Iterator["TranscriptionJob"]:
        """Scope that deletes both job files on every exit path."""
        try:
            yield self
        finally:
            self.discard_files()

    def discard_files(self) -> None:
        delete_temp_file(self.input_path)
        delete_temp_file(self.output_path)


# ══════════════════════════════════════════════════════════════════════════════
# Temporary file helpers
# ══════════════════════════════════════════════════════════════════════════════

def ensure_job_dirs(*directories: str | Path) -> None:
    """Create the upload / converted-file directories if absent."""
    for directory in directories:
        Path(directory).mkdir(parents=True, exist_ok=True)


async def save_upload(upload_file, dest: Path) -> int:
    """
    Stream a FastAPI UploadFile into *dest* (the job's reserved input path).

    Returns the number of bytes written.
    """
    written = 0
    with dest.open("wb") as fh:
        while chunk := await upload_file.read(_UPLOAD_READ_SIZE):
            fh.write(chunk)
            written += len(chunk)

    logger.debug(f"[Upload] Saved upload → {dest} ({written} bytes)")
    return written


def delete_temp_file(path: Path) -> None:
    """Safely remove a temporary audio file."""
    try:
        path.unlink(missing_ok=True)
        logger.debug(f"[Upload] Deleted temp file: {path}")
    except OSError as exc:
        logger.warning(f"[Upload] Could not delete temp file {path}: {exc}")
