"""
Test configuration and shared fixtures.

The recognizer and transcoder are replaced by in-process fakes so the suite
runs without FFmpeg or a Vosk model. Tests that need the real engines are
marked and skipped when those are missing.
"""

from __future__ import annotations

import math
import shutil
import stat
import struct
import sys
import wave
from pathlib import Path
from typing import List, Optional

import pytest

from audioscribe.config import Settings
from audioscribe.exceptions import ConversionError
from audioscribe.speech_pipeline.job import TranscriptionJob
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline

SPOKEN_TEXT = "testing one two three"


# ══════════════════════════════════════════════════════════════════════════
# WAV builders
# ══════════════════════════════════════════════════════════════════════════

def write_wav(
    path: Path,
    seconds: float = 1.0,
    sample_rate: int = 16000,
    channels: int = 1,
    frequency: float = 440.0,
) -> Path:
    """Write a 16-bit PCM sine tone with the stdlib wave module."""
    n_frames = int(seconds * sample_rate)
    samples = []
    for i in range(n_frames):
        value = int(math.sin(2 * math.pi * frequency * i / sample_rate) * 12000)
        samples.extend([value] * channels)

    with wave.open(str(path), "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(struct.pack(f"<{len(samples)}h", *samples))
    return path


def read_frames(path: Path) -> bytes:
    with wave.open(str(path), "rb") as wf:
        return wf.readframes(wf.getnframes())


def fmt_body(channels: int = 1, rate: int = 16000, bits: int = 16, tag: int = 1) -> bytes:
    block = channels * bits // 8
    return struct.pack("<HHIIHH", tag, channels, rate, rate * block, block, bits)


def build_wav_bytes(
    fmt: bytes,
    data: bytes,
    extra_chunks: bytes = b"",
    data_size: Optional[int] = None,
) -> bytes:
    """Assemble a RIFF/WAVE file by hand."""
    fmt_chunk = b"fmt " + struct.pack("<I", len(fmt)) + fmt + (b"\0" if len(fmt) & 1 else b"")
    size = len(data) if data_size is None else data_size
    data_chunk = b"data" + struct.pack("<I", size) + data
    body = b"WAVE" + fmt_chunk + extra_chunks + data_chunk
    return b"RIFF" + struct.pack("<I", len(body)) + body


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════

class FakeSession:
    def __init__(self, text: str, fail_after: Optional[int] = None):
        self.text = text
        self.fail_after = fail_after
        self.chunks: List[bytes] = []
        self.finalized = False
        self.closed = False

    def accept(self, chunk: bytes) -> None:
        if self.fail_after is not None and len(self.chunks) >= self.fail_after:
            raise OSError("decoder fault")
        self.chunks.append(chunk)

    def finalize(self) -> str:
        self.finalized = True
        return self.text

    def close(self) -> None:
        self.closed = True


class FakeEngine:
    """Stands in for RecognizerEngine; one FakeSession per job."""

    def __init__(self, text: str = SPOKEN_TEXT, fail_after: Optional[int] = None):
        self.text = text
        self.fail_after = fail_after
        self.sessions: List[FakeSession] = []
        self.sample_rate = 16000
        self.is_loaded = True

    def create_session(self) -> FakeSession:
        session = FakeSession(self.text, self.fail_after)
        self.sessions.append(session)
        return session

    def close(self) -> None:
        self.is_loaded = False


class CopyTranscoder:
    """Passes RIFF input through unchanged and rejects anything else."""

    def __init__(self):
        self.calls = []

    async def convert(self, input_path, output_path, options=None):
        self.calls.append((Path(input_path), Path(output_path), options))
        if Path(input_path).read_bytes()[:4] != b"RIFF":
            raise ConversionError(
                "ffmpeg exited with status 1",
                diagnostic="Invalid data found when processing input",
            )
        shutil.copyfile(input_path, output_path)
        return Path(output_path)


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=str(tmp_path / "uploads"),
        converted_dir=str(tmp_path / "converted_files"),
        vosk_model_path=str(tmp_path / "models" / "missing-model"),
        transcode_timeout_seconds=10.0,
        job_timeout_seconds=10.0,
        chunk_frames=1000,
    )


@pytest.fixture
def job_dirs(settings: Settings) -> Settings:
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.converted_dir).mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def copy_transcoder() -> CopyTranscoder:
    return CopyTranscoder()


@pytest.fixture
def pipeline(fake_engine, copy_transcoder, job_dirs) -> TranscriptionPipeline:
    return TranscriptionPipeline(
        fake_engine,
        copy_transcoder,
        sample_rate=16000,
        chunk_frames=job_dirs.chunk_frames,
        job_timeout=job_dirs.job_timeout_seconds,
    )


@pytest.fixture
def make_job(job_dirs: Settings):
    """Create a job whose input holds a copy of the given file or bytes."""

    def _make(source, filename: str = "upload.wav") -> TranscriptionJob:
        job = TranscriptionJob.create(job_dirs.upload_dir, job_dirs.converted_dir, filename)
        if isinstance(source, bytes):
            job.input_path.write_bytes(source)
        else:
            shutil.copyfile(source, job.input_path)
        return job

    return _make


def leftover_files(settings: Settings) -> List[Path]:
    found = []
    for directory in (settings.upload_dir, settings.converted_dir):
        root = Path(directory)
        if root.exists():
            found.extend(root.iterdir())
    return found


def write_script(path: Path, body: str) -> Path:
    """Write an executable /bin/sh script standing in for an external tool."""
    if sys.platform == "win32":
        pytest.skip("shell-script stand-in needs a POSIX shell")
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_ffmpeg(tmp_path: Path) -> Path:
    """Executable standing in for ffmpeg: copies the -i input to the last argument."""
    return write_script(
        tmp_path / "fake-ffmpeg",
        'for last; do :; done\n'
        'head -c 4 "$5" | grep -q RIFF || { echo "Invalid data found when processing input" >&2; exit 1; }\n'
        'exec cp "$5" "$last"\n',
    )


requires_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None, reason="ffmpeg binary not on PATH"
)
