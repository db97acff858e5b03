"""
Audioscribe - Speech Pipeline Internal Schemas

Lightweight dataclasses used as internal contracts between the pipeline
stages (transcoder → WAV reader → recognizer).
These are NOT the public API schemas (those live in audioscribe/schemas/__init__.py).
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


# ── Job lifecycle ──────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    pending = "pending"
    converting = "converting"
    validating = "validating"
    recognizing = "recognizing"
    done = "done"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.done, JobStatus.failed)


# ── Transcoder request ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class TranscodeOptions:
    """
    Target format handed to the transcoder.

    Attributes:
        channels       : Output channel count (1 = mono).
        sample_rate_hz : Output sample rate.
        codec          : FFmpeg audio codec name.
        container      : FFmpeg output format name.
    """
    channels:       int = 1
    sample_rate_hz: int = 16000
    codec:          str = "pcm_s16le"
    container:      str = "wav"


# ── WAV reader output ──────────────────────────────────────────────────────

class AudioEncoding(str, Enum):
    linear_pcm = "linear_pcm"
    ieee_float = "ieee_float"
    a_law = "a_law"
    mu_law = "mu_law"
    other = "other"


@dataclass(frozen=True)
class AudioFormatDescriptor:
    """
    Format header of a WAV container, read once before any sample data.

    Attributes:
        encoding        : Sample encoding resolved from the libsndfile subtype.
        sample_rate_hz  : Frames per second.
        channel_count   : Interleaved channels per frame.
        bits_per_sample : Sample width in bits (0 if unknown).
        subtype         : libsndfile subtype, e.g. "PCM_16", "FLOAT".
        container       : libsndfile major format, e.g. "WAV", "WAVEX".
    """
    encoding:        AudioEncoding
    sample_rate_hz:  int
    channel_count:   int
    bits_per_sample: int
    subtype:         str
    container:       str = "WAV"

    @property
    def block_align(self) -> int:
        """Bytes per frame."""
        return self.channel_count * ((self.bits_per_sample + 7) // 8)

    def matches(self, sample_rate_hz: int, channel_count: int = 1, subtype: str = "PCM_16") -> bool:
        return (
            self.subtype == subtype
            and self.sample_rate_hz == sample_rate_hz
            and self.channel_count == channel_count
        )

    def describe(self) -> str:
        return (
            f"{self.encoding.value}, {self.bits_per_sample}-bit, "
            f"{self.channel_count} ch, {self.sample_rate_hz} Hz"
        )
