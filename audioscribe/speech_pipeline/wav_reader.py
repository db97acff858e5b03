"""
Audioscribe - WAV Reader
Module : audioscribe/speech_pipeline/wav_reader.py

Opens a WAV file with soundfile (libsndfile) and exposes:

  • descriptor - AudioFormatDescriptor read from the container header
  • chunks()   - lazy, single-use generator of raw 16-bit sample bytes

Chunks are read in file order. Nothing past the header is decoded until
chunks() is iterated, so a format mismatch can be rejected before any audio
is read.

libsndfile quietly shortens a "data" chunk that claims more bytes than the
file holds. The declared length is recovered from its open log so a cut-off
file still fails while streaming. A declared length of 0xFFFFFFFF (what
streaming encoders write when they cannot seek back) is read until end of
file.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterator, Optional

import soundfile as sf

from audioscribe.exceptions import StreamError
from audioscribe.speech_pipeline.schemas import AudioEncoding, AudioFormatDescriptor

_WAV_CONTAINERS = ("WAV", "WAVEX", "RF64")

# libsndfile subtype → (encoding, bits per sample)
_SUBTYPES = {
    "PCM_S8": (AudioEncoding.linear_pcm, 8),
    "PCM_U8": (AudioEncoding.linear_pcm, 8),
    "PCM_16": (AudioEncoding.linear_pcm, 16),
    "PCM_24": (AudioEncoding.linear_pcm, 24),
    "PCM_32": (AudioEncoding.linear_pcm, 32),
    "FLOAT": (AudioEncoding.ieee_float, 32),
    "DOUBLE": (AudioEncoding.ieee_float, 64),
    "ALAW": (AudioEncoding.a_law, 8),
    "ULAW": (AudioEncoding.mu_law, 8),
}

# Logged by libsndfile when the data chunk overruns the file
_CLAMPED_DATA = re.compile(r"data\s*:\s*(\d+)\s*\(should be\s*(\d+)\)")
_UNKNOWN_SIZE = 0xFFFFFFFF


class WavStream:
    """An opened WAV file positioned at the first sample frame."""

    def __init__(
        self,
        snd: sf.SoundFile,
        descriptor: AudioFormatDescriptor,
        frames: Optional[int],
        chunk_frames: int,
    ):
        self.descriptor = descriptor
        self.frames = frames
        self._snd = snd
        self._chunk_frames = max(1, chunk_frames)
        self._consumed = False

    def chunks(self) -> Iterator[bytes]:
        """Yield int16 sample data in file order. May only be iterated once."""
        if self._consumed:
            raise RuntimeError("WAV stream already consumed; open the file again")
        self._consumed = True
        return self._iter_chunks()

    def _iter_chunks(self) -> Iterator[bytes]:
        frame_bytes = 2 * self.descriptor.channel_count
        read = 0
        try:
            while True:
                data = bytes(self._snd.buffer_read(self._chunk_frames, dtype="int16"))
                if not data:
                    break
                read += len(data) // frame_bytes
                yield data
        except (RuntimeError, OSError) as exc:
            # soundfile.LibsndfileError is a RuntimeError
            raise StreamError(f"Failed to read WAV data after {read} frames: {exc}") from exc

        if self.frames is not None and read < self.frames:
            raise StreamError(
                f"WAV data truncated: {self.frames - read} of {self.frames} frames missing"
            )

    def close(self) -> None:
        self._snd.close()

    def __enter__(self) -> "WavStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def open_wav(path: str | Path, chunk_frames: int = 4000) -> WavStream:
    """
    Open *path* and read its header.

    Raises
    ------
    StreamError : the file cannot be opened, is not a RIFF/WAVE container,
                  or its header is malformed or truncated.
    """
    path = Path(path)
    try:
        snd = sf.SoundFile(str(path))
    except (RuntimeError, OSError) as exc:
        raise StreamError(f"Cannot read WAV file {path.name}: {exc}") from exc

    if snd.format not in _WAV_CONTAINERS:
        snd.close()
        raise StreamError(f"Not a RIFF/WAVE container ({snd.format_info})")

    descriptor = describe(snd)
    return WavStream(snd, descriptor, _declared_frames(snd, descriptor), chunk_frames)


def describe(snd: sf.SoundFile) -> AudioFormatDescriptor:
    encoding, bits = _SUBTYPES.get(snd.subtype, (AudioEncoding.other, 0))
    return AudioFormatDescriptor(
        encoding=encoding,
        sample_rate_hz=snd.samplerate,
        channel_count=snd.channels,
        bits_per_sample=bits,
        subtype=snd.subtype,
        container=snd.format,
    )


def _declared_frames(snd: sf.SoundFile, descriptor: AudioFormatDescriptor) -> Optional[int]:
    """Frames the header promises, or None when it leaves the length open."""
    match = _CLAMPED_DATA.search(snd.extra_info)
    if match is None:
        return snd.frames

    declared = int(match.group(1))
    if declared == _UNKNOWN_SIZE or descriptor.block_align == 0:
        return None
    return declared // descriptor.block_align
