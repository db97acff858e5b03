"""
Audioscribe - FFmpeg Transcoder
Module : audioscribe/speech_pipeline/transcoder.py

Converts any input FFmpeg can decode into the recognizer's canonical
format: mono, 16 kHz, signed 16-bit little-endian PCM in a WAV container.

FFmpeg runs as an asyncio subprocess so the event loop keeps serving other
requests while a file is being converted. On any failure (non-zero exit,
timeout, cancellation) the partially written output is removed before the
error propagates.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

from loguru import logger

from audioscribe.exceptions import ConversionError
from audioscribe.speech_pipeline.schemas import TranscodeOptions

# Lines of FFmpeg stderr kept in the ConversionError message
_STDERR_TAIL_LINES = 5


class FfmpegTranscoder:
    """Thin async wrapper around the `ffmpeg` command-line tool."""

    def __init__(self, binary: str = "ffmpeg", timeout: Optional[float] = None):
        self.binary = binary
        self.timeout = timeout

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        options: TranscodeOptions,
    ) -> List[str]:
        return [
            self.binary,
            "-hide_banner",
            "-nostdin",
            "-y",
            "-i",
            str(input_path),
            "-vn",
            "-ac",
            str(options.channels),
            "-ar",
            str(options.sample_rate_hz),
            "-acodec",
            options.codec,
            "-f",
            options.container,
            str(output_path),
        ]

    async def convert(
        self,
        input_path: str | Path,
        output_path: str | Path,
        options: Optional[TranscodeOptions] = None,
    ) -> Path:
        """
        Transcode *input_path* into *output_path*.

        Returns
        -------
        Path : output_path, which exists on return.

        Raises
        ------
        ConversionError : FFmpeg is missing, failed, timed out, or produced
                          no output. `diagnostic` holds FFmpeg's stderr.
        """
        input_path = Path(input_path)
        output_path = Path(output_path)
        options = options or TranscodeOptions()
        cmd = self.build_command(input_path, output_path, options)

        logger.debug(f"[Transcoder] {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ConversionError(f"Could not start {self.binary}: {exc}") from exc

        try:
            _, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _terminate(proc)
            _discard_partial(output_path)
            raise ConversionError(
                f"{self.binary} did not finish within {self.timeout:g}s"
            ) from None
        except asyncio.CancelledError:
            await _terminate(proc)
            _discard_partial(output_path)
            raise

        stderr = stderr_bytes.decode("utf-8", errors="replace").strip()

        if proc.returncode != 0:
            _discard_partial(output_path)
            tail = "\n".join(stderr.splitlines()[-_STDERR_TAIL_LINES:])
            logger.error(
                f"[Transcoder] {input_path.name} failed (exit {proc.returncode}): {tail}"
            )
            raise ConversionError(
                f"{self.binary} exited with status {proc.returncode}: {tail}",
                diagnostic=stderr,
            )

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise ConversionError(
                f"{self.binary} reported success but wrote no output",
                diagnostic=stderr,
            )

        logger.info(
            f"[Transcoder] {input_path.name} → {output_path.name} "
            f"({options.channels} ch, {options.sample_rate_hz} Hz, {options.codec})"
        )
        return output_path


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


def _discard_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"[Transcoder] Could not remove partial output {path}: {exc}")
