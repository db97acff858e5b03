"""
Audioscribe - Model Pre-downloader
=====================================
Run this ONCE before starting the server to fetch and unpack the Vosk model
the recognizer loads at startup.

Usage:
    audioscribe-download-model
    audioscribe-download-model --url https://alphacephei.com/vosk/models/vosk-model-en-us-0.22.zip \
                               --dest models/vosk-model-en-us-0.22

Models are listed at https://alphacephei.com/vosk/models. Every archive
there holds a single top-level directory; its contents end up at --dest.
"""

from __future__ import annotations

import argparse
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import List, Optional

import httpx
from loguru import logger

from audioscribe.config import get_settings
from audioscribe.exceptions import AudioscribeError
from audioscribe.log import configure_logging


class ModelDownloadError(AudioscribeError):
    """The model archive could not be fetched or unpacked."""


def download_model(
    url: str,
    dest: str | Path,
    client: Optional[httpx.Client] = None,
    force: bool = False,
) -> Path:
    """
    Download the zip at *url* and unpack it as directory *dest*.

    Skips the download when *dest* already holds files, unless *force*.
    """
    dest = Path(dest)
    if dest.is_dir() and any(dest.iterdir()) and not force:
        logger.info(f"[Models] {dest} already present, skipping download.")
        return dest

    dest.parent.mkdir(parents=True, exist_ok=True)

    with tempfile.TemporaryDirectory(dir=dest.parent, prefix=".model-") as tmp:
        archive = Path(tmp) / "model.zip"
        _fetch(url, archive, client)
        root = _extract(archive, Path(tmp) / "unpacked")

        if dest.exists():
            shutil.rmtree(dest)
        shutil.move(str(root), str(dest))

    logger.success(f"[Models] ✅ Model ready at {dest}")
    return dest


def _fetch(url: str, archive: Path, client: Optional[httpx.Client]) -> None:
    owns_client = client is None
    client = client or httpx.Client(
        follow_redirects=True,
        timeout=httpx.Timeout(30.0, read=300.0),
    )
    logger.info(f"[Models] Downloading {url} …")
    try:
        with client.stream("GET", url) as response:
            response.raise_for_status()
            written = 0
            with archive.open("wb") as fh:
                for block in response.iter_bytes():
                    fh.write(block)
                    written += len(block)
    except httpx.HTTPError as exc:
        raise ModelDownloadError(f"Download of {url} failed: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    logger.info(f"[Models] Downloaded {written / 1_048_576:.1f} MB")


def _extract(archive: Path, target: Path) -> Path:
    """Unpack *archive* into *target*; return the model root inside it."""
    target.mkdir(parents=True)
    resolved_target = target.resolve()

    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                member_path = (target / member).resolve()
                if not member_path.is_relative_to(resolved_target):
                    raise ModelDownloadError(f"Archive member escapes target: {member}")
            zf.extractall(target)
    except zipfile.BadZipFile as exc:
        raise ModelDownloadError(f"Not a zip archive: {exc}") from exc

    entries = list(target.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return target


def main(argv: Optional[List[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Download and unpack a Vosk model")
    parser.add_argument("--url", default=settings.model_download_url, help="Model zip URL")
    parser.add_argument("--dest", default=settings.vosk_model_path, help="Target model directory")
    parser.add_argument("--force", action="store_true", help="Replace an existing model")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    try:
        download_model(args.url, args.dest, force=args.force)
    except ModelDownloadError as exc:
        logger.error(f"[Models] ✗ {exc}")
        return 1

    logger.info("   You can now start the server:  audioscribe")
    return 0


def run() -> None:
    """Console script `audioscribe-download-model`."""
    raise SystemExit(main())


if __name__ == "__main__":
    run()
