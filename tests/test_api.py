"""Tests for the FastAPI application and the /transcribe endpoint."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from audioscribe import main
from audioscribe.exceptions import ModelMissingError
from conftest import (
    SPOKEN_TEXT,
    CopyTranscoder,
    build_wav_bytes,
    fmt_body,
    leftover_files,
    write_wav,
)


@pytest.fixture
def client(settings, fake_engine, monkeypatch):
    monkeypatch.setattr(main, "load_engine", lambda *args, **kwargs: fake_engine)
    monkeypatch.setattr(main, "release_engine", lambda: None)

    with TestClient(main.create_app(settings)) as test_client:
        test_client.app.state.pipeline.transcoder = CopyTranscoder()
        yield test_client


def _post(client: TestClient, payload: bytes, filename: str = "clip.wav"):
    return client.post(
        "/transcribe",
        files={"audio": (filename, payload, "application/octet-stream")},
    )


class TestTranscribe:
    def test_success_returns_json_text(self, client, settings, tmp_path: Path) -> None:
        payload = write_wav(tmp_path / "speech.wav", seconds=3.0).read_bytes()

        response = _post(client, payload)

        assert response.status_code == 200
        assert response.json() == {"text": SPOKEN_TEXT}
        assert leftover_files(settings) == []

    def test_invalid_format_is_400(self, client, settings, fake_engine, tmp_path: Path) -> None:
        payload = write_wav(tmp_path / "stereo.wav", seconds=0.2, sample_rate=44100, channels=2).read_bytes()

        response = _post(client, payload)

        assert response.status_code == 400
        assert response.headers["content-type"].startswith("text/plain")
        assert "Invalid WAV file format" in response.text
        assert fake_engine.sessions == []
        assert leftover_files(settings) == []

    def test_non_audio_is_500(self, client, settings) -> None:
        response = _post(client, b"just some notes, not audio", filename="notes.mp3")

        assert response.status_code == 500
        assert response.text == "Failed to convert audio file."
        assert leftover_files(settings) == []

    def test_broken_stream_is_500(self, client, settings) -> None:
        payload = build_wav_bytes(fmt_body(), b"\0" * 100, data_size=64000)

        response = _post(client, payload)

        assert response.status_code == 500
        assert response.text == "Failed to process audio file."
        assert leftover_files(settings) == []

    def test_upload_dir_removed_after_startup_is_500(self, client, settings, tmp_path: Path) -> None:
        shutil.rmtree(settings.upload_dir)
        payload = write_wav(tmp_path / "speech.wav", seconds=0.2).read_bytes()

        response = _post(client, payload)

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Failed to store uploaded file."
        assert list(Path(settings.converted_dir).iterdir()) == []

    def test_missing_audio_field_is_rejected(self, client) -> None:
        response = client.post("/transcribe", data={"other": "x"})

        assert response.status_code == 422

    def test_work_directories_created_at_startup(self, client, settings) -> None:
        assert Path(settings.upload_dir).is_dir()
        assert Path(settings.converted_dir).is_dir()


class TestService:
    def test_root_reports_model(self, client) -> None:
        body = client.get("/").json()

        assert body["status"] == "ok"
        assert body["model_loaded"] is True
        assert body["sample_rate"] == 16000

    def test_health(self, client) -> None:
        assert client.get("/health").json() == {"status": "healthy"}

    def test_docs_served_at_api_docs(self, client) -> None:
        assert client.get("/api-docs").status_code == 200
        assert "/transcribe" in client.get("/openapi.json").json()["paths"]


def test_startup_fails_without_model(settings) -> None:
    app = main.create_app(settings)

    with pytest.raises(ModelMissingError):
        with TestClient(app):
            pass


class TestRun:
    @pytest.fixture(autouse=True)
    def _quiet(self, settings, monkeypatch):
        monkeypatch.setattr(main, "get_settings", lambda: settings)
        monkeypatch.setattr(main, "configure_logging", lambda level: None)

    def test_exits_when_model_missing(self, monkeypatch) -> None:
        import uvicorn

        served = []
        monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: served.append(args))

        with pytest.raises(SystemExit) as excinfo:
            main.run()

        assert excinfo.value.code == 1
        assert served == []

    def test_serves_once_model_loads(self, settings, fake_engine, monkeypatch) -> None:
        import uvicorn

        loaded = []
        served = []
        monkeypatch.setattr(main, "load_engine", lambda path, **kwargs: loaded.append(path) or fake_engine)
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: served.append(kwargs))

        main.run()

        assert loaded == [settings.vosk_model_path]
        assert served == [{"host": settings.host, "port": settings.port, "log_level": "info"}]
