"""
Audioscribe - Transcription Router

POST /transcribe: multipart upload (field `audio`) → recognized text.

  200  {"text": "..."}                     job done
  400  plain text                          transcoded audio failed validation
  500  plain text                          conversion / streaming / upload failure
"""

from fastapi import APIRouter, Depends, File, Request, UploadFile, status
from fastapi.responses import PlainTextResponse
from loguru import logger

from audioscribe.config import Settings
from audioscribe.exceptions import ConversionError, FormatError, StreamError
from audioscribe.schemas import TranscriptionResult
from audioscribe.speech_pipeline.job import TranscriptionJob, save_upload
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline

router = APIRouter(tags=["Transcription"])

_ERROR_MESSAGES = {
    ConversionError: "Failed to convert audio file.",
    FormatError: "Invalid WAV file format. Must be 16-bit PCM, mono, 16kHz.",
    StreamError: "Failed to process audio file.",
}


def get_pipeline(request: Request) -> TranscriptionPipeline:
    return request.app.state.pipeline


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _error_body(error: Exception) -> str:
    for kind, message in _ERROR_MESSAGES.items():
        if isinstance(error, kind):
            return message
    return "Failed to process audio file."


@router.post(
    "/transcribe",
    response_model=TranscriptionResult,
    summary="Transcribe an audio file to text",
    description=(
        "Upload any audio (or video) file FFmpeg can decode. It is converted "
        "to 16 kHz mono 16-bit PCM, streamed through the speech recognizer, "
        "and the recognized text is returned."
    ),
    status_code=status.HTTP_200_OK,
    responses={
        400: {"description": "Invalid file format", "content": {"text/plain": {}}},
        500: {
            "description": "Failed to convert or process the audio file",
            "content": {"text/plain": {}},
        },
    },
)
async def transcribe(
    audio: UploadFile = File(..., description="The audio file to transcribe"),
    pipeline: TranscriptionPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_app_settings),
):
    job = None
    try:
        job = TranscriptionJob.create(settings.upload_dir, settings.converted_dir, audio.filename)
        logger.info(f"[Transcribe] Job {job.job_id} | upload: {audio.filename}")
        await save_upload(audio, job.input_path)
    except OSError as exc:
        if job is not None:
            job.discard_files()
        logger.error(f"[Transcribe] Upload '{audio.filename}' could not be stored: {exc}")
        return PlainTextResponse(
            "Failed to store uploaded file.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    job = await pipeline.run(job)

    if job.error is not None:
        return PlainTextResponse(_error_body(job.error), status_code=job.error.status_code)

    return TranscriptionResult(text=job.result_text)
