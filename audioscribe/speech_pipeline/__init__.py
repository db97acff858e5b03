"""
Audioscribe - Speech Pipeline Module
=====================================
Public API surface for audioscribe.speech_pipeline.

Exports
-------
TranscriptionPipeline  - transcoder → WAV reader → recognizer orchestrator
TranscriptionJob       - per-request state machine owning two temp files
FfmpegTranscoder       - async FFmpeg wrapper
RecognizerEngine       - loaded Vosk model (shared)
RecognitionSession     - per-job Kaldi recognizer
load_engine            - load / cache the process-wide engine
release_engine         - free the cached engine
open_wav               - WAV header parser + lazy chunk stream
save_upload            - stream UploadFile → job input path
delete_temp_file       - cleanup helper
"""

from audioscribe.speech_pipeline.job import (
    TranscriptionJob,
    save_upload,
    delete_temp_file,
)
from audioscribe.speech_pipeline.pipeline import TranscriptionPipeline
from audioscribe.speech_pipeline.recognizer import (
    RecognizerEngine,
    RecognitionSession,
    load_engine,
    release_engine,
)
from audioscribe.speech_pipeline.schemas import (
    AudioEncoding,
    AudioFormatDescriptor,
    JobStatus,
    TranscodeOptions,
)
from audioscribe.speech_pipeline.transcoder import FfmpegTranscoder
from audioscribe.speech_pipeline.wav_reader import WavStream, open_wav

__all__ = [
    "TranscriptionPipeline",
    "TranscriptionJob",
    "FfmpegTranscoder",
    "RecognizerEngine",
    "RecognitionSession",
    "load_engine",
    "release_engine",
    "open_wav",
    "WavStream",
    "save_upload",
    "delete_temp_file",
    "AudioEncoding",
    "AudioFormatDescriptor",
    "JobStatus",
    "TranscodeOptions",
]
