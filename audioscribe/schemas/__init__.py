"""
Audioscribe - Pydantic Schemas

Defines the request / response data contracts used by the API.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TranscriptionResult(BaseModel):
    text: str = Field(
        ...,
        description="Recognized text, lowercase and unpunctuated as produced by the model.",
    )


class ServiceStatus(BaseModel):
    service: str
    version: str
    status: str
    model_loaded: bool
    sample_rate: int


class HealthStatus(BaseModel):
    status: str
