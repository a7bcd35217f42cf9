"""Pydantic models for data exchanged with the Bria API.

These models describe what the :class:`~styledna.core.bria_client.BriaApiClient`
returns and what it accepts for preset-driven operations.  Field aliases keep
the camelCase JSON shape the browser frontend already consumes
(``imageIndex``, ``negativePrompt``, ``jobId`` ...) while Python code uses
snake_case attribute names.

Status Vocabularies
-------------------
Bria reports job state with two different vocabularies and both are kept
as separate enums:

- :class:`BriaJobStatus` is upper-case and used by the structured prompt
  and image generation status endpoints.
- :class:`PreviewStatus` is lower-case and used by the FIBO preview and
  batch endpoints.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BriaJobStatus(str, Enum):
    """Status values from ``/status/{request_id}`` (upper-case)."""

    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


class PreviewStatus(str, Enum):
    """Status values from the FIBO preview and batch endpoints (lower-case)."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class StructuredPrompt(BaseModel):
    """One structured prompt produced by Bria for one source image.

    Attributes:
        seed: Seed Bria used when describing the image.
        structured_prompt: JSON-encoded scene and style description.
        image_index: Position of the source image in the upload, when the
            prompt belongs to a style profile.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    seed: int = Field(default=0, description="Seed returned by Bria.")
    structured_prompt: str = Field(..., description="JSON-encoded structured prompt.")
    image_index: int | None = Field(
        default=None,
        alias="imageIndex",
        ge=0,
        description="Index of the source image within the upload.",
    )


class ImageGenerationRequest(BaseModel):
    """Outbound request for Bria's ``/image/generate`` endpoint.

    Leaving ``structured_prompt`` unset asks Bria for style transfer only:
    the image is generated from ``prompt`` and ``seed`` without recreating
    the scene the structured prompt describes.
    """

    structured_prompt: str | None = None
    prompt: str | None = None
    seed: int | None = None
    sync: bool = True


class ImageGenerationResult(BaseModel):
    """A generated image as returned by Bria."""

    image_url: str | None = None
    seed: int = 0
    request_id: str | None = None


class PresetRender(BaseModel):
    steps: int | None = None
    guidance: float | None = None
    seed: int | None = None
    resolution: str | None = None


class Preset(BaseModel):
    """A reusable generation preset, as sent by the frontend.

    Only ``name`` and ``prompt`` are required.  ``controls``, ``film`` and
    ``expansion`` are passed through to Bria untouched.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str
    summary: str | None = None
    prompt: str
    negative_prompt: str | None = Field(default=None, alias="negativePrompt")
    controls: dict[str, Any] | None = None
    render: PresetRender | None = None
    film: dict[str, Any] | None = None
    expansion: dict[str, Any] | None = None
    version: str | None = None


class BatchItem(BaseModel):
    """One entry of a batch job."""

    model_config = ConfigDict(populate_by_name=True)

    preset: Preset
    prompt: str
    negative_prompt: str | None = Field(default=None, alias="negativePrompt")


class BatchJob(BaseModel):
    """Progress of a FIBO batch job.

    ``status`` is relayed verbatim from Bria, which normally reports one of
    the :class:`PreviewStatus` values.
    """

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    status: str = PreviewStatus.PENDING.value
    total_items: int | None = Field(default=None, alias="totalItems")
    completed_items: int | None = Field(default=None, alias="completedItems")
    failed_items: int | None = Field(default=None, alias="failedItems")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    manifest_url: str | None = Field(default=None, alias="manifestUrl")


class PreviewResult(BaseModel):
    """Terminal state of a FIBO preview request."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(..., alias="requestId")
    status: PreviewStatus
    images: list[str] | None = None
    error: str | None = None
