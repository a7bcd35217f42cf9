"""Pydantic request and response models for the Style DNA API.

These models define the JSON schema for the API endpoints.  FastAPI uses
them for request validation and OpenAPI documentation; the route handlers
serialise responses with ``by_alias=True`` so the browser frontend receives
the camelCase keys it expects (``createdAt``, ``processedImages`` ...).

Models
------
StyleProfile
    Response of ``POST /api/style-extract``, one structured prompt per
    successfully processed reference image plus per-image errors.
ImageError
    A reference image that could not be processed.
GenerateImageRequest
    Payload for ``POST /api/generate-image``.
PreviewRequest
    Payload for ``POST /api/preview``.
BatchCreateRequest
    Payload for ``POST /api/batch``.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from styledna.core.models import BatchItem, Preset, StructuredPrompt


class ImageError(BaseModel):
    """A reference image that failed during style extraction.

    Attributes:
        image_index: Zero-based position of the image in the upload.
        error: Message describing the failure.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_index: int = Field(..., alias="imageIndex", ge=0)
    error: str


class StyleProfile(BaseModel):
    """A named collection of structured prompts from reference images.

    Profiles are returned to the caller and stored client-side; the backend
    never persists them.

    Attributes:
        name: Custom or generated profile name.
        created_at: Creation time (UTC).
        images: Structured prompts of the successfully processed images,
            each tagged with its ``imageIndex``.
        processed_images: Number of images attempted (successes and
            failures).
        errors: Failed images, or ``None`` when every image succeeded.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    created_at: datetime = Field(..., alias="createdAt")
    images: list[StructuredPrompt]
    processed_images: int = Field(..., alias="processedImages", ge=0)
    errors: list[ImageError] | None = None

    @model_validator(mode="after")
    def _check_counts(self) -> StyleProfile:
        failed = len(self.errors or [])
        if len(self.images) != self.processed_images - failed:
            raise ValueError("images + errors must account for every processed image")

        indexes = [p.image_index for p in self.images if p.image_index is not None]
        indexes += [e.image_index for e in self.errors or []]
        if len(indexes) != len(set(indexes)):
            raise ValueError("imageIndex values must be unique within a profile")
        if any(i < 0 for i in indexes):
            raise ValueError("imageIndex must not be negative")
        if any(i >= self.processed_images for i in indexes):
            raise ValueError("imageIndex must be lower than processedImages")
        return self


class GenerateImageRequest(BaseModel):
    """Request body for ``POST /api/generate-image``.

    At least one of ``structured_prompt`` and ``prompt`` must be given
    (checked by the route so the error uses the API's 400 format).

    Attributes:
        structured_prompt: Structured prompt from a style profile.
        prompt: Text prompt, or the new subject when the Style DNA parser
            is enabled.
        seed: Seed to reuse for style consistency.
        use_style_dna_parser: Transfer only the style of
            ``structured_prompt`` onto ``prompt`` instead of recreating
            its scene.
    """

    structured_prompt: str | None = Field(
        default=None,
        description="JSON structured prompt from a style profile.",
    )
    prompt: str | None = Field(
        default=None,
        description="Text prompt or new subject.",
    )
    seed: int | None = Field(
        default=None,
        description="Generation seed.",
    )
    use_style_dna_parser: bool = Field(
        default=False,
        description="Apply only the style attributes of structured_prompt to prompt.",
    )


class PreviewRequest(BaseModel):
    """Request body for ``POST /api/preview``."""

    model_config = ConfigDict(populate_by_name=True)

    preset: Preset
    prompt: str | None = None
    negative_prompt: str | None = Field(default=None, alias="negativePrompt")


class BatchCreateRequest(BaseModel):
    """Request body for ``POST /api/batch``."""

    items: list[BatchItem] = Field(default_factory=list)
