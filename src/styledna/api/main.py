"""Style DNA Studio: FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
The application is a stateless proxy in front of the Bria v2 API:

- **Configuration** comes from :data:`~styledna.core.config.config`
  (``STYLEDNA_*`` environment variables and ``.env``).
- **Bria access** goes through one
  :class:`~styledna.core.bria_client.BriaApiClient` per request, provided
  by the :func:`get_bria_client` dependency and closed when the request
  ends.
- **Style profiles** are returned to the browser, which stores them.  The
  backend keeps no state between requests.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
GET       ``/health``                   Liveness check
POST      ``/api/style-extract``        Build a style profile from images
POST      ``/api/generate-image``       Generate an image from a profile
POST      ``/api/preview``              Render a preset preview
POST      ``/api/batch``                Submit a batch job
GET       ``/api/batch/{job_id}``       Batch job progress
========  ============================  ====================================

Errors
------
Local validation failures are raised as :class:`HTTPException` and rendered
as ``{"error": ...}``.  Failures reported by Bria are rendered as
``{"error", "details", "briaApiError", "statusCode"}`` with Bria's HTTP
status (500 when Bria never answered).  Anything else is logged with its
traceback and rendered as a 500 ``{"error": ...}``.

Usage
-----
CLI (installed entry point)::

    styledna

Direct invocation::

    python -m styledna.api.main
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from styledna import __version__
from styledna.api.models import (
    BatchCreateRequest,
    GenerateImageRequest,
    ImageError,
    PreviewRequest,
    StyleProfile,
)
from styledna.api.uploads import UploadValidationError, read_reference_images
from styledna.core.bria_client import BriaApiClient, BriaApiError
from styledna.core.config import StyleDnaConfig, config
from styledna.core.models import ImageGenerationRequest, StructuredPrompt
from styledna.core.profile_namer import generate_profile_name
from styledna.core.style_dna import create_style_transfer_prompt, parse_structured_prompt

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(moment: datetime) -> str:
    """Format a UTC datetime like JavaScript's ``toISOString()``."""
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Application lifecycle.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log the Bria configuration on startup.

    Clients are created per request, so there is nothing to tear down.
    """
    logger.info(
        f"Bria API configured: base_url={config.bria_api_url} "
        f"api_key={'set' if config.bria_api_key else 'MISSING'}"
    )
    yield
    logger.info("Style DNA API shutting down.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Style DNA Studio",
    description="Extract style profiles from reference images and apply them with Bria.",
    version=__version__,
    lifespan=lifespan,
)

# Only the frontend origin may call the API from a browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.cors_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error rendering.
# ---------------------------------------------------------------------------


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render local HTTP errors as ``{"error": ...}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(BriaApiError)
async def bria_error_handler(request: Request, exc: BriaApiError) -> JSONResponse:
    """Relay a Bria failure with its status code and payload."""
    status_code = exc.status_code or 500
    details = exc.payload if exc.payload is not None else {}
    message = exc.message
    if status_code == 422:
        message = f"Bria validation error: {json.dumps(details, indent=2)}"

    logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "details": details,
            "briaApiError": details,
            "statusCode": status_code,
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any other failure as a 500 ``{"error": ...}`` response."""
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config() -> StyleDnaConfig:
    """Return the active configuration (overridable in tests)."""
    return config


async def get_bria_client(
    cfg: StyleDnaConfig = Depends(get_config),
) -> AsyncIterator[BriaApiClient]:
    """Provide a Bria client for the duration of one request.

    Raises:
        HTTPException: 500 if no Bria API key is configured.
    """
    if not cfg.bria_api_key:
        raise HTTPException(
            status_code=500,
            detail="Bria API key is not configured (set STYLEDNA_BRIA_API_KEY)",
        )
    async with BriaApiClient.from_config(cfg) as client:
        yield client


async def get_reference_images(
    images: list[UploadFile] | None = File(default=None),
    cfg: StyleDnaConfig = Depends(get_config),
) -> list[bytes]:
    """Read and validate the uploaded reference images.

    Declared ahead of :func:`get_bria_client` on the route, so a bad upload
    is answered with 400 even when no Bria key is configured.

    Raises:
        HTTPException: 400 for an invalid upload.
    """
    try:
        return await read_reference_images(
            images or [],
            max_files=cfg.max_files,
            max_file_size=cfg.max_file_size,
        )
    except UploadValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok", "timestamp": _iso(_utc_now())}


@app.post("/api/style-extract")
async def extract_style_profile(
    image_data: list[bytes] = Depends(get_reference_images),
    profile_name: str | None = Form(default=None),
    client: BriaApiClient = Depends(get_bria_client),
) -> dict:
    """Build a style profile from 1–20 reference images.

    This endpoint:

    1. Validates the upload (count, type, size, decodability).
    2. Sends the images to Bria one at a time; Bria accepts a single image
       per structured prompt request.
    3. Records per-image failures in ``errors`` and carries on with the
       remaining images.
    4. Names the profile: the caller's name if given, otherwise a name
       generated from the extracted style keywords, otherwise a timestamp.

    Returns:
        The :class:`StyleProfile` as camelCase JSON.

    Raises:
        HTTPException: 400 for an invalid upload.
    """
    structured_prompts: list[StructuredPrompt] = []
    errors: list[ImageError] = []

    for index, data in enumerate(image_data):
        logger.info(f"Processing image {index + 1} of {len(image_data)}...")
        try:
            result = await client.extract_style([data])
        except Exception as e:
            logger.error(f"Error processing image {index + 1}: {e}")
            errors.append(ImageError(image_index=index, error=str(e)))
            continue
        structured_prompts.append(result.model_copy(update={"image_index": index}))

    logger.info(
        f"Style extraction completed: total={len(image_data)} "
        f"successful={len(structured_prompts)} failed={len(errors)}"
    )

    created_at = _utc_now()
    custom_name = (profile_name or "").strip()
    if custom_name:
        name = custom_name
    elif structured_prompts:
        name = generate_profile_name(structured_prompts)
    else:
        name = f"Style Profile - {_iso(created_at)}"

    profile = StyleProfile(
        name=name,
        created_at=created_at,
        images=structured_prompts,
        processed_images=len(image_data),
        errors=errors or None,
    )
    return profile.model_dump(mode="json", by_alias=True, exclude_none=True)


@app.post("/api/generate-image")
async def generate_image(
    req: GenerateImageRequest,
    client: BriaApiClient = Depends(get_bria_client),
) -> dict:
    """Generate an image from a structured prompt and/or a text prompt.

    With ``use_style_dna_parser`` and a ``structured_prompt``, only the
    style attributes are transferred: the Style DNA is appended to
    ``prompt`` (the new subject) and the structured prompt is *not* sent to
    Bria.  Bria requires every scene field in a structured prompt, so a
    style-only structured prompt cannot be sent, and sending the full one
    would recreate the original scene.

    Returns:
        ``image_url``, ``seed``, ``request_id`` when known, and
        ``style_dna`` when the parser was used.

    Raises:
        HTTPException: 400 when neither prompt nor structured_prompt is
            given.
    """
    if not req.structured_prompt and not req.prompt:
        raise HTTPException(
            status_code=400,
            detail="Either structured_prompt or prompt is required",
        )

    style_dna = None
    if req.use_style_dna_parser and req.structured_prompt:
        style_dna = parse_structured_prompt(req.structured_prompt)
        transfer_prompt = create_style_transfer_prompt(req.prompt or "", style_dna)
        logger.info(f"Style DNA transfer prompt: {transfer_prompt[:200]!r}")
        outbound = ImageGenerationRequest(prompt=transfer_prompt, seed=req.seed)
    else:
        outbound = ImageGenerationRequest(
            structured_prompt=req.structured_prompt,
            prompt=req.prompt,
            seed=req.seed,
        )

    result = await client.generate_image(outbound)
    logger.info(
        f"Image generated: seed={result.seed} has_url={bool(result.image_url)} "
        f"style_dna={style_dna is not None}"
    )

    response = result.model_dump(exclude_none=True)
    if style_dna is not None:
        response["style_dna"] = style_dna.to_dict()
    return response


@app.post("/api/preview")
async def preview_preset(
    req: PreviewRequest,
    client: BriaApiClient = Depends(get_bria_client),
) -> dict:
    """Render a preview of a preset and wait for the result."""
    result = await client.preview(req.preset, req.prompt, req.negative_prompt)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


@app.post("/api/batch")
async def create_batch(
    req: BatchCreateRequest,
    client: BriaApiClient = Depends(get_bria_client),
) -> dict:
    """Submit a batch job.  Returns immediately with the job handle.

    Raises:
        HTTPException: 400 when ``items`` is empty.
    """
    if not req.items:
        raise HTTPException(status_code=400, detail="At least one batch item is required")
    job = await client.create_batch(req.items)
    return job.model_dump(mode="json", by_alias=True, exclude_none=True)


@app.get("/api/batch/{job_id}")
async def get_batch_status(
    job_id: str,
    client: BriaApiClient = Depends(get_bria_client),
) -> dict:
    """Return the progress of a batch job."""
    job = await client.get_batch_status(job_id)
    return job.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~styledna.core.config.config`
    (``STYLEDNA_SERVER_HOST``, ``STYLEDNA_SERVER_PORT``,
    ``STYLEDNA_LOG_LEVEL``).  Defaults to ``0.0.0.0:3002``.

    This function is registered as the ``styledna`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "styledna.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
