"""Asynchronous client for the Bria v2 image generation API.

:class:`BriaApiClient` is the single point of contact with Bria.  It owns the
base URL, the ``api_token`` authentication header (Bria does not use
``Authorization: Bearer``), request timeouts, and the translation of Bria's
responses and failures into :mod:`styledna.core.models` objects and the
:class:`BriaApiError` family.

Synchronous and Asynchronous Responses
--------------------------------------
Bria answers either with the finished result (HTTP 200) or with HTTP 202
and a ``status_url`` to poll.  The client handles both transparently.
Polling is strictly sequential, at a fixed interval, and bounded by a
:class:`PollingOptions` budget per endpoint family:

==========================  ==============  ==========================
Operation                   Default budget  Status vocabulary
==========================  ==============  ==========================
``extract_style``           30 x 2s         ``COMPLETED`` / ``ERROR``
``generate_image``          60 x 2s         ``COMPLETED`` / ``ERROR``
``preview``                 30 x 2s         ``completed`` / ``failed``
==========================  ==============  ==========================

The two vocabularies come from Bria itself and are modelled as separate
enums (:class:`~styledna.core.models.BriaJobStatus` and
:class:`~styledna.core.models.PreviewStatus`).

Retries
-------
Every public network operation is wrapped by
:func:`~styledna.core.retry.retry_with_backoff`.  Local request validation
(:class:`BriaRequestError`) happens before the retry wrapper and is never
retried.  Neither is a successful response whose body does not fit the
expected model (:class:`BriaResponseError`).

Usage
-----
::

    async with BriaApiClient.from_config(config) as client:
        prompt = await client.extract_style([image_bytes])
        result = await client.generate_image(
            ImageGenerationRequest(prompt="a red bicycle", seed=prompt.seed)
        )
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from styledna.core.models import (
    BatchItem,
    BatchJob,
    BriaJobStatus,
    ImageGenerationRequest,
    ImageGenerationResult,
    Preset,
    PresetRender,
    PreviewResult,
    PreviewStatus,
    StructuredPrompt,
)
from styledna.core.retry import RetryOptions, SleepFunc, retry_with_backoff

if TYPE_CHECKING:
    from styledna.core.config import StyleDnaConfig

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

DEFAULT_BASE_URL = "https://engine.prod.bria-api.com/v2"
DEFAULT_TIMEOUT = 120.0


# ---------------------------------------------------------------------------
# Errors.
# ---------------------------------------------------------------------------


class BriaApiError(Exception):
    """A failed call to Bria, ready to be relayed to the API caller.

    Attributes:
        message: Human-readable description, including Bria's own message
            when one was returned.
        status_code: HTTP status Bria answered with, or ``None`` when no
            response was received.
        payload: Decoded response body (dict, list or text) for diagnostics.
    """

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class BriaConnectionError(BriaApiError):
    """DNS, connection-refused or timeout failure before Bria answered."""


class BriaPollingTimeout(BriaApiError):
    """An asynchronous job did not reach a terminal state within its budget."""


class BriaResponseError(BriaApiError):
    """Bria answered successfully, but with a body the client cannot map.

    Never retried: the request was accepted, so sending it again would
    duplicate remote work.
    """


class BriaRequestError(ValueError):
    """The request was rejected locally and never sent to Bria."""


# ---------------------------------------------------------------------------
# Polling budget.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PollingOptions:
    """Attempt ceiling and fixed interval (seconds) for status polling."""

    max_polls: int
    interval: float = 2.0


EXTRACT_POLLING = PollingOptions(max_polls=30)
GENERATE_POLLING = PollingOptions(max_polls=60)
PREVIEW_POLLING = PollingOptions(max_polls=30)


# ---------------------------------------------------------------------------
# Payload helpers.
# ---------------------------------------------------------------------------


def preset_to_fibo_payload(
    preset: Preset,
    prompt: str | None = None,
    negative_prompt: str | None = None,
) -> dict:
    """Map a :class:`Preset` onto the JSON body FIBO endpoints expect.

    Explicit *prompt* and *negative_prompt* override the preset's own text.
    Missing render settings fall back to 30 steps, guidance 7.5 and a
    1024x1024 resolution.
    """
    render = preset.render or PresetRender()
    render_payload: dict[str, Any] = {
        "steps": render.steps or 30,
        "guidance": render.guidance or 7.5,
        "resolution": render.resolution or "1024x1024",
    }
    if render.seed is not None:
        render_payload["seed"] = render.seed

    return {
        "prompt": prompt or preset.prompt,
        "negative_prompt": negative_prompt or preset.negative_prompt or "",
        "controls": preset.controls or {},
        "render": render_payload,
        "film": preset.film or {},
        "expansion": preset.expansion or {},
    }


def _response_payload(response: httpx.Response) -> Any:
    """Decode a response body as JSON, falling back to its text."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


def _error_message(payload: Any, response: httpx.Response) -> str:
    """Pick the most useful error message out of a failed Bria response."""
    if isinstance(payload, str) and payload:
        return payload
    if isinstance(payload, dict):
        if payload.get("message"):
            return str(payload["message"])
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and error:
            return json.dumps(error, indent=2)
    if response.text:
        return response.text
    return response.reason_phrase or "HTTP error"


def _error_text(value: Any) -> str | None:
    """Flatten an ``error`` field from a status response into text."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and value.get("message"):
        return str(value["message"])
    return json.dumps(value)


def _result_section(data: dict) -> dict:
    """Return ``data["result"]`` when Bria nests the result, else *data*."""
    result = data.get("result")
    return result if isinstance(result, dict) and result else data


def _build_model(model: type[M], payload: Any, **fields: Any) -> M:
    """Construct *model* from Bria data, reporting shape mismatches as Bria errors.

    Raises:
        BriaResponseError: The fields do not validate against *model*.
    """
    try:
        return model(**fields)
    except ValidationError as e:
        logger.error(f"Unexpected {model.__name__} shape from Bria: {e}")
        raise BriaResponseError(
            f"Bria API returned an unexpected response shape for {model.__name__}",
            payload=payload,
        ) from e


def _should_retry(error: Exception) -> bool:
    return not isinstance(error, BriaResponseError)


# ---------------------------------------------------------------------------
# Client.
# ---------------------------------------------------------------------------


class BriaApiClient:
    """Async Bria v2 client with retry, polling and error normalisation.

    Args:
        api_key: Bria token, sent as the ``api_token`` header.
        base_url: Bria API base URL.
        timeout: Per-request timeout in seconds.
        retry_options: Backoff settings for every network operation.
        extract_polling: Budget for structured prompt status polling.
        generate_polling: Budget for image generation status polling.
        preview_polling: Budget for FIBO preview status polling.
        transport: Optional ``httpx`` transport, used by tests to mock Bria.
        sleep: Coroutine used for poll intervals and retry delays.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        retry_options: RetryOptions | None = None,
        extract_polling: PollingOptions = EXTRACT_POLLING,
        generate_polling: PollingOptions = GENERATE_POLLING,
        preview_polling: PollingOptions = PREVIEW_POLLING,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        if not api_key:
            raise ValueError("A Bria API key is required")

        self.base_url = base_url
        self._retry_options = retry_options or RetryOptions()
        self._extract_polling = extract_polling
        self._generate_polling = generate_polling
        self._preview_polling = preview_polling
        self._sleep = sleep
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"api_token": api_key},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: StyleDnaConfig, **kwargs: Any) -> BriaApiClient:
        """Build a client from application configuration.

        Keyword arguments are forwarded to the constructor and win over the
        configured values.
        """
        options: dict[str, Any] = {
            "timeout": config.request_timeout,
            "retry_options": config.retry_options(),
            "extract_polling": PollingOptions(config.extract_max_polls, config.poll_interval),
            "generate_polling": PollingOptions(config.generate_max_polls, config.poll_interval),
            "preview_polling": PollingOptions(config.preview_max_polls, config.poll_interval),
        }
        options.update(kwargs)
        return cls(config.bria_api_key or "", config.bria_api_url, **options)

    async def __aenter__(self) -> BriaApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._http.aclose()

    # -- Transport ----------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request and normalise transport and HTTP failures.

        Raises:
            BriaConnectionError: Bria could not be reached.
            BriaApiError: Bria answered with a 4xx/5xx status, or the
                request failed at the transport level for another reason.
        """
        try:
            response = await self._http.request(method, url, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error(f"Network error contacting Bria at {self.base_url}: {e!r}")
            raise BriaConnectionError(
                f"Cannot connect to Bria API: {e}. "
                "Please check your internet connection and API URL configuration."
            ) from e
        except httpx.TransportError as e:
            raise BriaApiError(f"Bria API request failed: {e}") from e

        if response.is_error:
            payload = _response_payload(response)
            logger.error(f"Bria API error response: status={response.status_code} data={payload!r}")
            raise BriaApiError(
                f"Bria API error ({response.status_code}): {_error_message(payload, response)}",
                status_code=response.status_code,
                payload=payload,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        """Decode a successful response body as a JSON object."""
        try:
            data = response.json()
        except ValueError as e:
            raise BriaApiError(
                "Bria API returned a non-JSON response",
                status_code=response.status_code,
                payload=response.text,
            ) from e
        if not isinstance(data, dict):
            raise BriaApiError(
                "Bria API returned an unexpected response shape",
                status_code=response.status_code,
                payload=data,
            )
        return data

    @staticmethod
    def _status_url(response: httpx.Response, data: dict) -> str | None:
        """Return the URL to poll when Bria accepted the job asynchronously."""
        if response.status_code != 202:
            return None
        if data.get("status_url"):
            return str(data["status_url"])
        if data.get("request_id"):
            return f"/status/{data['request_id']}"
        return None

    # -- Polling ------------------------------------------------------------

    async def _poll_job_status(self, status_url: str, polling: PollingOptions, label: str) -> dict:
        """Poll an upper-case status endpoint until ``COMPLETED`` or ``ERROR``.

        Transport failures on a single poll are logged and the next poll is
        attempted; HTTP error responses propagate.

        Returns:
            The final status response body.

        Raises:
            BriaApiError: Bria reported ``ERROR``.
            BriaPollingTimeout: No terminal status within the budget.
        """
        for attempt in range(1, polling.max_polls + 1):
            try:
                response = await self._request("GET", status_url)
            except BriaConnectionError as e:
                logger.warning(f"{label} status poll {attempt}/{polling.max_polls} failed: {e}")
            else:
                data = self._json(response)
                status = data.get("status")
                logger.debug(f"{label} poll {attempt}/{polling.max_polls}: status={status}")

                if status == BriaJobStatus.COMPLETED.value:
                    return data
                if status == BriaJobStatus.ERROR.value:
                    raise BriaApiError(
                        _error_text(data.get("error")) or f"{label} failed",
                        payload=data,
                    )

            if attempt < polling.max_polls:
                await self._sleep(polling.interval)

        raise BriaPollingTimeout(f"Polling timeout for {label.lower()}")

    async def _poll_preview_status(self, request_id: str) -> PreviewResult:
        """Poll the lower-case FIBO status endpoint for a preview request."""
        polling = self._preview_polling
        for attempt in range(1, polling.max_polls + 1):
            try:
                response = await self._request("GET", f"/fibo/status/{request_id}")
            except BriaConnectionError as e:
                logger.warning(f"Preview status poll {attempt}/{polling.max_polls} failed: {e}")
            else:
                data = self._json(response)
                status = data.get("status")

                if status == PreviewStatus.COMPLETED.value:
                    return _build_model(
                        PreviewResult,
                        data,
                        request_id=request_id,
                        status=PreviewStatus.COMPLETED,
                        images=data.get("images") or [],
                    )
                if status == PreviewStatus.FAILED.value:
                    return _build_model(
                        PreviewResult,
                        data,
                        request_id=request_id,
                        status=PreviewStatus.FAILED,
                        error=_error_text(data.get("error")) or "Generation failed",
                    )

            if attempt < polling.max_polls:
                await self._sleep(polling.interval)

        raise BriaPollingTimeout("Polling timeout")

    async def _retry(self, operation):
        return await retry_with_backoff(
            operation,
            self._retry_options,
            sleep=self._sleep,
            should_retry=_should_retry,
        )

    # -- Structured prompts -------------------------------------------------

    @staticmethod
    def _structured_prompt_from(data: dict) -> StructuredPrompt:
        result = _result_section(data)
        structured = result.get("structured_prompt")
        if not structured:
            structured = json.dumps(result)
        elif not isinstance(structured, str):
            structured = json.dumps(structured)
        return _build_model(
            StructuredPrompt,
            data,
            seed=result.get("seed") or 0,
            structured_prompt=structured,
        )

    async def extract_style(self, images: Sequence[bytes]) -> StructuredPrompt:
        """Ask Bria to describe one reference image as a structured prompt.

        Args:
            images: Exactly one raw image.  Bria v2 accepts a single image
                per request, so callers must send images one at a time.

        Returns:
            The structured prompt and seed for the image.

        Raises:
            BriaRequestError: Not exactly one image, or the image is empty.
            BriaApiError: Bria rejected the request, reported an error, or
                could not be reached.
        """
        if len(images) != 1:
            raise BriaRequestError(
                "Bria API v2 supports only 1 image per request. "
                "Please send images one at a time."
            )
        image = images[0]
        if not image:
            raise BriaRequestError("Image 1 is empty or invalid")

        # Raw base64 only, no "data:image/png;base64," prefix.
        payload = {
            "images": [base64.b64encode(image).decode("ascii")],
            "sync": False,
        }

        async def attempt() -> StructuredPrompt:
            logger.info(f"Requesting structured prompt for image ({len(image)} bytes)")
            response = await self._request("POST", "/structured_prompt/generate", json=payload)
            data = self._json(response)

            status_url = self._status_url(response, data)
            if status_url:
                logger.info(f"Style extraction accepted asynchronously, polling {status_url}")
                data = await self._poll_job_status(
                    status_url, self._extract_polling, "Style extraction"
                )
            return self._structured_prompt_from(data)

        return await self._retry(attempt)

    # -- Image generation ---------------------------------------------------

    async def generate_image(self, request: ImageGenerationRequest) -> ImageGenerationResult:
        """Generate an image from a structured prompt and/or a text prompt.

        Only the fields present on *request* are forwarded.  Without a
        ``structured_prompt`` Bria performs style transfer from ``prompt``
        and ``seed`` alone.
        """
        payload: dict[str, Any] = {"sync": request.sync}
        if request.structured_prompt:
            payload["structured_prompt"] = request.structured_prompt
        if request.prompt:
            payload["prompt"] = request.prompt
        if request.seed is not None:
            payload["seed"] = request.seed

        async def attempt() -> ImageGenerationResult:
            mode = "full scene" if "structured_prompt" in payload else "style transfer only"
            logger.info(
                f"Requesting image generation ({mode}): seed={payload.get('seed')} "
                f"prompt={str(payload.get('prompt', ''))[:150]!r}"
            )
            response = await self._request("POST", "/image/generate", json=payload)
            data = self._json(response)

            status_url = self._status_url(response, data)
            if status_url:
                logger.info(f"Image generation accepted asynchronously, polling {status_url}")
                polled = await self._poll_job_status(
                    status_url, self._generate_polling, "Image generation"
                )
                result = _result_section(polled)
                return _build_model(
                    ImageGenerationResult,
                    result,
                    image_url=result.get("image_url") or next(iter(result.get("images") or []), None),
                    seed=result.get("seed") or 0,
                    request_id=data.get("request_id"),
                )

            result = _result_section(data)
            return _build_model(
                ImageGenerationResult,
                result,
                image_url=result.get("image_url") or next(iter(result.get("images") or []), None),
                seed=result.get("seed") or request.seed or 0,
                request_id=data.get("request_id"),
            )

        return await self._retry(attempt)

    # -- FIBO preview and batch ---------------------------------------------

    async def preview(
        self,
        preset: Preset,
        prompt: str | None = None,
        negative_prompt: str | None = None,
    ) -> PreviewResult:
        """Render a preset preview and wait for it to finish.

        A ``failed`` status is returned as a :class:`PreviewResult`, not
        raised.
        """
        payload = preset_to_fibo_payload(preset, prompt, negative_prompt)

        async def attempt() -> PreviewResult:
            response = await self._request("POST", "/fibo/generate", json=payload)
            data = self._json(response)
            request_id = data.get("request_id") or data.get("id")
            if not request_id:
                raise BriaApiError("Bria API did not return a request id", payload=data)
            return await self._poll_preview_status(str(request_id))

        return await self._retry(attempt)

    async def create_batch(self, items: Sequence[BatchItem]) -> BatchJob:
        """Submit a batch job and return its handle without waiting."""
        if not items:
            raise BriaRequestError("A batch requires at least one item")

        payload = {
            "items": [
                preset_to_fibo_payload(item.preset, item.prompt, item.negative_prompt)
                for item in items
            ]
        }

        async def attempt() -> BatchJob:
            response = await self._request("POST", "/fibo/batch", json=payload)
            data = self._json(response)
            job_id = data.get("job_id") or data.get("id")
            if not job_id:
                raise BriaApiError("Bria API did not return a job id", payload=data)
            logger.info(f"Created batch job {job_id} with {len(items)} items")
            return _build_model(
                BatchJob,
                data,
                job_id=str(job_id),
                status=PreviewStatus.PENDING.value,
                total_items=len(items),
            )

        return await self._retry(attempt)

    async def get_batch_status(self, job_id: str) -> BatchJob:
        """Fetch the progress of a batch job."""

        async def attempt() -> BatchJob:
            response = await self._request("GET", f"/fibo/batch/{job_id}")
            data = self._json(response)
            return _build_model(
                BatchJob,
                data,
                job_id=job_id,
                status=data.get("status") or PreviewStatus.PENDING.value,
                total_items=data.get("total_items"),
                completed_items=data.get("completed_items"),
                failed_items=data.get("failed_items"),
                download_url=data.get("download_url"),
                manifest_url=data.get("manifest_url"),
            )

        return await self._retry(attempt)
