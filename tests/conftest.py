"""Shared pytest fixtures for Style DNA tests."""

from __future__ import annotations

import io
import json
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from styledna.api.main import app, get_bria_client, get_config
from styledna.core.config import StyleDnaConfig
from styledna.core.models import (
    BatchJob,
    ImageGenerationResult,
    PreviewResult,
    PreviewStatus,
    StructuredPrompt,
)

# A structured prompt whose style keywords name it "Night Rainy City Street".
NIGHT_SCENE = {
    "short_description": "A cyclist crossing a wet street",
    "objects": [{"description": "bicycle"}],
    "time_of_day": "night",
    "weather": "rainy",
    "environment": "busy city street",
    "mood": "moody",
    "lighting": {"conditions": "neon signs", "direction": "from the left"},
}


def make_image_bytes(image_format: str = "PNG", size: tuple[int, int] = (8, 8)) -> bytes:
    """Encode a small solid-color image in the given Pillow format."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=image_format)
    return buffer.getvalue()


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeBriaClient:
    """In-memory replacement for BriaApiClient used by the API tests.

    ``extract_outcomes`` is consumed one entry per ``extract_style`` call.
    An entry that is an exception is raised; anything else is returned.
    Once exhausted, ``default_prompt`` is returned.
    """

    def __init__(self) -> None:
        self.default_prompt = StructuredPrompt(seed=7, structured_prompt=json.dumps(NIGHT_SCENE))
        self.extract_outcomes: list = []
        self.extract_calls: list[list[bytes]] = []
        self.generate_requests: list = []
        self.generate_outcome = ImageGenerationResult(
            image_url="https://cdn.bria.test/image.png",
            seed=42,
            request_id="req-1",
        )
        self.preview_calls: list[tuple] = []
        self.batch_calls: list[list] = []
        self.status_calls: list[str] = []

    async def extract_style(self, images):
        self.extract_calls.append(list(images))
        index = len(self.extract_calls) - 1
        outcome = (
            self.extract_outcomes[index]
            if index < len(self.extract_outcomes)
            else self.default_prompt
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def generate_image(self, request):
        self.generate_requests.append(request)
        if isinstance(self.generate_outcome, Exception):
            raise self.generate_outcome
        return self.generate_outcome

    async def preview(self, preset, prompt=None, negative_prompt=None):
        self.preview_calls.append((preset, prompt, negative_prompt))
        return PreviewResult(
            request_id="prev-1",
            status=PreviewStatus.COMPLETED,
            images=["https://cdn.bria.test/preview.png"],
        )

    async def create_batch(self, items):
        self.batch_calls.append(list(items))
        return BatchJob(job_id="job-1", total_items=len(items))

    async def get_batch_status(self, job_id):
        self.status_calls.append(job_id)
        return BatchJob(
            job_id=job_id,
            status="processing",
            total_items=3,
            completed_items=1,
            failed_items=0,
        )


@pytest.fixture
def test_config() -> StyleDnaConfig:
    """Create a test configuration that ignores the environment's .env file.

    Returns:
        StyleDnaConfig with an API key and instant retries/polling
    """
    return StyleDnaConfig(
        bria_api_key="test-key",
        bria_api_url="https://bria.test/v2",
        retry_max_retries=0,
        retry_initial_delay=0.0,
        poll_interval=0.0,
        _env_file=None,
    )


@pytest.fixture
def sleeper() -> SleepRecorder:
    """Provide a sleep replacement that records every requested delay."""
    return SleepRecorder()


@pytest.fixture
def fake_bria() -> FakeBriaClient:
    """Provide a fake Bria client for route tests."""
    return FakeBriaClient()


@pytest.fixture
def test_client(
    test_config: StyleDnaConfig, fake_bria: FakeBriaClient
) -> Generator[TestClient, None, None]:
    """Create a TestClient wired to the fake Bria client.

    Yields:
        TestClient for the FastAPI app

    Cleanup:
        Dependency overrides are removed after the test completes
    """
    app.dependency_overrides[get_config] = lambda: test_config
    app.dependency_overrides[get_bria_client] = lambda: fake_bria
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def png_bytes() -> bytes:
    """A valid PNG image."""
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A valid JPEG image."""
    return make_image_bytes("JPEG")


@pytest.fixture
def make_image():
    """Factory fixture: ``make_image("WEBP", (16, 16))`` returns encoded bytes."""
    return make_image_bytes
