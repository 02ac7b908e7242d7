"""Pytest configuration and shared fixtures.

API tests never reach a real vision provider: a FakeVisionClient is
injected through FastAPI's dependency overrides.
"""

import base64
import json
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set testing mode BEFORE importing the app
os.environ["TESTING"] = "true"

from carblens.config import settings

settings.testing = True

from carblens.main import app
from carblens.routers.analyze import get_vision_client
from carblens.schemas.ai_response import AIProviderType, AIResponse, AIUsage, ImagePayload
from carblens.services.ai_client import BaseVisionClient

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00fake-meal-photo"
SAMPLE_IMAGE = base64.b64encode(JPEG_BYTES).decode()

PROFILE = {
    "name": "Ana",
    "insulinRatio": 15,
    "sensitivityFactor": 40,
    "targetGlucose": 120,
}

# What a well-behaved model might say, including wrong dosing arithmetic
MODEL_PAYLOAD = {
    "greeting": "Looks delicious!",
    "imageQuality": "good",
    "confidence": "medium",
    "foods": [
        {"name": "White rice", "amount": "3/4 cup", "carbs": 34, "confidence": "high"},
        {"name": "Black beans", "amount": "1/4 cup", "carbs": 10, "confidence": "medium"},
        {"name": "Orange juice", "amount": "small splash", "carbs": 3, "confidence": "low"},
    ],
    "totalCarbs": 47,
    "mealInsulin": {"calculation": "With your ratio 1u/15g -> 3 units", "units": 3},
    "correction": {"needed": False, "calculation": "", "units": 0},
    "recommendation": {"conservative": 2.5, "standard": 3, "note": "Check in 90 min."},
}

VALID_REPLY = (
    "Here is the analysis:\n```json\n" + json.dumps(MODEL_PAYLOAD) + "\n```\nLet me know!"
)


class FakeVisionClient(BaseVisionClient):
    """Vision client double that returns canned replies.

    Replies are consumed in order; the last one repeats. A reply that is an
    exception instance is raised instead of returned.
    """

    provider = AIProviderType.CLAUDE

    def __init__(self, replies: list[str | BaseException] | None = None) -> None:
        super().__init__(api_key="test-key", model="fake-vision-model")
        self.replies: list[str | BaseException] = list(replies or [VALID_REPLY])
        self.calls: list[tuple[ImagePayload, str]] = []

    async def analyze_image(self, image: ImagePayload, prompt: str) -> AIResponse:
        self.calls.append((image, prompt))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return AIResponse(
            content=reply,
            model=self.model,
            provider=self.provider,
            usage=AIUsage(input_tokens=1200, output_tokens=300),
        )


@pytest.fixture
def fake_client() -> FakeVisionClient:
    return FakeVisionClient()


@pytest_asyncio.fixture
async def client(fake_client: FakeVisionClient) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the API with the fake vision client injected."""
    app.dependency_overrides[get_vision_client] = lambda: fake_client
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_vision_client, None)


def analyze_body(**overrides) -> dict:
    """Build a POST /api/analyze body."""
    body = {"image": SAMPLE_IMAGE, "userSettings": dict(PROFILE)}
    body.update(overrides)
    return body
