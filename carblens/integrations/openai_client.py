"""OpenAI vision client integration.

Implements the BaseVisionClient interface with the Chat Completions API.
Also serves any OpenAI-compatible endpoint through ``base_url``.
"""

from typing import Any

import openai

from carblens.logging_config import get_logger
from carblens.schemas.ai_response import AIProviderType, AIResponse, AIUsage, ImagePayload
from carblens.services.ai_client import BaseVisionClient

logger = get_logger(__name__)


class OpenAIVisionClient(BaseVisionClient):
    """OpenAI vision client using the OpenAI SDK."""

    provider = AIProviderType.OPENAI

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: openai.AsyncOpenAI | None = None

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            kwargs: dict[str, Any] = {"api_key": self._api_key, "max_retries": 0}
            if self._base_url:
                kwargs["base_url"] = self._base_url
            if self._timeout is not None:
                kwargs["timeout"] = self._timeout
            self._client = openai.AsyncOpenAI(**kwargs)
        return self._client

    async def analyze_image(self, image: ImagePayload, prompt: str) -> AIResponse:
        """Send the image (as a data URL) and prompt as one user message."""
        client = self._get_client()

        messages: list[dict[str, Any]] = [
            {
                "role": "user",
                "content": [
                    {"type": "image_url", "image_url": {"url": image.data_url}},
                    {"type": "text", "text": prompt},
                ],
            }
        ]

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=self.max_tokens,
            )
        except openai.AuthenticationError:
            logger.error("OpenAI API authentication failed during image analysis")
            raise
        except openai.RateLimitError:
            logger.warning("OpenAI API rate limited during image analysis")
            raise
        except openai.APIConnectionError as e:
            logger.error("OpenAI API connection error during image analysis", error=str(e))
            raise
        except Exception as e:
            logger.error("Unexpected error during OpenAI image analysis", error=str(e))
            raise

        choice = response.choices[0] if response.choices else None
        content = (choice.message.content or "") if choice else ""

        usage = AIUsage()
        if response.usage:
            usage = AIUsage(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens or 0,
            )

        return AIResponse(
            content=content,
            model=response.model,
            provider=self.provider,
            usage=usage,
        )
