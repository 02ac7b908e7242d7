"""Claude (Anthropic) vision client integration.

Implements the BaseVisionClient interface with the Anthropic Messages API.
"""

from typing import Any

import anthropic

from carblens.logging_config import get_logger
from carblens.schemas.ai_response import AIProviderType, AIResponse, AIUsage, ImagePayload
from carblens.services.ai_client import BaseVisionClient

logger = get_logger(__name__)


class ClaudeVisionClient(BaseVisionClient):
    """Claude vision client using the Anthropic SDK."""

    provider = AIProviderType.CLAUDE

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            kwargs: dict[str, Any] = {
                "api_key": self._api_key,
                # Retries are handled by services.inference
                "max_retries": 0,
            }
            if self._timeout is not None:
                kwargs["timeout"] = self._timeout
            self._client = anthropic.AsyncAnthropic(**kwargs)
        return self._client

    async def analyze_image(self, image: ImagePayload, prompt: str) -> AIResponse:
        """Send the image and prompt as one user message.

        Args:
            image: Base64 image and its media type.
            prompt: Rendered instruction text.

        Returns:
            Normalized AIResponse with all text blocks concatenated.
        """
        client = self._get_client()

        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": image.media_type,
                    "data": image.data,
                },
            },
            {"type": "text", "text": prompt},
        ]

        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.AuthenticationError:
            logger.error("Claude API authentication failed during image analysis")
            raise
        except anthropic.RateLimitError:
            logger.warning("Claude API rate limited during image analysis")
            raise
        except anthropic.APIConnectionError as e:
            logger.error("Claude API connection error during image analysis", error=str(e))
            raise
        except Exception as e:
            logger.error("Unexpected error during Claude image analysis", error=str(e))
            raise

        text = "".join(
            block.text
            for block in (response.content or [])
            if getattr(block, "type", "text") == "text"
        )

        usage = AIUsage()
        if response.usage:
            usage = AIUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )

        return AIResponse(
            content=text,
            model=response.model,
            provider=self.provider,
            usage=usage,
        )
