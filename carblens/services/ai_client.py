"""Vision model abstraction layer.

Abstract base class and factory for vision provider clients. The pipeline
only sees ``analyze_image(image, prompt) -> AIResponse``, regardless of
whether Claude or an OpenAI-compatible endpoint sits behind it.
"""

import abc

from carblens.logging_config import get_logger
from carblens.schemas.ai_response import AIProviderType, AIResponse, ImagePayload

logger = get_logger(__name__)

# Default models when AI_MODEL is not set
DEFAULT_MODELS: dict[AIProviderType, str] = {
    AIProviderType.CLAUDE: "claude-sonnet-4-20250514",
    AIProviderType.OPENAI: "gpt-4o",
}


class BaseVisionClient(abc.ABC):
    """Abstract base class for vision provider clients.

    One instance lives for the whole process; subclasses create their SDK
    client lazily and reuse it across requests.
    """

    provider: AIProviderType

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 2048,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self._base_url = base_url
        self.max_tokens = max_tokens
        self._timeout = timeout

    @abc.abstractmethod
    async def analyze_image(self, image: ImagePayload, prompt: str) -> AIResponse:
        """Send one image plus instruction text and return the reply.

        Args:
            image: Base64 image and its media type.
            prompt: Rendered instruction text.

        Returns:
            Normalized AIResponse with the concatenated text content.
        """


def get_ai_client(
    provider: AIProviderType,
    api_key: str,
    model: str = "",
    base_url: str | None = None,
    max_tokens: int = 2048,
    timeout: float | None = None,
) -> BaseVisionClient:
    """Factory that returns the vision client for a provider.

    Args:
        provider: Which provider to use.
        api_key: Provider API key.
        model: Model override; empty selects the provider default.
        base_url: Custom endpoint (OpenAI-compatible providers only).
        max_tokens: Reply length cap.
        timeout: SDK-level HTTP timeout in seconds.

    Raises:
        ValueError: If the provider is not supported.
    """
    from carblens.integrations.claude import ClaudeVisionClient
    from carblens.integrations.openai_client import OpenAIVisionClient

    model = model or DEFAULT_MODELS.get(provider, "")

    if provider == AIProviderType.CLAUDE:
        client_cls: type[BaseVisionClient] = ClaudeVisionClient
    elif provider == AIProviderType.OPENAI:
        client_cls = OpenAIVisionClient
    else:
        raise ValueError(f"Unsupported AI provider: {provider}")

    logger.info("Vision client configured", provider=provider.value, model=model)
    return client_cls(
        api_key=api_key,
        model=model,
        base_url=base_url,
        max_tokens=max_tokens,
        timeout=timeout,
    )
