"""Vision model request/response schemas.

Shared by every provider client so the pipeline never touches SDK types.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class AIProviderType(StrEnum):
    """Supported vision model providers."""

    CLAUDE = "claude"
    OPENAI = "openai"


class ImagePayload(BaseModel):
    """A meal photograph ready to send to a vision model."""

    model_config = ConfigDict(frozen=True)

    data: str = Field(..., min_length=1, description="Base64 image data, no prefix")
    media_type: str = Field(default="image/jpeg", description="Image MIME type")

    @property
    def data_url(self) -> str:
        """The image as a ``data:`` URL."""
        return f"data:{self.media_type};base64,{self.data}"


class AIUsage(BaseModel):
    """Token usage information from a provider response."""

    input_tokens: int = Field(default=0, description="Tokens in the prompt")
    output_tokens: int = Field(default=0, description="Tokens in the response")


class AIResponse(BaseModel):
    """Normalised response from any vision provider."""

    content: str = Field(..., description="Generated text content")
    model: str = Field(..., description="Model that generated the response")
    provider: AIProviderType = Field(..., description="AI provider used")
    usage: AIUsage = Field(
        default_factory=AIUsage, description="Token usage information"
    )
