"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from carblens.core.prompts.rulesets import PromptVersion
from carblens.schemas.ai_response import AIProviderType
from carblens.services.response_parsing import ExtractionStrategy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server
    port: int = 10000

    # AI provider
    ai_provider: AIProviderType = AIProviderType.CLAUDE
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    ai_model: str = ""  # Empty = provider default
    ai_base_url: str | None = None  # OpenAI-compatible endpoints only
    ai_max_tokens: int = 2048

    # Inference resilience
    ai_timeout_seconds: float = 60.0  # Per attempt
    ai_max_retries: int = 2  # Retries after the first attempt
    ai_retry_backoff_seconds: float = 1.0  # Doubled on each retry

    # Prompt contract
    prompt_version: PromptVersion = PromptVersion.balanced
    response_language: str = "English"

    # Reply parsing
    extraction_strategy: ExtractionStrategy = ExtractionStrategy.greedy

    # Logging
    log_format: str = "json"  # 'json' or 'text'
    log_level: str = "INFO"
    service_name: str = "carblens-api"

    # CORS
    cors_origins: list[str] = ["*"]

    # Testing
    testing: bool = False

    @property
    def ai_api_key(self) -> str:
        """API key for the configured provider."""
        if self.ai_provider == AIProviderType.OPENAI:
            return self.openai_api_key
        return self.anthropic_api_key


settings = Settings()
