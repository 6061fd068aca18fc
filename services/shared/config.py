"""Shared configuration management for the invoice reader.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug

    Provider API keys are not part of these settings; each provider reads its
    conventional variable (GEMINI_API_KEY, OPENAI_API_KEY).
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="smart-invoice-reader",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Extraction provider configuration
    extraction_provider: Literal["gemini", "openai", "ollama"] = Field(
        default="gemini",
        description=(
            "Extraction provider: gemini (Google AI), openai (cloud API), "
            "ollama (self-hosted vision model)"
        ),
    )
    extraction_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Seconds before a pending extraction is marked as failed",
    )

    # Gemini configuration (for extraction_provider="gemini")
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for multimodal extraction",
    )

    # OpenAI configuration (for extraction_provider="openai")
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Vision-capable OpenAI model used for extraction",
    )

    # Ollama configuration (for extraction_provider="ollama")
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="llava:7b",
        description="Ollama vision model to use for extraction (e.g., llava:7b, llama3.2-vision)",
    )

    # Upload configuration
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum accepted upload size in bytes",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
