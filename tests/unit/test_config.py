"""Unit tests for configuration management."""

import os
from collections.abc import Generator

import pytest
from pydantic import ValidationError

from services.shared.config import Settings, get_settings


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before and after test."""
    original_env = dict(os.environ)
    env_vars = [k for k in os.environ if k.startswith("APP_")]
    for var in env_vars:
        del os.environ[var]
    yield
    os.environ.clear()
    os.environ.update(original_env)


def test_settings_defaults(clean_env: None) -> None:
    """Test that settings have correct default values."""
    settings = Settings()

    assert settings.environment == "development"
    assert settings.log_level == "INFO"
    assert settings.service_name == "smart-invoice-reader"
    assert settings.service_version == "0.1.0"
    assert settings.extraction_provider == "gemini"
    assert settings.gemini_model == "gemini-2.5-flash"
    assert settings.extraction_timeout_seconds == 120.0
    assert settings.max_upload_bytes == 10 * 1024 * 1024


def test_settings_from_env_vars(clean_env: None) -> None:
    """Test that settings can be overridden via environment variables."""
    os.environ["APP_ENVIRONMENT"] = "production"
    os.environ["APP_LOG_LEVEL"] = "ERROR"
    os.environ["APP_EXTRACTION_PROVIDER"] = "openai"
    os.environ["APP_MAX_UPLOAD_BYTES"] = "2048"

    settings = Settings()

    assert settings.environment == "production"
    assert settings.log_level == "ERROR"
    assert settings.extraction_provider == "openai"
    assert settings.max_upload_bytes == 2048


def test_settings_case_insensitive(clean_env: None) -> None:
    """Test that environment variables are case insensitive."""
    os.environ["app_log_level"] = "DEBUG"

    settings = Settings()

    assert settings.log_level == "DEBUG"


def test_settings_rejects_unknown_provider(clean_env: None) -> None:
    """Test that only registered provider names are accepted."""
    with pytest.raises(ValidationError):
        Settings(extraction_provider="tesseract")


def test_settings_rejects_non_positive_timeout(clean_env: None) -> None:
    """Test that the extraction timeout must be positive."""
    with pytest.raises(ValidationError):
        Settings(extraction_timeout_seconds=0)


def test_get_settings_factory() -> None:
    """Test that factory function returns Settings instance."""
    settings = get_settings()

    assert isinstance(settings, Settings)
