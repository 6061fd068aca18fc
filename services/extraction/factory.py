"""Extraction provider selection.

Maps the configured provider name to its implementation and builds the
single provider instance the API hands to every background extraction.
"""

import logging

from services.extraction.base import ExtractionErrorType, ExtractionProvider
from services.extraction.gemini_provider import GeminiExtractionProvider
from services.extraction.ollama_provider import OllamaExtractionProvider
from services.extraction.openai_provider import OpenAIExtractionProvider
from services.shared.config import Settings

logger = logging.getLogger(__name__)

# Keys match the values accepted by Settings.extraction_provider.
PROVIDERS: dict[str, type[ExtractionProvider]] = {
    "gemini": GeminiExtractionProvider,
    "openai": OpenAIExtractionProvider,
    "ollama": OllamaExtractionProvider,
}


def create_extraction_service(settings: Settings) -> ExtractionProvider:
    """Build the extraction provider named by settings.extraction_provider.

    A provider without credentials (or an unreachable Ollama server) is still
    returned so the service can start; every upload is then settled as an
    Error with the not-configured message, and this is logged once here.

    Args:
        settings: Application settings

    Returns:
        Extraction provider instance

    Raises:
        ValueError: If the provider name is unknown
    """
    name = settings.extraction_provider
    try:
        provider_class = PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown extraction provider: '{name}'. Available providers: {', '.join(PROVIDERS)}"
        ) from None

    provider = provider_class(settings)
    if not provider.is_available():
        logger.warning(
            f"Extraction provider '{name}' has a {ExtractionErrorType.CONFIGURATION.value} "
            f"problem (missing API key or model server); uploads will be marked as failed"
        )

    logger.info(f"Created extraction provider: {name}")
    return provider
