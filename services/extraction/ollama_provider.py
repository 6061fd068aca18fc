"""Ollama-based extraction provider for self-hosted vision models.

Uses a local Ollama server for structured data extraction from invoice images.
Supports data sovereignty requirements by running entirely on-premises.

Requires Ollama server running on localhost:11434 with a vision model
(e.g. llava, llama3.2-vision). PDFs are not supported by this provider.
See: https://ollama.ai/
"""

import base64
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.extraction.base import (
    IMAGE_MEDIA_TYPES,
    ExtractionErrorType,
    ExtractionProvider,
    ExtractionResult,
    MalformedResponseError,
    build_extraction_prompt,
    parse_invoice_response,
)
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class OllamaExtractionProvider(ExtractionProvider):
    """Ollama-based extraction provider for self-hosted vision inference.

    Uses local Ollama server running on localhost:11434.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize Ollama extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._base_url = settings.ollama_base_url
        self._model = settings.ollama_model
        self._client = httpx.Client(timeout=120.0)  # Vision models can be slow

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'ollama'
        """
        return "ollama"

    def is_available(self) -> bool:
        """Check if Ollama server is running and model is available.

        Returns:
            True if Ollama server responds and model is loaded
        """
        try:
            response = self._client.get(f"{self._base_url}/api/tags")
            if response.status_code != 200:
                return False
            # Check if configured model is available
            models = response.json().get("models", [])
            model_names = [m.get("name", "").split(":")[0] for m in models]
            return self._model.split(":")[0] in model_names
        except httpx.HTTPError:
            return False

    def extract_invoice_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured invoice data from an image using Ollama.

        Args:
            content: Raw image bytes
            media_type: MIME type of the document

        Returns:
            ExtractionResult with structured invoice data or error
        """
        if media_type not in IMAGE_MEDIA_TYPES:
            return self._failure(
                f"Unsupported media type for Ollama: {media_type}",
                ExtractionErrorType.UNSUPPORTED_MEDIA,
            )

        if not content:
            return self._failure("Empty document provided", ExtractionErrorType.UNSUPPORTED_MEDIA)

        try:
            response_text = self._call_ollama_with_retry(content)
            invoice_data = parse_invoice_response(response_text)

            return ExtractionResult(
                invoice_data=invoice_data,
                success=True,
                provider=self.provider_name,
            )

        except MalformedResponseError as e:
            logger.warning(f"Failed to parse JSON from Ollama response: {e}")
            return self._failure(str(e), ExtractionErrorType.MALFORMED_RESPONSE)
        except Exception as e:
            logger.error(f"Ollama extraction failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}", ExtractionErrorType.SERVICE)

    @retry(
        retry=retry_if_exception_type((httpx.HTTPError, httpx.TimeoutException)),
        wait=wait_exponential_jitter(initial=1, max=30),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    def _call_ollama_with_retry(self, content: bytes) -> str:
        """Call Ollama API with retry logic for transient errors.

        Args:
            content: Raw image bytes

        Returns:
            Raw response text from Ollama

        Raises:
            httpx.HTTPError: After all retry attempts exhausted
        """
        response = self._client.post(
            f"{self._base_url}/api/generate",
            json={
                "model": self._model,
                "prompt": build_extraction_prompt(),
                "images": [base64.b64encode(content).decode("ascii")],
                "format": "json",
                "stream": False,
                "options": {
                    "temperature": 0,  # Deterministic output
                    "num_predict": 2048,  # Line items need room
                },
            },
        )
        response.raise_for_status()
        result: str = response.json().get("response", "")
        return result
