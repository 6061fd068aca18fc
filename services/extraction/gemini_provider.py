"""Gemini-based extraction provider for invoice field extraction.

Sends the document bytes inline together with the extraction prompt and asks
Gemini for JSON constrained by the shared invoice response schema.

Includes retry logic with exponential backoff for transient API errors.

Based on the Google Gen AI SDK:
https://googleapis.github.io/python-genai/
"""

import logging
import os
from typing import Any

from google import genai
from google.genai import types
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.extraction.base import (
    INVOICE_RESPONSE_SCHEMA,
    SUPPORTED_MEDIA_TYPES,
    ExtractionErrorType,
    ExtractionProvider,
    ExtractionResult,
    MalformedResponseError,
    build_extraction_prompt,
    parse_invoice_response,
)
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class GeminiExtractionProvider(ExtractionProvider):
    """Gemini-based extraction provider using gemini-2.5-flash by default.

    Requires GEMINI_API_KEY (or GOOGLE_API_KEY) environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize Gemini extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._model = settings.gemini_model
        self._client: genai.Client | None = None
        self._client_key: str | None = None

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'gemini'
        """
        return "gemini"

    @staticmethod
    def _api_key() -> str | None:
        return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")

    def is_available(self) -> bool:
        """Check if a Gemini API key is configured.

        Returns:
            True if GEMINI_API_KEY or GOOGLE_API_KEY environment variable is set
        """
        return self._api_key() is not None

    def extract_invoice_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured invoice data from a document using Gemini.

        Args:
            content: Raw document bytes
            media_type: MIME type of the document

        Returns:
            ExtractionResult with structured invoice data or error, provider='gemini'
        """
        api_key = self._api_key()
        if api_key is None:
            return self._failure(
                "GEMINI_API_KEY environment variable not set",
                ExtractionErrorType.CONFIGURATION,
            )

        if media_type not in SUPPORTED_MEDIA_TYPES:
            return self._failure(
                f"Unsupported media type: {media_type}",
                ExtractionErrorType.UNSUPPORTED_MEDIA,
            )

        if not content:
            return self._failure("Empty document provided", ExtractionErrorType.UNSUPPORTED_MEDIA)

        try:
            if self._client is None or self._client_key != api_key:
                self._client = genai.Client(api_key=api_key)
                self._client_key = api_key

            response = self._call_gemini_with_retry(content, media_type)
            invoice_data = parse_invoice_response(response.text)

            return ExtractionResult(
                invoice_data=invoice_data,
                success=True,
                provider=self.provider_name,
            )

        except MalformedResponseError as e:
            logger.warning(f"Gemini returned an unusable response: {e}")
            return self._failure(str(e), ExtractionErrorType.MALFORMED_RESPONSE)
        except Exception as e:
            logger.error(f"Gemini extraction failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}", ExtractionErrorType.SERVICE)

    @retry(
        retry=retry_if_exception_type((Exception,)),  # Retry on transient errors
        wait=wait_exponential_jitter(initial=1, max=60),  # Exponential backoff with jitter
        stop=stop_after_attempt(3),  # Max 3 attempts
        reraise=True,  # Re-raise exception after max attempts
    )
    def _call_gemini_with_retry(self, content: bytes, media_type: str) -> Any:
        """Call Gemini API with retry logic for transient errors.

        Args:
            content: Raw document bytes
            media_type: MIME type of the document

        Returns:
            Gemini GenerateContentResponse

        Raises:
            Exception: After all retry attempts are exhausted
        """
        if self._client is None:
            raise RuntimeError("Gemini client not initialized")

        return self._client.models.generate_content(
            model=self._model,
            contents=[
                types.Part.from_bytes(data=content, mime_type=media_type),
                build_extraction_prompt(),
            ],
            config=types.GenerateContentConfig(
                temperature=0,
                response_mime_type="application/json",
                response_json_schema=INVOICE_RESPONSE_SCHEMA,
            ),
        )
