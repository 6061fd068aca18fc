"""OpenAI-based extraction provider for invoice field extraction.

Uses a vision-capable OpenAI chat model on the document itself: images are
sent as base64 data URLs, PDFs as inline file parts. The model is asked for a
JSON object which is then validated against InvoiceData.

Includes retry logic with exponential backoff for transient API errors.
"""

import base64
import logging
import os
from typing import Any

from openai import OpenAI
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from services.extraction.base import (
    IMAGE_MEDIA_TYPES,
    INVOICE_RESPONSE_SCHEMA,
    PDF_MEDIA_TYPE,
    ExtractionErrorType,
    ExtractionProvider,
    ExtractionResult,
    MalformedResponseError,
    build_extraction_prompt,
    parse_invoice_response,
)
from services.shared.config import Settings

logger = logging.getLogger(__name__)


class OpenAIExtractionProvider(ExtractionProvider):
    """OpenAI-based extraction provider using GPT-4o-mini by default.

    Requires OPENAI_API_KEY environment variable.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OpenAI extraction provider.

        Args:
            settings: Application settings
        """
        super().__init__(settings)
        self._model = settings.openai_model
        self._client: OpenAI | None = None

    @property
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier 'openai'
        """
        return "openai"

    def is_available(self) -> bool:
        """Check if OpenAI API key is configured.

        Returns:
            True if OPENAI_API_KEY environment variable is set
        """
        return os.getenv("OPENAI_API_KEY") is not None

    def extract_invoice_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured invoice data from a document using OpenAI.

        Args:
            content: Raw document bytes
            media_type: MIME type of the document

        Returns:
            ExtractionResult with structured invoice data or error, provider='openai'
        """
        # Check for API key at runtime
        if not self.is_available():
            return self._failure(
                "OPENAI_API_KEY environment variable not set",
                ExtractionErrorType.CONFIGURATION,
            )

        if media_type not in IMAGE_MEDIA_TYPES and media_type != PDF_MEDIA_TYPE:
            return self._failure(
                f"Unsupported media type: {media_type}",
                ExtractionErrorType.UNSUPPORTED_MEDIA,
            )

        if not content:
            return self._failure("Empty document provided", ExtractionErrorType.UNSUPPORTED_MEDIA)

        try:
            # Initialize client if not already done
            api_key = os.getenv("OPENAI_API_KEY")
            if self._client is None or self._client.api_key != api_key:
                self._client = OpenAI(api_key=api_key)

            response = self._call_openai_with_retry(self._build_messages(content, media_type))

            message = response.choices[0].message
            invoice_data = parse_invoice_response(message.content)

            return ExtractionResult(
                invoice_data=invoice_data,
                success=True,
                provider=self.provider_name,
            )

        except MalformedResponseError as e:
            logger.warning(f"OpenAI returned an unusable response: {e}")
            return self._failure(str(e), ExtractionErrorType.MALFORMED_RESPONSE)
        except Exception as e:
            logger.error(f"OpenAI extraction failed: {e}")
            return self._failure(f"Extraction failed: {str(e)}", ExtractionErrorType.SERVICE)

    @retry(
        retry=retry_if_exception_type((Exception,)),  # Retry on transient errors
        wait=wait_exponential_jitter(initial=1, max=60),  # Exponential backoff with jitter
        stop=stop_after_attempt(3),  # Max 3 attempts
        reraise=True,  # Re-raise exception after max attempts
    )
    def _call_openai_with_retry(self, messages: list[dict[str, Any]]) -> Any:
        """Call OpenAI API with retry logic for transient errors.

        Uses exponential backoff with jitter to handle rate limits and temporary failures.

        Args:
            messages: Chat messages including the document part

        Returns:
            OpenAI API response

        Raises:
            Exception: After all retry attempts are exhausted
        """
        if self._client is None:
            raise RuntimeError("OpenAI client not initialized")

        return self._client.chat.completions.create(  # type: ignore[call-overload]
            model=self._model,
            messages=messages,
            response_format={"type": "json_object"},
            temperature=0,  # Deterministic output
        )

    def _build_messages(self, content: bytes, media_type: str) -> list[dict[str, Any]]:
        """Build chat messages carrying the document and the extraction prompt.

        Args:
            content: Raw document bytes
            media_type: MIME type of the document

        Returns:
            Messages list for the chat completions API
        """
        encoded = base64.b64encode(content).decode("ascii")
        data_url = f"data:{media_type};base64,{encoded}"

        if media_type == PDF_MEDIA_TYPE:
            document_part: dict[str, Any] = {
                "type": "file",
                "file": {"filename": "invoice.pdf", "file_data": data_url},
            }
        else:
            document_part = {"type": "image_url", "image_url": {"url": data_url}}

        required = ", ".join(INVOICE_RESPONSE_SCHEMA["required"])
        return [
            {
                "role": "system",
                "content": (
                    "You are an invoice data extraction assistant. "
                    f"Always include these keys: {required}."
                ),
            },
            {
                "role": "user",
                "content": [document_part, {"type": "text", "text": build_extraction_prompt()}],
            },
        ]
