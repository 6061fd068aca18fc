"""Abstract base class for extraction services.

Enables switching between different multimodal extraction providers (Gemini,
OpenAI, Ollama) while keeping one logical contract: document bytes plus media
type in, validated InvoiceData (or a failure) out.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

The prompt, the JSON response schema and response parsing live here so every
provider shares the same validation boundary before data reaches the store.
"""

import json
import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from services.extraction.schema import ConfidenceLevel, ExpenseCategory, InvoiceData
from services.shared.config import Settings

IMAGE_MEDIA_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})
PDF_MEDIA_TYPE = "application/pdf"
SUPPORTED_MEDIA_TYPES = IMAGE_MEDIA_TYPES | {PDF_MEDIA_TYPE}

REQUIRED_FIELDS = ["vendorName", "date", "totalAmount", "category", "lineItems"]

# JSON schema handed to providers that support constrained output.
INVOICE_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "vendorName": {"type": "string"},
        "invoiceNumber": {"type": "string"},
        "date": {"type": "string"},
        "currency": {"type": "string"},
        "subtotal": {"type": "number"},
        "tax": {"type": "number"},
        "totalAmount": {"type": "number"},
        "paymentMethod": {"type": "string"},
        "category": {"type": "string", "enum": [c.value for c in ExpenseCategory]},
        "lineItems": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "description": {"type": "string"},
                    "quantity": {"type": "number"},
                    "unitPrice": {"type": "number"},
                    "total": {"type": "number"},
                },
            },
        },
        "confidenceLevel": {"type": "string", "enum": [c.value for c in ConfidenceLevel]},
        "aiNotes": {"type": "string"},
    },
    "required": REQUIRED_FIELDS,
}


class ExtractionErrorType(str, Enum):
    """Why an extraction produced no usable data."""

    CONFIGURATION = "configuration"
    SERVICE = "service"
    MALFORMED_RESPONSE = "malformed_response"
    UNSUPPORTED_MEDIA = "unsupported_media"


class MalformedResponseError(ValueError):
    """Model output could not be parsed or did not match InvoiceData."""


class ExtractionResult(BaseModel):
    """Result of extraction operation.

    Attributes:
        invoice_data: Extracted invoice data or None if extraction failed
        success: Whether operation succeeded
        error: Error message if operation failed (for logs, not for users)
        error_type: Failure category if operation failed
        provider: Name of provider that performed extraction (e.g., 'gemini')
    """

    invoice_data: InvoiceData | None
    success: bool
    error: str | None = None
    error_type: ExtractionErrorType | None = None
    provider: str


def build_extraction_prompt() -> str:
    """Build the instruction prompt sent alongside the document.

    Returns:
        Prompt text listing the fields to extract and the allowed categories
    """
    categories = ", ".join(c.value for c in ExpenseCategory)
    return f"""Analyze this invoice or receipt image/PDF. Extract the following structured data:
1. Vendor/Merchant Name (vendorName)
2. Invoice Number (invoiceNumber, if available, else empty)
3. Date (date, format YYYY-MM-DD)
4. Currency (currency, e.g., USD, EUR)
5. Subtotal, Tax, and Total Amount (subtotal, tax, totalAmount)
6. Payment Method (paymentMethod, e.g., "Credit Card", "Cash", "Visa *1234")
7. Line Items (lineItems: description, quantity, unitPrice, total)
8. Categorize the expense (category) into one of these: {categories}.
9. Assess confidence level (confidenceLevel: High, Medium, Low) based on image clarity \
and data completeness.
10. Add AI notes (aiNotes) explaining any low confidence fields or if the document is \
damaged/blurry.

Return the result strictly as JSON using the camelCase keys above."""


def parse_invoice_response(response_text: str | None) -> InvoiceData:
    """Parse and validate model output into InvoiceData.

    Handles common LLM quirks like markdown code blocks.

    Args:
        response_text: Raw model response

    Returns:
        Validated InvoiceData

    Raises:
        MalformedResponseError: If the text is empty, not JSON, or fails validation
    """
    if not response_text or not response_text.strip():
        raise MalformedResponseError("No data returned from model")

    text = response_text.strip()
    # Try to extract JSON from markdown code block, then a bare object in prose
    fence = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fence:
        text = fence.group(1).strip()
    else:
        obj = re.search(r"\{[\s\S]*\}", text)
        if obj:
            text = obj.group(0)

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Failed to parse model response: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError("Model response is not a JSON object")

    try:
        return InvoiceData.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(f"Model response failed validation: {e}") from e


class ExtractionProvider(ABC):
    """Abstract base class for invoice extraction providers.

    All extraction services must implement this interface to ensure
    consistent behavior and type safety. Expected failures are reported
    through ExtractionResult rather than raised.

    Example implementations:
    - GeminiExtractionProvider: Uses Google Gemini (cloud-based)
    - OpenAIExtractionProvider: Uses OpenAI vision models (cloud-based)
    - OllamaExtractionProvider: Uses a local vision model (self-hosted)
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def extract_invoice_fields(self, content: bytes, media_type: str) -> ExtractionResult:
        """Extract structured invoice data from a document.

        Args:
            content: Raw document bytes (image or PDF)
            media_type: Declared MIME type of the document

        Returns:
            ExtractionResult with structured invoice data or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Called before every extraction so missing credentials fail fast
        without a network attempt.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'gemini', 'openai')
        """
        pass

    def _failure(self, error: str, error_type: ExtractionErrorType) -> ExtractionResult:
        return ExtractionResult(
            invoice_data=None,
            success=False,
            error=error,
            error_type=error_type,
            provider=self.provider_name,
        )
