"""Unit tests for GeminiExtractionProvider.

Tests the Gemini-based extraction provider with a mocked genai client.
"""

import json
from collections.abc import Generator
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from tenacity import wait_none

from services.extraction.base import ExtractionErrorType
from services.extraction.gemini_provider import GeminiExtractionProvider
from services.shared.config import Settings

VALID_RESPONSE = json.dumps(
    {
        "vendorName": "Blue Bottle",
        "invoiceNumber": "R-778",
        "date": "2024-03-12",
        "currency": "USD",
        "subtotal": 9.0,
        "tax": 0.81,
        "totalAmount": 9.81,
        "paymentMethod": "Cash",
        "category": "Food & Entertainment",
        "lineItems": [{"description": "Latte", "quantity": 2, "unitPrice": 4.5, "total": 9.0}],
        "confidenceLevel": "Medium",
        "aiNotes": "Receipt slightly faded.",
    }
)


@pytest.fixture(autouse=True)
def no_retry_wait() -> Generator[None, None, None]:
    """Skip backoff sleeps between retry attempts."""
    with patch.object(GeminiExtractionProvider._call_gemini_with_retry.retry, "wait", wait_none()):
        yield


@pytest.fixture
def provider() -> GeminiExtractionProvider:
    """Create Gemini provider instance."""
    return GeminiExtractionProvider(Settings(extraction_provider="gemini"))


class TestGeminiAvailability:
    """Test provider properties and configuration checks."""

    def test_provider_name(self, provider: GeminiExtractionProvider) -> None:
        """Provider name should be 'gemini'."""
        assert provider.provider_name == "gemini"

    @patch.dict("os.environ", {}, clear=True)
    def test_not_available_without_key(self, provider: GeminiExtractionProvider) -> None:
        """Should be unavailable when no API key is set."""
        assert provider.is_available() is False

    @patch.dict("os.environ", {"GOOGLE_API_KEY": "test-key"}, clear=True)
    def test_available_with_google_api_key(self, provider: GeminiExtractionProvider) -> None:
        """GOOGLE_API_KEY is accepted as a fallback."""
        assert provider.is_available() is True

    @patch.dict("os.environ", {}, clear=True)
    def test_extract_without_api_key(self, provider: GeminiExtractionProvider) -> None:
        """Should fail with a configuration error before any API call."""
        with patch("services.extraction.gemini_provider.genai.Client") as mock_client_class:
            result = provider.extract_invoice_fields(b"image", "image/png")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.CONFIGURATION
        assert "GEMINI_API_KEY" in str(result.error)
        mock_client_class.assert_not_called()


@patch.dict("os.environ", {"GEMINI_API_KEY": "test-key"})
class TestGeminiExtraction:
    """Test invoice extraction functionality."""

    def test_unsupported_media_type(self, provider: GeminiExtractionProvider) -> None:
        """Should reject documents that are neither images nor PDFs."""
        result = provider.extract_invoice_fields(b"hello", "text/plain")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.UNSUPPORTED_MEDIA

    def test_empty_document(self, provider: GeminiExtractionProvider) -> None:
        """Should reject empty content."""
        result = provider.extract_invoice_fields(b"", "image/png")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.UNSUPPORTED_MEDIA

    @patch("services.extraction.gemini_provider.genai.Client")
    def test_extract_success(
        self, mock_client_class: MagicMock, provider: GeminiExtractionProvider
    ) -> None:
        """Should return validated InvoiceData from the JSON response."""
        mock_client = mock_client_class.return_value
        mock_client.models.generate_content.return_value = MagicMock(text=VALID_RESPONSE)

        result = provider.extract_invoice_fields(b"%PDF-1.4", "application/pdf")

        assert result.success is True
        assert result.provider == "gemini"
        assert result.invoice_data is not None
        assert result.invoice_data.vendor_name == "Blue Bottle"
        assert result.invoice_data.total_amount == Decimal("9.81")
        mock_client_class.assert_called_once_with(api_key="test-key")

        kwargs = mock_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["config"].response_mime_type == "application/json"

    @patch("services.extraction.gemini_provider.genai.Client")
    def test_extract_empty_response(
        self, mock_client_class: MagicMock, provider: GeminiExtractionProvider
    ) -> None:
        """Should report a malformed response when the model returns no text."""
        mock_client_class.return_value.models.generate_content.return_value = MagicMock(text=None)

        result = provider.extract_invoice_fields(b"image", "image/jpeg")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.MALFORMED_RESPONSE

    @patch("services.extraction.gemini_provider.genai.Client")
    def test_extract_invalid_json(
        self, mock_client_class: MagicMock, provider: GeminiExtractionProvider
    ) -> None:
        """Should report a malformed response for non-JSON output."""
        mock_client_class.return_value.models.generate_content.return_value = MagicMock(
            text="I could not read this receipt."
        )

        result = provider.extract_invoice_fields(b"image", "image/jpeg")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.MALFORMED_RESPONSE

    @patch("services.extraction.gemini_provider.genai.Client")
    def test_extract_retries_transient_error(
        self, mock_client_class: MagicMock, provider: GeminiExtractionProvider
    ) -> None:
        """Should retry and succeed after a transient failure."""
        generate = mock_client_class.return_value.models.generate_content
        generate.side_effect = [Exception("503 unavailable"), MagicMock(text=VALID_RESPONSE)]

        result = provider.extract_invoice_fields(b"image", "image/png")

        assert result.success is True
        assert generate.call_count == 2

    @patch("services.extraction.gemini_provider.genai.Client")
    def test_extract_fails_after_max_retries(
        self, mock_client_class: MagicMock, provider: GeminiExtractionProvider
    ) -> None:
        """Should report a service error after exhausting all retries."""
        generate = mock_client_class.return_value.models.generate_content
        generate.side_effect = Exception("Persistent API error")

        result = provider.extract_invoice_fields(b"image", "image/png")

        assert result.success is False
        assert result.error_type is ExtractionErrorType.SERVICE
        assert "Persistent API error" in str(result.error)
        assert generate.call_count == 3
