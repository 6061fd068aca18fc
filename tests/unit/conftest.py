"""Shared fixtures for record-level tests."""

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import pytest

from services.extraction.schema import ExpenseCategory, InvoiceData, LineItem
from services.records.store import RecordStore, SourceDocument

InvoiceFactory = Callable[..., InvoiceData]


@pytest.fixture
def make_invoice() -> InvoiceFactory:
    """Build InvoiceData with sensible defaults, overridable per test."""

    def _make(**overrides: Any) -> InvoiceData:
        fields: dict[str, Any] = {
            "vendor_name": "Acme",
            "invoice_number": "INV-1",
            "date": "2024-03-01",
            "currency": "USD",
            "subtotal": Decimal("25.50"),
            "tax": Decimal("2.00"),
            "total_amount": Decimal("27.50"),
            "payment_method": "Cash",
            "category": ExpenseCategory.TRAVEL,
            "line_items": [
                LineItem(description="Taxi", quantity=2, unit_price=Decimal("10.00")),
                LineItem(description="Tip", quantity=1, unit_price=Decimal("5.50")),
            ],
        }
        fields.update(overrides)
        return InvoiceData(**fields)

    return _make


@pytest.fixture
def store() -> RecordStore:
    """Empty record store."""
    return RecordStore()


@pytest.fixture
def document() -> SourceDocument:
    """Metadata for a small PNG upload."""
    return SourceDocument(filename="receipt.png", content_type="image/png", size_bytes=4)
