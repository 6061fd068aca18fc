"""Unit tests for the CSV export encoder."""

import csv
import io
from collections.abc import Callable
from decimal import Decimal

from services.extraction.schema import InvoiceData
from services.records.export import EXPORT_HEADERS, encode_csv
from services.records.store import RecordStore, SourceDocument

InvoiceFactory = Callable[..., InvoiceData]

HEADER_LINE = "Date,Vendor,Category,Total,Currency,Invoice #,Payment Method\n"


def test_header_only_when_nothing_succeeded(store: RecordStore, document: SourceDocument) -> None:
    """The header is written even with no Success records."""
    store.create(document, b"x")
    failed = store.create(document, b"y")
    store.mark_error(failed, "boom")

    assert encode_csv(store.all()) == HEADER_LINE


def test_acme_row(
    store: RecordStore, document: SourceDocument, make_invoice: InvoiceFactory
) -> None:
    """Every data field is quoted and the total has two decimals."""
    record_id = store.create(document, b"x")
    store.mark_success(record_id, make_invoice(total_amount=Decimal("42.5")))

    assert encode_csv(store.all()) == (
        HEADER_LINE + '"2024-03-01","Acme","Travel","42.50","USD","INV-1","Cash"\n'
    )


def test_rows_follow_store_order(
    store: RecordStore, document: SourceDocument, make_invoice: InvoiceFactory
) -> None:
    """Rows come out most recent first, skipping non-Success records."""
    first = store.create(document, b"1")
    store.create(document, b"2")
    third = store.create(document, b"3")
    store.mark_success(first, make_invoice(vendor_name="First"))
    store.mark_success(third, make_invoice(vendor_name="Third"))

    rows = list(csv.reader(io.StringIO(encode_csv(store.all()))))

    assert rows[0] == EXPORT_HEADERS
    assert [row[1] for row in rows[1:]] == ["Third", "First"]


def test_special_characters_are_escaped(
    store: RecordStore, document: SourceDocument, make_invoice: InvoiceFactory
) -> None:
    """Commas, quotes and newlines survive a round trip through a CSV reader."""
    vendor = 'Smith, "Jones" & Co\nLtd'
    record_id = store.create(document, b"x")
    store.mark_success(record_id, make_invoice(vendor_name=vendor, payment_method=""))

    text = encode_csv(store.all())
    rows = list(csv.reader(io.StringIO(text)))

    assert '"Smith, ""Jones"" & Co' in text
    assert len(rows) == 2
    assert rows[1][1] == vendor
    assert rows[1][6] == ""
