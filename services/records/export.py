"""CSV export of successfully extracted invoices."""

import csv
import io
from collections.abc import Iterable

from services.records.recalculation import round2
from services.records.store import InvoiceRecord, RecordStatus

EXPORT_FILENAME = "invoices_export.csv"
EXPORT_HEADERS = ["Date", "Vendor", "Category", "Total", "Currency", "Invoice #", "Payment Method"]


def encode_csv(records: Iterable[InvoiceRecord]) -> str:
    """Serialize Success records to CSV text, one row each, in the given order.

    Every data field is quoted; embedded quotes are doubled by the csv module.
    The header row is always written, even with no rows.
    """
    buffer = io.StringIO()
    csv.writer(buffer, lineterminator="\n").writerow(EXPORT_HEADERS)

    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        if record.status is not RecordStatus.SUCCESS or record.data is None:
            continue
        data = record.data
        writer.writerow(
            [
                data.date,
                data.vendor_name,
                data.category.value,
                f"{round2(data.total_amount):.2f}",
                data.currency,
                data.invoice_number,
                data.payment_method,
            ]
        )

    return buffer.getvalue()
