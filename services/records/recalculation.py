"""Derived-total recomputation for edited invoices.

Every function takes a frozen InvoiceData and returns a new one; the input is
never modified. All money math is done in Decimal and rounded half-up to
cents, so repeated edits never drift.

After any line-item edit:
    subtotal     = round2(sum(item.total))
    total_amount = round2(subtotal + tax)
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from services.extraction.schema import CENTS, InvoiceData, LineItem


class InvalidIndexError(IndexError):
    """Line-item index is outside the invoice's line items."""


class InvalidFieldError(ValueError):
    """Field name is not editable through this operation."""


# Wire names and Python names both map to the model attribute.
LINE_ITEM_FIELDS = {
    "description": "description",
    "quantity": "quantity",
    "unitPrice": "unit_price",
    "unit_price": "unit_price",
}

HEADER_FIELDS = {
    "vendorName": "vendor_name",
    "invoiceNumber": "invoice_number",
    "date": "date",
    "currency": "currency",
    "paymentMethod": "payment_method",
    "category": "category",
    "aiNotes": "ai_notes",
}
HEADER_FIELDS.update({attr: attr for attr in list(HEADER_FIELDS.values())})


def round2(value: Decimal | float | int | str) -> Decimal:
    """Round a monetary amount to cents, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def recalculate_totals(data: InvoiceData) -> InvoiceData:
    """Recompute subtotal and total from the line items and tax."""
    subtotal = round2(sum((item.total or Decimal("0") for item in data.line_items), Decimal("0")))
    return data.model_copy(
        update={"subtotal": subtotal, "total_amount": round2(subtotal + data.tax)}
    )


def update_line_item(data: InvoiceData, index: int, field: str, value: Any) -> InvoiceData:
    """Edit one field of one line item and recompute the invoice totals.

    Editing quantity or unit price recomputes that item's total; editing the
    description leaves it alone.

    Args:
        data: Current invoice data
        index: Zero-based line-item index
        field: One of description, quantity, unitPrice
        value: New field value

    Returns:
        New InvoiceData satisfying the totals invariant

    Raises:
        InvalidIndexError: If index is out of range
        InvalidFieldError: If field is not a line-item field
        pydantic.ValidationError: If value is not valid for the field
    """
    if not 0 <= index < len(data.line_items):
        raise InvalidIndexError(
            f"Line item index {index} out of range for {len(data.line_items)} items"
        )
    attr = LINE_ITEM_FIELDS.get(field)
    if attr is None:
        raise InvalidFieldError(f"Unknown line item field: '{field}'")

    # Validate through the model so negative or non-numeric input is rejected.
    item = LineItem.model_validate({**data.line_items[index].model_dump(), attr: value})
    if attr != "description":
        item = item.model_copy(update={"total": round2(item.quantity * item.unit_price)})

    items = list(data.line_items)
    items[index] = item
    return recalculate_totals(data.model_copy(update={"line_items": items}))


def update_tax(data: InvoiceData, tax: Decimal | float | int | str) -> InvoiceData:
    """Replace the tax amount and recompute the total; subtotal is unchanged.

    Raises:
        InvalidFieldError: If tax is negative or not a number
    """
    try:
        amount = tax if isinstance(tax, Decimal) else Decimal(str(tax))
    except InvalidOperation as e:
        raise InvalidFieldError(f"Tax is not a number: {tax!r}") from e
    # Sign is checked before rounding so tiny negatives are not rounded to -0.00.
    if not amount.is_finite() or amount.is_signed():
        raise InvalidFieldError("Tax cannot be negative")
    amount = round2(amount)
    return data.model_copy(update={"tax": amount, "total_amount": round2(data.subtotal + amount)})


def update_field(data: InvoiceData, field: str, value: Any) -> InvoiceData:
    """Replace one header field (vendor, date, category, ...); totals are untouched.

    Raises:
        InvalidFieldError: If field is not an editable header field
        pydantic.ValidationError: If value is not valid for the field
    """
    attr = HEADER_FIELDS.get(field)
    if attr is None:
        raise InvalidFieldError(f"Field '{field}' cannot be edited directly")
    return InvoiceData.model_validate({**data.model_dump(), attr: value})
