"""Invoice data models for structured extraction.

Field names are snake_case in Python and camelCase on the wire, which is
also the shape the extraction model is asked to return.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CENTS = Decimal("0.01")


class ExpenseCategory(str, Enum):
    """Closed set of expense categories, in display order."""

    OFFICE_SUPPLIES = "Office Supplies"
    TRAVEL = "Travel"
    FOOD_ENTERTAINMENT = "Food & Entertainment"
    UTILITIES = "Utilities"
    INVENTORY = "Inventory"
    MISCELLANEOUS = "Miscellaneous"
    UNCATEGORIZED = "Uncategorized"


class ConfidenceLevel(str, Enum):
    """Model-reported reliability of an extraction."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class CamelModel(BaseModel):
    """Immutable model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class LineItem(CamelModel):
    """One purchased item or service row within an invoice."""

    description: str = Field("", description="Item description")
    quantity: Decimal = Field(Decimal("1"), ge=0, description="Quantity purchased")
    unit_price: Decimal = Field(Decimal("0"), ge=0, description="Price per unit")
    total: Decimal | None = Field(None, ge=0, description="Line total")

    @model_validator(mode="after")
    def _default_total(self) -> "LineItem":
        # Models sometimes omit the line total; derive it the same way an edit would.
        if self.total is None:
            total = (self.quantity * self.unit_price).quantize(CENTS, rounding=ROUND_HALF_UP)
            object.__setattr__(self, "total", total)
        return self


class InvoiceData(CamelModel):
    """Structured invoice data extracted from a document.

    vendor_name, date, total_amount, category and line_items are required;
    everything else falls back to a default when the model leaves it out.
    """

    vendor_name: str = Field(..., description="Vendor or merchant name")
    invoice_number: str = Field("", description="Invoice number, empty if absent")
    date: str = Field(..., description="Invoice date as YYYY-MM-DD")
    currency: str = Field("USD", description="Currency code (ISO 4217)")

    # Financial details
    subtotal: Decimal = Field(Decimal("0"), ge=0, description="Subtotal before tax")
    tax: Decimal = Field(Decimal("0"), ge=0, description="Tax amount")
    total_amount: Decimal = Field(..., ge=0, description="Total amount including tax")
    payment_method: str = Field("", description="Payment method, e.g. 'Visa *1234'")

    category: ExpenseCategory = Field(..., description="Expense category")
    line_items: list[LineItem] = Field(..., description="Purchased items")

    # Confidence tracking
    confidence_level: ConfidenceLevel = Field(
        ConfidenceLevel.LOW, description="Model-reported extraction confidence"
    )
    ai_notes: str = Field("", description="Reasoning or warnings from the model")
