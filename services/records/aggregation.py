"""Dashboard statistics over the record store snapshot.

Only successful records contribute. Recomputed on every request; there is
no cache.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from services.extraction.schema import CamelModel, ExpenseCategory
from services.records.store import InvoiceRecord, RecordStatus

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)  # fmt: skip


class CategoryTotal(CamelModel):
    """Spend for one expense category."""

    name: ExpenseCategory
    value: Decimal


class MonthlyTotal(CamelModel):
    """Spend for one calendar month, labelled like 'Mar 24'."""

    month: str
    amount: Decimal


class DashboardStats(CamelModel):
    """Aggregated view shown on the dashboard."""

    total_spend: Decimal
    invoice_count: int
    category_breakdown: list[CategoryTotal]
    monthly_spend: list[MonthlyTotal]


def month_label(value: str) -> tuple[tuple[int, int], str] | None:
    """Parse an ISO date string into a sortable (year, month) key and its label.

    Returns:
        ((year, month), 'Mon YY'), or None if the date cannot be parsed
    """
    try:
        parsed = date.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None
    return (parsed.year, parsed.month), f"{MONTH_ABBREVIATIONS[parsed.month - 1]} {parsed:%y}"


def compute_dashboard_stats(records: Iterable[InvoiceRecord]) -> DashboardStats | None:
    """Aggregate spend over successful records.

    Args:
        records: Record snapshot in any order

    Returns:
        DashboardStats, or None if no record has been extracted successfully
    """
    successful = [
        r.data for r in records if r.status is RecordStatus.SUCCESS and r.data is not None
    ]
    if not successful:
        return None

    total_spend = Decimal("0")
    by_category = {category: Decimal("0") for category in ExpenseCategory}
    by_month: dict[tuple[int, int], MonthlyTotal] = {}

    for data in successful:
        total_spend += data.total_amount
        by_category[data.category] += data.total_amount

        parsed = month_label(data.date)
        if parsed is None:
            continue
        key, label = parsed
        previous = by_month.get(key)
        amount = data.total_amount + (previous.amount if previous else Decimal("0"))
        by_month[key] = MonthlyTotal(month=label, amount=amount)

    return DashboardStats(
        total_spend=total_spend,
        invoice_count=len(successful),
        category_breakdown=[
            CategoryTotal(name=category, value=value)
            for category, value in by_category.items()
            if value > 0
        ],
        monthly_spend=[by_month[key] for key in sorted(by_month)],
    )
