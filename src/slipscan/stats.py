"""Aggregate statistics over a batch of extracted receipts."""

from collections import Counter
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from slipscan.models import CENTS, ReceiptRecord


class ReceiptSummary(BaseModel):
    """Totals, breakdowns and ranges for a set of receipts.

    ``total_amount`` adds up every known total regardless of currency;
    ``currency_totals`` keeps them apart. Averages only count receipts that
    have the value, and are None when none do.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    receipt_count: int = 0
    total_amount: Decimal = Decimal("0.00")
    average_amount: Decimal | None = None
    currency_totals: dict[str, Decimal] = Field(default_factory=dict)
    merchant_counts: dict[str, int] = Field(default_factory=dict)
    average_confidence: float | None = None
    earliest_date: str | None = None  # YYYY-MM-DD
    latest_date: str | None = None

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def summarize(records: Iterable[ReceiptRecord]) -> ReceiptSummary:
    """
    Summarize receipt records.

    Args:
        records: Extracted receipts, in any order

    Returns:
        ReceiptSummary; an empty input gives zero counts and no averages
    """
    records = list(records)
    amounts = [r.total_amount for r in records if r.total_amount is not None]

    currency_totals: dict[str, Decimal] = {}
    for record in records:
        if record.total_amount is not None:
            currency_totals[record.currency] = (
                currency_totals.get(record.currency, Decimal("0.00"))
                + record.total_amount
            )

    total = sum(amounts, Decimal("0.00"))
    average = None
    if amounts:
        average = (total / len(amounts)).quantize(CENTS, rounding=ROUND_HALF_UP)

    # ISO dates sort chronologically as strings
    dates = sorted(r.date for r in records)
    scores = [r.confidence_score for r in records]

    return ReceiptSummary(
        receipt_count=len(records),
        total_amount=total,
        average_amount=average,
        currency_totals=currency_totals,
        merchant_counts=dict(Counter(r.merchant_name for r in records)),
        average_confidence=sum(scores) / len(scores) if scores else None,
        earliest_date=dates[0] if dates else None,
        latest_date=dates[-1] if dates else None,
    )
