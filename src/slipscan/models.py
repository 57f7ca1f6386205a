"""Data models for OCR input and structured receipt records."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

UNKNOWN_MERCHANT = "Unknown Merchant"
DEFAULT_CURRENCY = "USD"

CENTS = Decimal("0.01")


def _quantize_amount(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    if not value.is_finite() or value < 0:
        raise ValueError("amount must be a finite, non-negative decimal")
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class OcrEntity(BaseModel):
    """A typed field recognized by the OCR provider, e.g. ``total_amount``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    mention_text: str | None = Field(None, alias="mentionText")
    confidence: float | None = None


class RawOcrResult(BaseModel):
    """Raw OCR output: full document text plus optional typed entities."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    entities: list[OcrEntity] = Field(default_factory=list)
    confidence: float | None = Field(None, ge=0.0, le=1.0)


class LineItem(BaseModel):
    """Single purchased item parsed from one receipt line."""

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    description: str
    amount: Decimal
    quantity: int = 1

    @field_validator("amount")
    @classmethod
    def _two_decimals(cls, value: Decimal) -> Decimal:
        return _quantize_amount(value)  # type: ignore[return-value]


class ReceiptRecord(BaseModel):
    """Structured receipt data extracted from a single OCR result.

    Amounts are kept as ``Decimal`` with exactly two fraction digits and
    serialize to strings such as ``"17.82"``. JSON output uses camelCase keys
    (``merchantName``, ``totalAmount``, ...).
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True
    )

    merchant_name: str = UNKNOWN_MERCHANT
    total_amount: Decimal | None = None
    tax_amount: Decimal | None = None
    subtotal_amount: Decimal | None = None
    date: str  # YYYY-MM-DD format
    time: str | None = None
    line_items: tuple[LineItem, ...] = ()
    currency: str = DEFAULT_CURRENCY
    payment_method: str | None = None
    confidence_score: float = Field(0.5, ge=0.0, le=1.0)

    @field_validator("total_amount", "tax_amount", "subtotal_amount")
    @classmethod
    def _two_decimals(cls, value: Decimal | None) -> Decimal | None:
        return _quantize_amount(value)

    def amended(self, **changes: Any) -> "ReceiptRecord":
        """Return a new record with the given fields replaced.

        Changes go through validation, so corrected amounts are normalized the
        same way as extracted ones. The current record is left untouched.
        """
        data = self.model_dump()
        data.update(changes)
        return ReceiptRecord.model_validate(data)

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


class ProcessingResult(BaseModel):
    """Outcome of running OCR and field extraction on one file."""

    file_name: str
    ocr_engine: str | None = None
    ocr_result: RawOcrResult | None = None
    ocr_error: str | None = None
    receipt: ReceiptRecord | None = None
    processing_time: float = 0.0  # in seconds
