"""Rule-based receipt field extraction from raw OCR results.

Each field is resolved in tiers: a typed OCR entity is used first when it
parses, otherwise the full document text is searched with regular
expressions. Fields that cannot be resolved fall back to a default, so
extraction always yields a complete ReceiptRecord and never raises.
"""

import logging
import math
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from decimal import Decimal

from slipscan.models import (
    DEFAULT_CURRENCY,
    UNKNOWN_MERCHANT,
    LineItem,
    OcrEntity,
    RawOcrResult,
    ReceiptRecord,
)
from slipscan.utils.parsing import (
    clean_text,
    parse_amount,
    parse_date_lenient,
    parse_date_strict,
)

logger = logging.getLogger(__name__)

MERCHANT_ENTITY_TYPES = ("supplier_name", "merchant_name", "supplier")
DATE_ENTITY_TYPES = ("receipt_date", "date")

DEFAULT_CONFIDENCE = 0.5

# The merchant name is usually printed in the first few lines
MERCHANT_SCAN_LINES = 5
MERCHANT_MIN_LENGTH = 3
MERCHANT_MAX_LENGTH = 50

MERCHANT_SKIP_PATTERNS = [
    re.compile(r"^\d"),  # street address
    re.compile(r"receipt|invoice|bill", re.IGNORECASE),  # header boilerplate
    re.compile(r"^\(\d{3}\)"),  # phone number
]

AMOUNT_PATTERNS = {
    "total_amount": re.compile(
        r"(?:total|amount due|balance)[:\s]*\$?(\d+\.?\d*)", re.IGNORECASE
    ),
    "tax_amount": re.compile(r"(?:tax|hst|gst|vat)[:\s]*\$?(\d+\.?\d*)", re.IGNORECASE),
    "subtotal_amount": re.compile(
        r"(?:subtotal|sub[- ]total)[:\s]*\$?(\d+\.?\d*)", re.IGNORECASE
    ),
}
ANY_AMOUNT = re.compile(r"\$?\d+\.?\d*")

# Tried in order; every match of a pattern is tried before the next pattern.
DATE_PATTERNS: list[tuple[re.Pattern[str], tuple[str, ...]]] = [
    (re.compile(r"(?<!\d)\d{1,2}/\d{1,2}/\d{2,4}(?!\d)"), ("%m/%d/%Y", "%m/%d/%y")),
    (re.compile(r"(?<!\d)\d{1,2}-\d{1,2}-\d{2,4}(?!\d)"), ("%m-%d-%Y", "%m-%d-%y")),
    (re.compile(r"(?<!\d)\d{4}-\d{1,2}-\d{1,2}(?!\d)"), ("%Y-%m-%d",)),
    (re.compile(r"\w+\s+\d{1,2},?\s+\d{4}"), ("%B %d %Y", "%b %d %Y")),
]

# Only spaces and tabs before AM/PM, so a time at the end of a line cannot
# run into the next line; the match is stripped
TIME_PATTERN = re.compile(r"\d{1,2}:\d{2}(?::\d{2})?[ \t]*(?:AM|PM)?", re.IGNORECASE)

LINE_ITEM_PATTERN = re.compile(r"^(.+?)\s+\$?(\d+\.?\d*)$")
LINE_ITEM_EXCLUDE = re.compile(r"total|tax|subtotal|balance", re.IGNORECASE)
LINE_ITEM_MIN_DESCRIPTION = 3

CURRENCY_SYMBOLS = [("$", "USD"), ("€", "EUR"), ("£", "GBP"), ("¥", "JPY")]

PAYMENT_PATTERNS = [
    (re.compile(r"credit|visa|mastercard|amex", re.IGNORECASE), "Credit Card"),
    (re.compile(r"debit", re.IGNORECASE), "Debit Card"),
    (re.compile(r"cash", re.IGNORECASE), "Cash"),
    (re.compile(r"paypal", re.IGNORECASE), "PayPal"),
    (re.compile(r"apple pay|google pay", re.IGNORECASE), "Mobile Payment"),
]


def find_entity(
    entities: Sequence[OcrEntity], types: Iterable[str]
) -> OcrEntity | None:
    """Return the first entity whose type is one of ``types``."""
    wanted = set(types)
    return next((entity for entity in entities if entity.type in wanted), None)


class ReceiptFieldExtractor:
    """
    Turns a RawOcrResult into a normalized ReceiptRecord.

    The extractor holds no state between calls and performs no I/O, so one
    instance can be shared freely across threads and tasks.
    """

    def __init__(self, today: Callable[[], date] = date.today) -> None:
        """
        Args:
            today: Clock used for the date default when no date is found.
        """
        self._today = today

    def extract(self, raw: RawOcrResult) -> ReceiptRecord:
        """
        Extract every receipt field from an OCR result.

        Args:
            raw: Text and entities returned by the OCR provider.

        Returns:
            A newly built ReceiptRecord. Unresolved fields carry their
            documented defaults.
        """
        text = raw.text or ""
        entities = raw.entities

        record = ReceiptRecord(
            merchant_name=self.extract_merchant_name(entities, text),
            total_amount=self.extract_amount(entities, text, "total_amount"),
            tax_amount=self.extract_amount(entities, text, "tax_amount"),
            subtotal_amount=self.extract_amount(entities, text, "subtotal_amount"),
            date=self.extract_date(entities, text),
            time=self.extract_time(text),
            line_items=self.extract_line_items(text),
            currency=self.extract_currency(text),
            payment_method=self.extract_payment_method(text),
            confidence_score=self.score_confidence(raw),
        )

        logger.debug(
            "Extracted receipt: %s, total=%s, %d line item(s)",
            record.merchant_name,
            record.total_amount,
            len(record.line_items),
        )
        return record

    def extract_merchant_name(self, entities: Sequence[OcrEntity], text: str) -> str:
        entity = find_entity(entities, MERCHANT_ENTITY_TYPES)
        if entity is not None and entity.mention_text:
            name = clean_text(entity.mention_text)
            if name:
                return name

        lines = [line.strip() for line in text.split("\n") if line.strip()]
        for line in lines[:MERCHANT_SCAN_LINES]:
            if not MERCHANT_MIN_LENGTH <= len(line) <= MERCHANT_MAX_LENGTH:
                continue
            if any(pattern.search(line) for pattern in MERCHANT_SKIP_PATTERNS):
                continue
            return clean_text(line)

        logger.debug("No merchant name found, using default")
        return UNKNOWN_MERCHANT

    def extract_amount(
        self, entities: Sequence[OcrEntity], text: str, field: str
    ) -> Decimal | None:
        """
        Resolve one of ``total_amount``, ``tax_amount`` or ``subtotal_amount``.

        The total additionally falls back to the largest amount printed
        anywhere on the receipt, which is usually the grand total but is not
        guaranteed to be.
        """
        entity = find_entity(entities, (field,))
        if entity is not None:
            amount = parse_amount(entity.mention_text)
            if amount is not None:
                return amount
            logger.debug("Unparsable %s entity %r", field, entity.mention_text)

        pattern = AMOUNT_PATTERNS.get(field)
        if pattern is not None:
            match = pattern.search(text)
            if match:
                amount = parse_amount(match.group(1))
                if amount is not None:
                    return amount

        if field == "total_amount":
            return self._largest_amount(text)
        return None

    def _largest_amount(self, text: str) -> Decimal | None:
        amounts = (parse_amount(token) for token in ANY_AMOUNT.findall(text))
        return max(
            (amount for amount in amounts if amount is not None and amount > 0),
            default=None,
        )

    def extract_date(self, entities: Sequence[OcrEntity], text: str) -> str:
        """Return the receipt date as YYYY-MM-DD, defaulting to today."""
        entity = find_entity(entities, DATE_ENTITY_TYPES)
        if entity is not None:
            parsed = parse_date_lenient(entity.mention_text)
            if parsed is not None:
                return parsed.isoformat()
            logger.debug("Unparsable date entity %r", entity.mention_text)

        for pattern, formats in DATE_PATTERNS:
            for match in pattern.finditer(text):
                parsed = parse_date_strict(match.group(0), formats)
                if parsed is not None:
                    return parsed.isoformat()

        logger.debug("No date found, using today's date")
        return self._today().isoformat()

    def extract_time(self, text: str) -> str | None:
        match = TIME_PATTERN.search(text)
        return match.group(0).strip() if match else None

    def extract_line_items(self, text: str) -> list[LineItem]:
        """Parse "description   $amount" lines, skipping totals and taxes."""
        items = []
        for line in text.splitlines():
            match = LINE_ITEM_PATTERN.match(line.rstrip())
            if not match:
                continue

            description = clean_text(match.group(1))
            if LINE_ITEM_EXCLUDE.search(description):
                continue
            if len(description) < LINE_ITEM_MIN_DESCRIPTION:
                continue

            amount = parse_amount(match.group(2))
            if amount is None:
                continue
            items.append(LineItem(description=description, amount=amount, quantity=1))
        return items

    def extract_currency(self, text: str) -> str:
        for symbol, code in CURRENCY_SYMBOLS:
            if symbol in text:
                return code
        return DEFAULT_CURRENCY

    def extract_payment_method(self, text: str) -> str | None:
        for pattern, method in PAYMENT_PATTERNS:
            if pattern.search(text):
                return method
        return None

    def score_confidence(self, raw: RawOcrResult) -> float:
        """
        Average the entity confidences, or pass the document confidence through.

        Entities without a usable confidence count as 0.5 in the average. When
        no entity carries a confidence, ``raw.confidence`` is used, and 0.5 if
        that is missing too.
        """
        scores = [
            entity.confidence
            if entity.confidence is not None and math.isfinite(entity.confidence)
            else None
            for entity in raw.entities
        ]
        if any(score is not None for score in scores):
            filled = [DEFAULT_CONFIDENCE if s is None else s for s in scores]
            score = sum(filled) / len(filled)
        elif raw.confidence is not None:
            score = raw.confidence
        else:
            score = DEFAULT_CONFIDENCE
        return min(max(score, 0.0), 1.0)


_default_extractor = ReceiptFieldExtractor()


def extract_receipt(raw: RawOcrResult) -> ReceiptRecord:
    """Extract a ReceiptRecord using a shared default extractor."""
    return _default_extractor.extract(raw)
