"""Parsing of candidate dates and amounts into canonical values."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ..extraction.cleaner import clean, collapse_whitespace

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",  # also accepts M/D/YYYY
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d %Y",
    "%B %d %Y",
    "%m/%d/%y",
)

CENT = Decimal("0.01")

_AMOUNT_NOISE = re.compile(r"[$,\s]")


def parse_date(text: str) -> date:
    """Parse a bank date string. Raises ValueError when no format fits."""
    value = clean(text).replace(".", "")
    if not value:
        raise ValueError("Missing date")
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: {text!r}")


def parse_amount(text: str) -> Decimal:
    """Parse a signed amount to cents.

    Accepts currency symbols, thousands separators, a unicode minus and
    accounting parentheses for negatives.
    """
    value = collapse_whitespace(text).replace("\u2212", "-")
    if not value:
        raise ValueError("Missing amount")

    negative = value.startswith("(") and value.endswith(")")
    if negative:
        value = value[1:-1]
    value = _AMOUNT_NOISE.sub("", value)

    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Unrecognized amount: {text!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Unrecognized amount: {text!r}")

    if negative:
        amount = -abs(amount)
    try:
        return amount.quantize(CENT)
    except InvalidOperation:
        raise ValueError(f"Unrecognized amount: {text!r}") from None


def normalize_description(text: str) -> str:
    return collapse_whitespace(text).lower()
