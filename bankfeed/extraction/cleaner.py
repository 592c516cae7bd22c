"""Normalization of raw text read from bank pages.

DOM text concatenation glues neighbouring cells together
("Feb 04, 2026February 04 2026", "-206.422380.52"). Every function here
is total and idempotent: ``f(f(s)) == f(s)`` and nothing raises.
"""

import re

_WHITESPACE = re.compile(r"\s+")

DATE_PREFIX = re.compile(
    r"^("
    r"[A-Za-z]{3,9}\.?\s+\d{1,2},?\s+\d{4}"  # Feb 04, 2026 / February 04 2026
    r"|\d{1,2}/\d{1,2}/\d{2,4}"  # 02/04/2026
    r"|\d{4}-\d{2}-\d{2}"  # 2026-02-04
    r")"
)

AMOUNT_PREFIX = re.compile(r"^(-?\$?\d[\d,]*\.\d{2})")

# Tokens banks inject into the description cell
VENDOR_TOKENS = re.compile(r"\b(?:pending|posted)\b|\bOpens?\s+popup\b", re.IGNORECASE)

# Trailing counters: "0", "12", "(3)", "()"
_CATEGORY_NOISE = re.compile(r"(?:\s*\(\s*\d*\s*\)|\s*\d+(?!\d))+$")
_AMOUNT_NOISE = re.compile(r"[$,\s]")


def collapse_whitespace(raw: str | None) -> str:
    if not raw:
        return ""
    return _WHITESPACE.sub(" ", raw).strip()


def clean(raw: str | None) -> str:
    """Collapse whitespace and undo date/amount concatenation.

    Text starting with a date followed by more characters is cut to the
    date; text starting with a money amount followed by more characters is
    cut to the amount. Anything else only has its whitespace collapsed.
    """
    text = collapse_whitespace(raw)

    match = DATE_PREFIX.match(text)
    if match and len(match.group(1)) < len(text):
        text = match.group(1)

    match = AMOUNT_PREFIX.match(text)
    if match and len(match.group(1)) < len(text):
        text = match.group(1)

    return text


def clean_description(raw: str | None) -> str:
    """Strip vendor tokens and keep the part before the first comma."""
    text = collapse_whitespace(raw)
    previous = None
    while previous != text:
        previous = text
        text = collapse_whitespace(VENDOR_TOKENS.sub(" ", text))
    if "," in text:
        text = text.split(",", 1)[0].strip()
    return text


def clean_category(raw: str | None) -> str:
    """Drop trailing counters like "Allowance 0" or "Dining (3)"."""
    text = collapse_whitespace(raw)
    return _CATEGORY_NOISE.sub("", text).strip()


def clean_amount(raw: str | None) -> str:
    """Cut glued columns, then drop currency symbol and separators."""
    text = clean(raw)
    previous = None
    # Dropping separators can expose a new glued suffix ("1 234.56 7")
    while previous != text:
        previous = text
        text = clean(_AMOUNT_NOISE.sub("", text))
    return text


def clean_date(raw: str | None) -> str:
    return clean(raw)


def has_pending_marker(*values: str | None) -> bool:
    return any(v and "pending" in v.lower() for v in values)
