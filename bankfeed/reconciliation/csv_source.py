"""CSV statement exports as a second source of candidates.

A bank CSV is matched against known column layouts first, then column
names are guessed from the header. Rows become CandidateTransactions so
CSV and scraped imports share the same reconciliation path.
"""

import csv
import re
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Optional

import structlog

from ..extraction.cleaner import clean_category, clean_date, clean_description, has_pending_marker
from ..extraction.models import CandidateTransaction
from .parsing import parse_amount

logger = structlog.get_logger()


class CsvFormatError(Exception):
    """Exception raised when a CSV layout cannot be recognized."""

    pass


@dataclass(frozen=True)
class CsvFormat:
    """Column mapping for one CSV layout."""

    name: str
    date_column: str
    description_column: str
    amount_column: str
    category_column: Optional[str] = None
    status_column: Optional[str] = None
    amount_multiplier: int = 1

    @property
    def required_columns(self) -> tuple[str, str, str]:
        return (self.date_column, self.description_column, self.amount_column)


USAA_FORMAT = CsvFormat(
    name="USAA",
    date_column="Date",
    description_column="Description",
    amount_column="Amount",
    category_column="Category",
    status_column="Status",
)

GENERIC_FORMAT = CsvFormat(
    name="Generic",
    date_column="date",
    description_column="description",
    amount_column="amount",
)

KNOWN_FORMATS: tuple[CsvFormat, ...] = (USAA_FORMAT, GENERIC_FORMAT)

_DATE_HEADER = re.compile(r"date", re.IGNORECASE)
_DESCRIPTION_HEADER = re.compile(r"description|memo|payee", re.IGNORECASE)
_AMOUNT_HEADER = re.compile(r"amount|value|sum", re.IGNORECASE)
_CATEGORY_HEADER = re.compile(r"category", re.IGNORECASE)


def read_header(text: str) -> list[str]:
    reader = csv.reader(StringIO(text.lstrip("\ufeff")))
    for row in reader:
        if any(cell.strip() for cell in row):
            return [cell.strip() for cell in row]
    return []


def detect_format(text: str) -> CsvFormat:
    """Pick the layout of a CSV export from its header row."""
    header = read_header(text)
    if not header:
        raise CsvFormatError("CSV file has no header row")

    columns = set(header)
    for fmt in KNOWN_FORMATS:
        if all(col in columns for col in fmt.required_columns):
            logger.debug("Detected CSV format", format=fmt.name)
            return fmt

    def first(pattern: re.Pattern, exclude: tuple[str, ...] = ()) -> Optional[str]:
        return next((h for h in header if pattern.search(h) and h not in exclude), None)

    date_col = first(_DATE_HEADER)
    description_col = first(_DESCRIPTION_HEADER, (date_col,))
    amount_col = first(_AMOUNT_HEADER, (date_col, description_col))
    if not (date_col and description_col and amount_col):
        raise CsvFormatError(
            f"Could not find date, description and amount columns in header: {header}"
        )

    fmt = CsvFormat(
        name="Auto-detected",
        date_column=date_col,
        description_column=description_col,
        amount_column=amount_col,
        category_column=first(_CATEGORY_HEADER),
    )
    logger.info("Auto-detected CSV columns", date=date_col, description=description_col, amount=amount_col)
    return fmt


def read_candidates(text: str, fmt: Optional[CsvFormat] = None) -> list[CandidateTransaction]:
    """Read candidate transactions from CSV text.

    Blank rows and rows marked pending are skipped. Amounts that parse
    get ``amount_multiplier`` applied; the rest are passed through so
    reconciliation reports them as row errors.
    """
    fmt = fmt or detect_format(text)
    reader = csv.DictReader(StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    candidates: list[CandidateTransaction] = []
    skipped = 0
    for row in reader:
        date = (row.get(fmt.date_column) or "").strip()
        description = (row.get(fmt.description_column) or "").strip()
        amount = (row.get(fmt.amount_column) or "").strip()
        category = (row.get(fmt.category_column) or "") if fmt.category_column else ""
        status = (row.get(fmt.status_column) or "") if fmt.status_column else ""

        if not (date or description or amount):
            continue
        if has_pending_marker(description, category, status):
            skipped += 1
            continue

        candidates.append(CandidateTransaction(
            date=clean_date(date),
            description=clean_description(description),
            amount=_apply_multiplier(amount, fmt.amount_multiplier),
            category=clean_category(category) or None,
            ordinal=len(candidates) + 1,
            confidence=100,
        ))

    logger.info("Read CSV candidates", format=fmt.name, rows=len(candidates), skipped_pending=skipped)
    return candidates


def _apply_multiplier(amount: str, multiplier: int) -> str:
    try:
        value = parse_amount(amount)
    except ValueError:
        return amount
    return str(value * Decimal(multiplier))
