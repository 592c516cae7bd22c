"""Reconciliation of imported candidates against stored history."""

from .csv_source import CsvFormat, CsvFormatError, KNOWN_FORMATS, detect_format, read_candidates
from .history import InMemoryHistory, TransactionHistory, existing_from_dict
from .matcher import ReconciliationMatcher, reconcile, rows_to_import, similarity
from .models import (
    DuplicateMatch,
    ExistingTransaction,
    ImportPreview,
    MatchType,
    ParsedCandidate,
    RowError,
)
from .parsing import parse_amount, parse_date

__all__ = [
    "CsvFormat",
    "CsvFormatError",
    "KNOWN_FORMATS",
    "detect_format",
    "read_candidates",
    "InMemoryHistory",
    "TransactionHistory",
    "existing_from_dict",
    "ReconciliationMatcher",
    "reconcile",
    "rows_to_import",
    "similarity",
    "DuplicateMatch",
    "ExistingTransaction",
    "ImportPreview",
    "MatchType",
    "ParsedCandidate",
    "RowError",
    "parse_amount",
    "parse_date",
]
