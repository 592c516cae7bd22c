"""Duplicate detection between an import batch and stored history.

Every candidate is classified as new, an exact duplicate or a fuzzy
duplicate:

- exact: same date, same amount to the cent and the same description
  ignoring case and spacing (confidence 100)
- fuzzy: same amount, date within the tolerance window and description
  similarity at or above the threshold (confidence = similarity, < 100)

The result never depends on the order of the history.
"""

import difflib
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from ..config import Settings
from ..extraction.models import CandidateTransaction
from .models import (
    DuplicateMatch,
    ExistingTransaction,
    ImportPreview,
    MatchType,
    ParsedCandidate,
    RowError,
)
from .parsing import normalize_description, parse_amount, parse_date

logger = structlog.get_logger()

DEFAULT_FUZZY_THRESHOLD = 70
DEFAULT_DATE_TOLERANCE_DAYS = 1


def similarity(a: str, b: str) -> int:
    """Description similarity on a 0-100 scale."""
    left, right = normalize_description(a), normalize_description(b)
    if not left and not right:
        return 100
    return round(difflib.SequenceMatcher(None, left, right).ratio() * 100)


def _sort_key(existing: ExistingTransaction) -> tuple[str, str]:
    return (str(existing.id), existing.external_id or "")


class ReconciliationMatcher:
    """Classifies candidates against one account's history."""

    def __init__(
        self,
        fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
        date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
    ):
        self.fuzzy_threshold = fuzzy_threshold
        self.date_tolerance_days = date_tolerance_days
        self.log = logger.bind(component="reconciliation")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconciliationMatcher":
        return cls(
            fuzzy_threshold=settings.fuzzy_match_threshold,
            date_tolerance_days=settings.date_tolerance_days,
        )

    def parse(
        self, candidates: list[CandidateTransaction]
    ) -> tuple[list[ParsedCandidate], list[RowError]]:
        parsed: list[ParsedCandidate] = []
        errors: list[RowError] = []
        for row, candidate in enumerate(candidates, start=1):
            try:
                parsed.append(ParsedCandidate(
                    row=row,
                    candidate=candidate,
                    date=parse_date(candidate.date),
                    amount=parse_amount(candidate.amount),
                ))
            except ValueError as e:
                errors.append(RowError(row=row, error=str(e)))
        return parsed, errors

    def reconcile(
        self,
        candidates: list[CandidateTransaction],
        history: Iterable[ExistingTransaction],
    ) -> ImportPreview:
        parsed, errors = self.parse(candidates)

        by_amount: dict[Decimal, list[ExistingTransaction]] = defaultdict(list)
        for existing in history:
            by_amount[existing.amount.quantize(Decimal("0.01"))].append(existing)
        for bucket in by_amount.values():
            bucket.sort(key=_sort_key)

        preview = ImportPreview(errors=errors)
        for item in parsed:
            match = self.find_match(item, by_amount.get(item.amount, []))
            if match is None:
                preview.rows.append(item)
            else:
                preview.duplicates.append(match)

        self.log.info(
            "Reconciliation complete",
            candidates=len(candidates),
            new=len(preview.rows),
            duplicates=len(preview.duplicates),
            errors=len(preview.errors),
        )
        return preview

    def find_match(
        self,
        item: ParsedCandidate,
        same_amount: list[ExistingTransaction],
    ) -> Optional[DuplicateMatch]:
        """Best match among history entries that share the amount.

        ``same_amount`` must be sorted by id so ties resolve the same way
        whatever order the history arrived in.
        """
        description = normalize_description(item.description)

        for existing in same_amount:
            if (
                existing.date == item.date
                and normalize_description(existing.description) == description
            ):
                return DuplicateMatch(item, existing, MatchType.EXACT, 100)

        best: Optional[tuple[int, int, ExistingTransaction]] = None
        for existing in same_amount:
            distance = abs((existing.date - item.date).days)
            if distance > self.date_tolerance_days:
                continue
            score = similarity(item.description, existing.description)
            if score < self.fuzzy_threshold:
                continue
            # Higher score wins, then closer date; id order settles the rest
            if best is None or (score, -distance) > (best[0], -best[1]):
                best = (score, distance, existing)

        if best is None:
            return None
        # An exact match would have been found above, so fuzzy stays below 100
        return DuplicateMatch(item, best[2], MatchType.FUZZY, min(best[0], 99))


def reconcile(
    candidates: list[CandidateTransaction],
    history: Iterable[ExistingTransaction],
    fuzzy_threshold: int = DEFAULT_FUZZY_THRESHOLD,
    date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
) -> ImportPreview:
    return ReconciliationMatcher(fuzzy_threshold, date_tolerance_days).reconcile(candidates, history)


def rows_to_import(preview: ImportPreview, skip_duplicates: bool = True) -> list[ParsedCandidate]:
    """Rows to write. Duplicates are included only when explicitly requested."""
    if skip_duplicates:
        return list(preview.rows)
    rows = list(preview.rows) + [d.candidate for d in preview.duplicates]
    return sorted(rows, key=lambda r: r.row)
