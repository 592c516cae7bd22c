"""Structural extraction of transactions from a DOM snapshot.

Every strategy runs against the snapshot in priority order. A strategy
that captures only part of the page never hides rows a later strategy
would find; overlapping captures are removed by ``dedupe`` afterwards.
"""

from typing import Optional, Sequence

import structlog

from .cleaner import (
    clean_amount,
    clean_category,
    clean_date,
    clean_description,
    has_pending_marker,
)
from .dedupe import dedupe
from .dom import DomNode, SelectorError, parse_html
from .models import CandidateTransaction, PageSnapshot, RawRow
from .strategies import DEFAULT_STRATEGIES, ExtractionStrategy, infer_category

logger = structlog.get_logger()

DEFAULT_MAX_ROWS = 50
DOM_CONFIDENCE = 95


class StructuralExtractor:
    """Runs extraction strategies over a parsed snapshot."""

    def __init__(
        self,
        strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
        max_rows: int = DEFAULT_MAX_ROWS,
        confidence: int = DOM_CONFIDENCE,
    ):
        self.strategies = tuple(strategies)
        self.max_rows = max_rows
        self.confidence = confidence
        self.log = logger.bind(component="structural_extractor")

    def extract_all(self, snapshot: PageSnapshot | str | DomNode) -> list[CandidateTransaction]:
        """Union of every strategy's rows, before deduplication.

        Ordinals are 1-based in extraction order across all strategies.
        """
        root = _as_root(snapshot)
        candidates: list[CandidateTransaction] = []

        for strategy in self.strategies:
            try:
                rows = root.select(strategy.row_selector)
            except SelectorError as e:
                self.log.error("Invalid row selector", strategy=strategy.name, error=str(e))
                continue

            accepted = 0
            skipped = 0
            for row in rows:
                if row.has("th"):
                    continue
                try:
                    raw = strategy.extract(row)
                except Exception as e:
                    self.log.warning("Row extraction failed", strategy=strategy.name, error=str(e))
                    skipped += 1
                    continue

                candidate = self._to_candidate(raw, len(candidates) + 1)
                if candidate is None:
                    skipped += 1
                    continue
                candidates.append(candidate)
                accepted += 1

            self.log.debug(
                "Strategy finished",
                strategy=strategy.name,
                rows=len(rows),
                accepted=accepted,
                skipped=skipped,
            )

        return candidates

    def extract(self, snapshot: PageSnapshot | str | DomNode) -> list[CandidateTransaction]:
        """Deduplicated rows, capped at ``max_rows`` keeping the first (newest)."""
        candidates = dedupe(self.extract_all(snapshot))
        if len(candidates) > self.max_rows:
            self.log.info("Capping extracted rows", found=len(candidates), kept=self.max_rows)
            candidates = candidates[: self.max_rows]
        self.log.info("Structural extraction complete", rows=len(candidates))
        return candidates

    def _to_candidate(self, raw: Optional[RawRow], ordinal: int) -> Optional[CandidateTransaction]:
        if raw is None:
            return None

        date = clean_date(raw.date)
        amount = clean_amount(raw.amount)
        if not date and not amount:
            return None
        if has_pending_marker(raw.description, raw.category):
            return None

        description = clean_description(raw.description)
        category = clean_category(raw.category) or infer_category(description)

        return CandidateTransaction(
            date=date,
            description=description,
            amount=amount,
            balance=clean_amount(raw.balance) or None,
            category=category or None,
            ordinal=ordinal,
            confidence=self.confidence,
        )


def _as_root(snapshot: PageSnapshot | str | DomNode) -> DomNode:
    if isinstance(snapshot, DomNode):
        return snapshot
    if isinstance(snapshot, PageSnapshot):
        return parse_html(snapshot.html or "")
    return parse_html(snapshot)


def extract(
    snapshot: PageSnapshot | str | DomNode,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> list[CandidateTransaction]:
    """Convenience wrapper over ``StructuralExtractor.extract``."""
    return StructuralExtractor(strategies, max_rows=max_rows).extract(snapshot)
