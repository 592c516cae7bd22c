"""Data models for import reconciliation."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from ..extraction.models import CandidateTransaction


class MatchType(str, Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class ExistingTransaction:
    """A stored transaction, read-only input to reconciliation."""

    id: Union[int, str]
    date: date
    description: str
    amount: Decimal
    external_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "amount": str(self.amount),
            "externalId": self.external_id,
        }


@dataclass
class ParsedCandidate:
    """A candidate whose date and amount parsed cleanly.

    ``row`` is the 1-based position of the candidate in the input batch.
    """

    row: int
    candidate: CandidateTransaction
    date: date
    amount: Decimal

    @property
    def description(self) -> str:
        return self.candidate.description

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "date": self.date.isoformat(),
            "description": self.candidate.description,
            "amount": str(self.amount),
            "balance": self.candidate.balance,
            "category": self.candidate.category,
        }


@dataclass
class DuplicateMatch:
    candidate: ParsedCandidate
    existing_transaction: ExistingTransaction
    match_type: MatchType
    confidence: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "existingTransaction": self.existing_transaction.to_dict(),
            "matchType": self.match_type.value,
            "confidence": self.confidence,
        }


@dataclass
class RowError:
    row: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "error": self.error}


@dataclass
class ImportPreview:
    """Classification of one batch: new rows, duplicates and bad rows."""

    rows: list[ParsedCandidate] = field(default_factory=list)
    duplicates: list[DuplicateMatch] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    account_id: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.rows) + len(self.duplicates) + len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "accountId": self.account_id,
            "rows": [r.to_dict() for r in self.rows],
            "duplicates": [d.to_dict() for d in self.duplicates],
            "errors": [e.to_dict() for e in self.errors],
        }
