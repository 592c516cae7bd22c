"""Data models for transaction extraction."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ScrapeMethod(str, Enum):
    """Which path produced a scrape result."""
    VISION = "vision"
    DOM = "dom"


@dataclass
class PageSnapshot:
    """What was captured from the page for one scrape attempt."""

    url: str
    html: Optional[str] = None
    screenshots: list[bytes] = field(default_factory=list)


@dataclass
class RawRow:
    """Field text as one strategy read it from one row, before cleaning."""

    date: str = ""
    description: str = ""
    amount: str = ""
    balance: str = ""
    category: str = ""


@dataclass
class CandidateTransaction:
    """An extracted transaction awaiting reconciliation.

    ``date`` and ``amount`` stay as cleaned strings; parsing happens at
    import time so a bad row becomes an error entry instead of an exception.
    """

    date: str
    description: str
    amount: str
    balance: Optional[str] = None
    category: Optional[str] = None
    ordinal: int = 0
    confidence: int = 100

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.date, self.description, self.amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "description": self.description,
            "amount": self.amount,
            "balance": self.balance,
            "category": self.category,
            "index": self.ordinal,
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateTransaction":
        return cls(
            date=str(data.get("date") or ""),
            description=str(data.get("description") or ""),
            amount=str(data.get("amount") or ""),
            balance=data.get("balance") or None,
            category=data.get("category") or None,
            ordinal=int(data.get("index", 0)),
            confidence=int(data.get("confidence", 100)),
        )


@dataclass
class ScrapeResult:
    """Candidates from one scrape and the path that produced them."""

    candidates: list[CandidateTransaction]
    method: ScrapeMethod
    url: str = ""
    vision_error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidates": [c.to_dict() for c in self.candidates],
            "method": self.method.value,
            "url": self.url,
            "visionError": self.vision_error,
        }
