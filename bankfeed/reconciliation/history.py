"""Access to stored transactions for reconciliation."""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from .models import ExistingTransaction
from .parsing import parse_amount, parse_date


class TransactionHistory(ABC):
    """Read-only view of an account's stored transactions.

    The storage layer implements this; reconciliation only reads from it.
    """

    @abstractmethod
    def transactions_for_account(self, account_id: str) -> list[ExistingTransaction]:
        """All stored transactions for ``account_id``."""


class InMemoryHistory(TransactionHistory):
    """History held in memory, keyed by account id."""

    def __init__(self, transactions: Optional[dict[str, Iterable[ExistingTransaction]]] = None):
        self._by_account: dict[str, list[ExistingTransaction]] = defaultdict(list)
        for account_id, items in (transactions or {}).items():
            self._by_account[account_id].extend(items)

    def add(self, account_id: str, transaction: ExistingTransaction) -> None:
        self._by_account[account_id].append(transaction)

    def transactions_for_account(self, account_id: str) -> list[ExistingTransaction]:
        return list(self._by_account.get(account_id, []))


def existing_from_dict(data: dict[str, Any]) -> ExistingTransaction:
    """Build an ExistingTransaction from a storage row."""
    raw_date: Union[str, date] = data["date"]
    raw_amount: Union[str, int, float, Decimal] = data["amount"]
    return ExistingTransaction(
        id=data["id"],
        date=raw_date if isinstance(raw_date, date) else parse_date(raw_date),
        description=data.get("description", ""),
        amount=parse_amount(str(raw_amount)),
        external_id=data.get("external_id") or data.get("externalId"),
    )
