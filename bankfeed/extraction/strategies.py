"""Row extraction strategies for known bank markup conventions.

A strategy is a row selector plus a pure function from one row node to a
``RawRow`` (or None when the row is not a transaction). Supporting a new
bank layout means appending a strategy to ``DEFAULT_STRATEGIES``.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .cleaner import clean, collapse_whitespace
from .dom import DomNode
from .models import RawRow

MONEY = re.compile(r"^-?\$?[\d,]+\.\d{2}$")
UNSIGNED_MONEY = re.compile(r"^\$?[\d,]+\.\d{2}$")
DATE_LIKE = re.compile(
    r"\d{1,2}[/-]\d{1,2}[/-]\d{2,4}|[A-Z][a-z]{2}\s+\d{1,2},?\s+\d{4}|\d{4}-\d{2}-\d{2}"
)
HEADER_WORDS = re.compile(r"^(date|description|amount|balance|category)$", re.IGNORECASE)

# Ordered keyword table; the first category with a matching keyword wins
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Restaurants & Dining", ("restaurant", "shack", "cafe", "pizza")),
    ("Gas & Fuel", ("gas", "fuel", "shell", "chevron")),
    ("Groceries", ("grocery", "market", "safeway", "whole foods")),
    ("Shopping", ("amazon", "target", "walmart")),
    ("Entertainment", ("netflix", "spotify", "hulu")),
)


def infer_category(description: str) -> Optional[str]:
    """Guess a spending category from merchant keywords."""
    desc = description.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in desc for keyword in keywords):
            return category
    return None


@dataclass(frozen=True)
class ExtractionStrategy:
    """One markup convention: which rows to visit and how to read them."""

    name: str
    row_selector: str
    extract: Callable[[DomNode], Optional[RawRow]]


def cell_text(node: Optional[DomNode]) -> str:
    if node is None:
        return ""
    return clean(node.text)


def direct_text(node: Optional[DomNode]) -> str:
    """Text of the first direct span/div/time child, else of the node."""
    if node is None:
        return ""
    first = node.select_one(":scope > span, :scope > div, :scope > time")
    return cell_text(first or node)


def extract_testid_row(row: DomNode) -> Optional[RawRow]:
    cells = row.select("td")
    result = RawRow()

    date_cell = row.select_one('[class*="date"]') or (cells[0] if cells else None)
    if date_cell is not None:
        time_el = date_cell.select_one("time")
        result.date = direct_text(time_el) if time_el else cell_text(date_cell)

    desc_cell = row.select_one('[class*="description"], [class*="merchant"], [class*="payee"]')
    if desc_cell is not None:
        result.description = collapse_whitespace(desc_cell.text)
    elif len(cells) > 1:
        result.description = collapse_whitespace(cells[1].text)

    amount_cell = row.select_one('[class*="amount"]')
    if amount_cell is not None:
        result.amount = cell_text(amount_cell)
    if not result.amount:
        for cell in cells:
            text = cell_text(cell)
            if MONEY.match(text):
                result.amount = text
                break

    balance_cell = row.select_one('[class*="balance"]')
    if balance_cell is not None:
        result.balance = cell_text(balance_cell)
    if not result.balance:
        for cell in reversed(cells[-3:]):
            text = cell_text(cell)
            if UNSIGNED_MONEY.match(text) and text != result.amount:
                result.balance = text
                break

    category_cell = row.select_one('[class*="category"]')
    result.category = collapse_whitespace(category_cell.text) if category_cell else ""
    return result


def extract_table_row(row: DomNode) -> Optional[RawRow]:
    cells = row.select(":scope > td")
    if len(cells) < 3:
        return None

    date = cell_text(cells[0])
    if not DATE_LIKE.search(date):
        return None

    money = [text for text in (cell_text(c) for c in cells) if MONEY.match(text)]
    if not money:
        return None

    description = collapse_whitespace(cells[1].text)
    if len(description) < 2 or HEADER_WORDS.match(description):
        return None

    return RawRow(
        date=date,
        description=description,
        amount=money[0],
        balance=money[1] if len(money) > 1 else "",
    )


def extract_grid_row(row: DomNode) -> Optional[RawRow]:
    cells = row.select('[role="cell"], [role="gridcell"]')
    if len(cells) < 2:
        return None

    texts = [cell_text(c) for c in cells]
    date = next((t for t in texts if DATE_LIKE.search(t)), "")
    money = [t for t in texts if MONEY.match(t)]

    description = ""
    for cell, text in zip(cells, texts):
        if text and text != date and text not in money:
            description = collapse_whitespace(cell.text)
            break

    if HEADER_WORDS.match(description):
        return None

    return RawRow(
        date=date,
        description=description,
        amount=money[0] if money else "",
        balance=money[1] if len(money) > 1 else "",
    )


TESTID_STRATEGY = ExtractionStrategy(
    name="data-testid",
    row_selector='tr[data-testid*="transaction-row"]',
    extract=extract_testid_row,
)

TABLE_STRATEGY = ExtractionStrategy(
    name="generic-table",
    row_selector="table tbody tr",
    extract=extract_table_row,
)

GRID_STRATEGY = ExtractionStrategy(
    name="aria-grid",
    row_selector='[role="row"]',
    extract=extract_grid_row,
)

DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    TESTID_STRATEGY,
    TABLE_STRATEGY,
    GRID_STRATEGY,
)
