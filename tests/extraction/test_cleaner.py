"""Tests for text cleaning of extracted fields."""

import pytest

from bankfeed.extraction.cleaner import (
    clean,
    clean_amount,
    clean_category,
    clean_description,
    has_pending_marker,
)


SAMPLES = [
    "Feb 04, 2026February 04 2026",
    "-206.422380.52",
    "  SQ *SHAKE   SHACK ,  NEW YORK  ",
    "$1,234.56",
    "02/04/2026 02/04/2026",
    "2026-02-04T00:00",
    "",
    "   ",
    "Dining (3)",
    "Allowance 0",
    "pending posted Opens popup",
    "Pendingposted",
    "no special content",
    "-$5.00-$5.00",
]


class TestClean:
    """Tests for the generic clean() step."""

    def test_date_deconcatenation(self):
        """Two renderings of a date glued together keep only the first."""
        assert clean("Feb 04, 2026February 04 2026") == "Feb 04, 2026"

    def test_amount_deconcatenation(self):
        """An amount glued to the balance column keeps only the amount."""
        assert clean("-206.422380.52") == "-206.42"

    def test_amount_with_currency_and_separators(self):
        assert clean("$1,234.56$99.00") == "$1,234.56"

    def test_numeric_dates(self):
        assert clean("02/04/202602/04/2026") == "02/04/2026"
        assert clean("2026-02-04 more") == "2026-02-04"

    def test_unmatched_text_only_collapses_whitespace(self):
        assert clean("  Coffee \n  Shop\t") == "Coffee Shop"

    def test_none_and_empty(self):
        assert clean(None) == ""
        assert clean("") == ""

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_idempotent(self, raw):
        """clean(clean(s)) == clean(s)."""
        once = clean(raw)
        assert clean(once) == once


class TestFieldCleaners:
    """Tests for description, category and amount cleaners."""

    def test_description_strips_vendor_tokens(self):
        assert clean_description("Pending AMAZON MKTPLACE Opens popup") == "AMAZON MKTPLACE"
        assert clean_description("POSTED Netflix") == "Netflix"

    def test_description_keeps_text_before_comma(self):
        assert clean_description("SQ *SHAKE SHACK, NEW YORK NY") == "SQ *SHAKE SHACK"

    def test_description_keeps_words_containing_tokens(self):
        """Only whole tokens are removed."""
        assert clean_description("Compostedness Farm") == "Compostedness Farm"

    def test_category_strips_trailing_counters(self):
        assert clean_category("Allowance 0") == "Allowance"
        assert clean_category("Dining (3)") == "Dining"
        assert clean_category("  Bills   &  Utilities ") == "Bills & Utilities"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Groceries (Food)", "Groceries (Food)"),
            ("Groceries (Food) 4", "Groceries (Food)"),
            ("Travel (2) ()", "Travel"),
            ("Transfers12", "Transfers"),
        ],
    )
    def test_category_keeps_qualifier_in_parentheses(self, raw, expected):
        assert clean_category(raw) == expected

    def test_amount_keeps_sign_and_drops_symbols(self):
        assert clean_amount("-$1,234.56") == "-1234.56"
        assert clean_amount("-206.422380.52") == "-206.42"
        assert clean_amount("2,500.00") == "2500.00"

    @pytest.mark.parametrize("raw", SAMPLES)
    def test_field_cleaners_idempotent(self, raw):
        for cleaner in (clean_description, clean_category, clean_amount):
            once = cleaner(raw)
            assert cleaner(once) == once

    def test_pending_marker(self):
        assert has_pending_marker("PENDING Coffee", None)
        assert has_pending_marker("Coffee", "pending")
        assert not has_pending_marker("Coffee", None, "")
