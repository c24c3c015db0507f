"""Tests for the P&L label alias dictionary."""

import pytest

from intake_core.pl_aliases import normalize_pl_label


class TestNormalizePlLabel:
    """Tests for normalize_pl_label."""

    @pytest.mark.parametrize(
        "label,fact_key",
        [
            ("Sales Revenue from Charters", "TOTAL_REVENUE"),
            ("Cost of Sales", "COST_OF_GOODS_SOLD"),
            ("Merchant Fees", "COST_OF_GOODS_SOLD"),
            ("Gross Margin", "GROSS_PROFIT"),
            ("Other Expenses", "OTHER_OPEX"),
            ("Total Operating Expenses", "TOTAL_OPERATING_EXPENSES"),
            ("Salaries", "PAYROLL"),
            ("Rent", "OTHER_OPEX"),
            ("R&M", "REPAIRS_MAINTENANCE"),
            ("Mortgage Interest", "DEBT_SERVICE"),
            ("Income before taxes", "OPERATING_INCOME"),
            ("Net Profit", "NET_INCOME"),
        ],
    )
    def test_known_labels(self, label, fact_key):
        """Industry wording resolves to canonical keys."""
        alias = normalize_pl_label(label)
        assert alias is not None
        assert alias.fact_key == fact_key

    def test_specific_before_broad(self):
        """Cost of sales is not taken as revenue."""
        assert normalize_pl_label("Cost of Sales").key == "COGS"

    def test_rent_roll_is_not_rent(self):
        """A rent roll heading is not an expense line."""
        assert normalize_pl_label("Rent Roll") is None

    @pytest.mark.parametrize("label", [None, "", "   ", "General Ledger Reference", "Page 3"])
    def test_unmatched(self, label):
        """Blank, ignored and unknown labels give None."""
        assert normalize_pl_label(label) is None

    def test_whitespace_collapsed(self):
        """Runs of whitespace do not defeat patterns."""
        assert normalize_pl_label("  Gross \n  Profit ").fact_key == "GROSS_PROFIT"
