"""Tests for text-parsing primitives."""

import re

import pytest

from intake_core.parsing import (
    IrsFormType,
    detect_irs_form_type,
    extract_period_from_headers,
    extract_tax_year,
    find_all_labeled_amounts,
    find_date_on_document,
    find_labeled_amount,
    normalize_period,
    parse_money,
    parse_table,
    resolve_doc_date,
    resolve_doc_tax_year,
    split_table_row,
)


class TestParseMoney:
    """Tests for parse_money."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("$1,234.56", 1234.56),
            ("(1,234.56)", -1234.56),
            ("1234-", -1234.0),
            ("-$5,000", -5000.0),
            ("42", 42.0),
        ],
    )
    def test_parses_money_shapes(self, raw, expected):
        """Currency symbols, commas and negative notations are handled."""
        assert parse_money(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "N/A", "12/31/2023"])
    def test_non_numeric_is_none(self, raw):
        """Non-numeric tokens parse to None."""
        assert parse_money(raw) is None


class TestFindLabeledAmount:
    """Tests for label-proximity amount search."""

    def test_same_line_amount(self):
        """The first amount after the label on the same line is returned."""
        hit = find_labeled_amount("Total Revenue ........ $125,400.00", "total revenue")
        assert hit.found
        assert hit.value == 125400.0
        assert hit.snippet.startswith("Total Revenue")

    def test_does_not_cross_lines_by_default(self):
        """Without cross_line the amount must be on the label's line."""
        text = "Net Operating Income\n95,000"
        assert not find_labeled_amount(text, "net operating income").found
        assert find_labeled_amount(text, "net operating income", cross_line=True).value == 95000.0

    def test_lookahead_bound(self):
        """Amounts beyond max_lookahead are ignored."""
        text = "Total Assets" + " " * 50 + "1,000"
        assert not find_labeled_amount(text, "total assets", max_lookahead=20).found

    def test_rejects_irs_form_reference(self):
        """A bare form number in IRS context is not an amount."""
        text = "Depreciation see Form 4562 below"
        hit = find_labeled_amount(text, "depreciation")
        assert not hit.found

    def test_keeps_money_shaped_reference_value(self):
        """A comma-formatted value equal to a form number is still money."""
        hit = find_labeled_amount("Other deductions see statement 1,065", "other deductions")
        assert hit.value == 1065.0

    def test_compiled_pattern_label(self):
        """Compiled patterns keep their own flags."""
        hit = find_labeled_amount("GROSS RENTS: 48,000", re.compile(r"gross\s+rents?", re.I))
        assert hit.value == 48000.0

    def test_find_all(self):
        """Every accepted hit is returned in order."""
        text = "Rent 1,000\nRent 2,000\nRent 3,000"
        assert [h.value for h in find_all_labeled_amounts(text, "rent")] == [1000.0, 2000.0, 3000.0]


class TestTables:
    """Tests for table splitting and parsing."""

    def test_split_on_tabs_and_double_spaces(self):
        """Single spaces stay inside cells."""
        assert split_table_row("Unit 101\tJohn Smith  1,200") == ["Unit 101", "John Smith", "1,200"]

    def test_parse_table(self):
        """Rows follow the header until a single-cell line."""
        text = (
            "Rent Roll as of 2024-01-31\n"
            "Unit  Tenant  Rent\n"
            "-----\n"
            "101  Alice  1,200\n"
            "102  Bob  1,150\n"
            "Total  2,350\n"
            "Prepared by management\n"
            "103  Carol  900\n"
        )
        table = parse_table(text, re.compile(r"unit.*tenant", re.I))
        assert table.headers == ["Unit", "Tenant", "Rent"]
        assert table.rows == [["101", "Alice", "1,200"], ["102", "Bob", "1,150"], ["Total", "2,350"]]

    def test_missing_header(self):
        """No header line means no table."""
        assert parse_table("nothing here", re.compile(r"unit")) is None


class TestDates:
    """Tests for document dates and tax years."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Balance Sheet As of 2023-12-31", "2023-12-31"),
            ("Statement Date: 3/5/2024", "2024-03-05"),
            ("Effective March 15, 2024", "2024-03-15"),
            ("Effective June 2024", "2024-06-01"),
            ("Prepared 2022-06-30 by staff", "2022-06-30"),
        ],
    )
    def test_find_date_on_document(self, text, expected):
        """Labeled ISO, US and month-name dates are normalized."""
        assert find_date_on_document(text) == expected

    def test_no_date(self):
        """Text without dates yields None."""
        assert find_date_on_document("Operating statement") is None

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Tax Year: 2022", 2022),
            ("For the year ended December 31, 2021", 2021),
            ("Form 1065 U.S. Return of Partnership Income 2023", 2023),
            ("FY 2020 summary", 2020),
        ],
    )
    def test_extract_tax_year(self, text, expected):
        """Tax years are read from labeled text."""
        assert extract_tax_year(text) == expected

    def test_tax_year_out_of_range(self):
        """Years outside 1990-2100 are rejected."""
        assert extract_tax_year("Tax Year 1850") is None

    def test_resolve_falls_back_to_doc_year(self):
        """The stored document year is used when text has none."""
        assert resolve_doc_tax_year("no year here", 2021) == 2021
        assert resolve_doc_tax_year("no year here", 1700) is None
        assert resolve_doc_date("no date here", 2022) == "2022"


class TestPeriods:
    """Tests for period normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2023-01-01 to 2023-12-31", ("2023-01-01", "2023-12-31")),
            ("2024-03-15", ("2024-03-15", "2024-03-15")),
            ("2024-02", ("2024-02-01", "2024-02-29")),
            ("Jan 2024", ("2024-01-01", "2024-01-31")),
            ("Q3 2024", ("2024-07-01", "2024-09-30")),
            ("FY2023", ("2023-01-01", "2023-12-31")),
            ("2023", ("2023-01-01", "2023-12-31")),
            ("TTM", (None, None)),
            (None, (None, None)),
        ],
    )
    def test_normalize_period(self, raw, expected):
        """Period strings resolve to ISO bounds."""
        assert normalize_period(raw) == expected

    def test_headers(self):
        """Aggregate headers carry no dates."""
        periods = extract_period_from_headers(["Jan 2024", "YTD"])
        assert (periods[0].start, periods[0].end) == ("2024-01-01", "2024-01-31")
        assert periods[1].start is None


class TestDetectIrsFormType:
    """Tests for IRS form detection."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Form 1120-S U.S. Income Tax Return for an S Corporation", IrsFormType.FORM_1120S),
            ("Form 1120 U.S. Corporation Income Tax Return", IrsFormType.FORM_1120),
            ("Form 1065 U.S. Return of Partnership Income", IrsFormType.FORM_1065),
            ("Schedule K-1 (Form 1065)", IrsFormType.FORM_1065),
            ("Form 1040 U.S. Individual Income Tax Return", IrsFormType.FORM_1040),
            ("Quarterly operating report", IrsFormType.UNKNOWN),
        ],
    )
    def test_detects_forms(self, text, expected):
        """Form headers map to the return family."""
        assert detect_irs_form_type(text) == expected
