"""Tests for the deterministic rules classifier."""

import pytest

from intake_core.models.documents import DocumentType, EntityType
from intake_core.rules import (
    FILENAME_CONFIDENCE,
    FORM_CONFIDENCE,
    KEYWORD_CONFIDENCE,
    RulesTier,
    classify_by_rules,
    extract_form_numbers,
    extract_rules_tax_year,
)


class TestFormAnchors:
    """Form anchors win over every other anchor class."""

    @pytest.mark.parametrize(
        "text,doc_type",
        [
            ("Form 1040 U.S. Individual Income Tax Return", DocumentType.IRS_PERSONAL),
            ("Form 1120S U.S. Income Tax Return for an S Corporation", DocumentType.IRS_BUSINESS),
            ("Form 1120 U.S. Corporation Income Tax Return", DocumentType.IRS_BUSINESS),
            ("Form 1065 U.S. Return of Partnership Income", DocumentType.IRS_BUSINESS),
            ("Schedule K-1 (Form 1065) Partner's Share of Income", DocumentType.K1),
            ("Form W-2 Wage and Tax Statement", DocumentType.W2),
            ("Form 1099-INT Interest Income", DocumentType.FORM_1099),
        ],
    )
    def test_form_types(self, text, doc_type):
        """Each IRS form maps to its document type."""
        result = classify_by_rules(text, "scan.pdf")
        assert result.doc_type == doc_type
        assert result.confidence == FORM_CONFIDENCE
        assert result.tier == RulesTier.FORM

    def test_form_beats_keyword_regardless_of_position(self):
        """A form anchor wins even when a keyword appears first."""
        result = classify_by_rules("Rent roll attached. Form 1040 follows.", "scan.pdf")
        assert result.doc_type == DocumentType.IRS_PERSONAL

    def test_business_form_details(self):
        """Business returns carry entity type, form numbers and tax year."""
        result = classify_by_rules("Form 1120 U.S. Corporation Income Tax Return\nTax Year 2023", "x.pdf")
        assert result.entity_type == EntityType.BUSINESS
        assert result.form_numbers == ["1120"]
        assert result.tax_year == 2023

    def test_w2_has_no_tax_year(self):
        """Tax years are only read for returns and K-1s."""
        result = classify_by_rules("Form W-2 Wage and Tax Statement 2023", "w2.pdf")
        assert result.tax_year is None


class TestKeywordAnchors:
    """Keyword anchors."""

    @pytest.mark.parametrize(
        "text,doc_type",
        [
            ("RENT ROLL as of 1/31/2024", DocumentType.RENT_ROLL),
            ("Trailing 12 Month Operating Statement", DocumentType.T12),
            ("Income & Expense Statement", DocumentType.T12),
            ("Personal Financial Statement", DocumentType.PFS),
            ("Articles of Organization", DocumentType.ARTICLES),
            ("Certificate of Insurance", DocumentType.INSURANCE),
            ("Phase I Environmental Site Assessment", DocumentType.ENVIRONMENTAL),
            ("Monthly Bank Statement", DocumentType.BANK_STATEMENT),
        ],
    )
    def test_keyword_types(self, text, doc_type):
        """Domain phrases map to their types at keyword confidence."""
        result = classify_by_rules(text, "scan.pdf")
        assert result.doc_type == doc_type
        assert result.confidence == KEYWORD_CONFIDENCE

    def test_appraisal_only_in_head(self):
        """The appraisal keyword counts only near the top of the document."""
        late = "x" * 3100 + " appraisal report"
        assert classify_by_rules(late, "scan.pdf") is None
        assert classify_by_rules("Appraisal Report", "scan.pdf").doc_type == DocumentType.APPRAISAL


class TestFilenameAnchors:
    """Filename anchors are the weakest class."""

    @pytest.mark.parametrize(
        "filename,doc_type",
        [
            ("2023_1040.pdf", DocumentType.IRS_PERSONAL),
            ("acme_1120S_2022.pdf", DocumentType.IRS_BUSINESS),
            ("rent-roll-jan.xlsx", DocumentType.RENT_ROLL),
            ("T12 2023.pdf", DocumentType.T12),
            ("borrower_pfs.pdf", DocumentType.PFS),
        ],
    )
    def test_filename_types(self, filename, doc_type):
        """Filename tokens classify at filename confidence."""
        result = classify_by_rules("", filename)
        assert result.doc_type == doc_type
        assert result.confidence == FILENAME_CONFIDENCE
        assert result.tier == RulesTier.FILENAME

    def test_nothing_matches(self):
        """No anchor at all gives None."""
        assert classify_by_rules("hello world", "scan.pdf") is None


class TestHelpers:
    """Tests for form number and tax year helpers."""

    def test_form_numbers(self):
        """All visible forms are collected."""
        text = "Form 1065 ... Schedule K-1 ... Schedule E"
        assert extract_form_numbers(text) == ["1065", "K-1", "Schedule E"]

    @pytest.mark.parametrize(
        "text,year",
        [
            ("Tax Year: 2022", 2022),
            ("For the year ended 2021", 2021),
            ("Balance at December 31, 2020", 2020),
            ("Prepared 2019 revised 2023", 2023),
            ("No year", None),
        ],
    )
    def test_tax_year(self, text, year):
        """Explicit labels, then calendar dates, then the latest year."""
        assert extract_rules_tax_year(text) == year
