"""Tests for classification, intake and fact models."""

import json

import pytest
from pydantic import ValidationError

from intake_core.models.documents import (
    ClassificationResult,
    ClassificationTier,
    DocumentType,
    clamp_confidence,
)
from intake_core.models.facts import Citation, ExtractionPath, FactProvenance
from intake_core.models.intake import Artifact, DealReadiness, MatchSource, SourceDocument


class TestDocumentType:
    """Tests for the document vocabulary."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("irs_business", DocumentType.IRS_BUSINESS),
            (" T12 ", DocumentType.T12),
            ("1099", DocumentType.FORM_1099),
            ("CREDIT_MEMO", DocumentType.OTHER),
            (None, DocumentType.OTHER),
            (DocumentType.PFS, DocumentType.PFS),
        ],
    )
    def test_coerce(self, raw, expected):
        """Unknown values become OTHER."""
        assert DocumentType.coerce(raw) == expected

    def test_is_tax_return(self):
        """Returns and K-1s are tax returns; W-2s are not."""
        assert DocumentType.K1.is_tax_return
        assert not DocumentType.W2.is_tax_return


class TestConfidence:
    """Tests for confidence clamping."""

    @pytest.mark.parametrize(
        "raw,expected",
        [(0.5, 0.5), (1.4, 1.0), (-2, 0.0), ("0.3", 0.3), ("abc", 0.0), (None, 0.0), (float("nan"), 0.0)],
    )
    def test_clamp_confidence(self, raw, expected):
        """Values are clamped into [0, 1]."""
        assert clamp_confidence(raw) == expected

    def test_result_clamps_instead_of_rejecting(self):
        """ClassificationResult clamps out-of-range confidence."""
        result = ClassificationResult(confidence=7, tier=ClassificationTier.RULES)
        assert result.confidence == 1.0
        assert result.doc_type == DocumentType.OTHER

    def test_result_requires_tier(self):
        """Every result records the tier that produced it."""
        with pytest.raises(ValidationError):
            ClassificationResult(doc_type=DocumentType.PFS)


class TestIntakeModels:
    """Tests for intake workflow models."""

    def test_artifact_rejects_negative_retries(self):
        """retry_count is non-negative."""
        with pytest.raises(ValidationError):
            Artifact(id="a", deal_id="d", bank_id="b", source_id="s", retry_count=-1)

    def test_manual_document(self):
        """Manual ownership is read from match_source."""
        doc = SourceDocument(id="doc-1", deal_id="d", bank_id="b", match_source=MatchSource.MANUAL)
        assert doc.is_manual
        assert not SourceDocument(id="doc-2", deal_id="d", bank_id="b").is_manual

    @pytest.mark.parametrize("total,complete,expected", [(0, 0, 100.0), (3, 1, 33.3), (4, 4, 100.0)])
    def test_percent_complete(self, total, complete, expected):
        """Readiness reports a rounded percentage."""
        readiness = DealReadiness(deal_id="d", ready=False, required_total=total, required_complete=complete)
        assert readiness.percent_complete == expected


class TestFactModels:
    """Tests for fact provenance."""

    def test_provenance_serializes(self):
        """Provenance round-trips through JSON with its path."""
        provenance = FactProvenance(
            source_ref="deal_documents:doc-1",
            extractor="taxReturnExtractor:v2:deterministic",
            confidence=0.55,
            extraction_path=ExtractionPath.OCR_REGEX,
            citations=[Citation(snippet="Total deductions 410,500")],
        )
        data = json.loads(provenance.model_dump_json())
        assert data["extraction_path"] == "ocr_regex"
        assert data["source_type"] == "DOC_EXTRACT"
        assert data["citations"][0]["page"] is None

    def test_citation_page_is_one_based(self):
        """Page numbers start at 1."""
        with pytest.raises(ValidationError):
            Citation(page=0, snippet="x")
