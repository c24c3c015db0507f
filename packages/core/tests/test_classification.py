"""Tests for the tiered classification engine."""

from typing import Optional

import pytest

from intake_core import classification
from intake_core.classification import (
    ClassificationEngine,
    ClassificationRequest,
    DocAiSignalStrategy,
    FallbackStrategy,
    filename_only_text,
    map_docai_label,
)
from intake_core.exceptions import ClassifierError
from intake_core.models.documents import (
    ClassificationResult,
    ClassificationTier,
    DocAiSignals,
    DocumentType,
)


class StubLlmClient:
    """LLM client returning a fixed result."""

    model_name = "stub-llm"

    def __init__(self, doc_type: DocumentType = DocumentType.LEASE):
        self.doc_type = doc_type
        self.calls = 0
        self.texts: list[str] = []

    def classify(self, text: str, filename: str, mime_type: Optional[str]) -> ClassificationResult:
        self.calls += 1
        self.texts.append(text)
        return ClassificationResult(
            doc_type=self.doc_type,
            confidence=0.8,
            reason="stub",
            tier=ClassificationTier.LLM,
            model=self.model_name,
        )


class RaisingLlmClient:
    """LLM client that always fails."""

    model_name = "broken-llm"

    def classify(self, text: str, filename: str, mime_type: Optional[str]) -> ClassificationResult:
        raise ClassifierError("API call failed: timeout", classifier_name=self.model_name)


class TestMapDocAiLabel:
    """Tests for processor label mapping."""

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Tax Return 1120", DocumentType.IRS_BUSINESS),
            ("tax-return-1040", DocumentType.IRS_PERSONAL),
            ("RENT_ROLL", DocumentType.RENT_ROLL),
            ("Schedule K1", DocumentType.K1),
        ],
    )
    def test_known_labels(self, label, expected):
        """Case, spaces and dashes are normalized."""
        assert map_docai_label(label) == expected

    def test_unknown_label(self):
        """Unknown labels map to None."""
        assert map_docai_label("grocery receipt") is None
        assert map_docai_label("balance sheet") is None


class TestDocAiTier:
    """Tier A behavior."""

    def test_accepts_confident_label(self):
        """A mapped label at or above threshold wins and is backfilled by rules."""
        engine = ClassificationEngine()
        result = engine.classify(
            "Form 1120 Tax Year 2022",
            "scan.pdf",
            docai=DocAiSignals(label="tax_return_1120", confidence=0.9, processor="proc-1"),
        )
        assert result.doc_type == DocumentType.IRS_BUSINESS
        assert result.tier == ClassificationTier.DOCAI
        assert result.model == "docai:proc-1"
        assert result.tax_year == 2022
        assert result.form_numbers == ["1120"]

    def test_label_type_not_overridden_by_rules(self):
        """Rules backfill fields but never the type."""
        engine = ClassificationEngine()
        result = engine.classify(
            "Form 1040 personal return",
            "scan.pdf",
            docai=DocAiSignals(label="rent_roll", confidence=0.8),
        )
        assert result.doc_type == DocumentType.RENT_ROLL
        assert result.model == "docai:unknown"

    @pytest.mark.parametrize(
        "signals",
        [
            DocAiSignals(label="rent_roll", confidence=0.5),
            DocAiSignals(label="mystery", confidence=0.99),
            DocAiSignals(label=None, confidence=0.99),
            DocAiSignals(label="balance_sheet", confidence=0.99),
        ],
    )
    def test_passes_when_unusable(self, signals):
        """Low confidence, unknown labels and missing labels pass to rules."""
        request = ClassificationRequest(text="", filename="x.pdf", docai=signals)
        assert DocAiSignalStrategy().classify(request) is None


class TestRulesTier:
    """Tier B behavior."""

    def test_form_anchor_accepted(self):
        """Form anchors clear the rules threshold."""
        llm = StubLlmClient()
        result = ClassificationEngine(llm_client=llm).classify("Form 1120S page 1", "scan.pdf")
        assert result.doc_type == DocumentType.IRS_BUSINESS
        assert result.tier == ClassificationTier.RULES
        assert result.issuer == "IRS"
        assert result.model == "rules:rules_form"
        assert result.raw_extraction == {"rules_tier": "rules_form"}
        assert llm.calls == 0

    def test_filename_anchor_below_threshold_goes_to_llm(self):
        """Filename anchors alone do not clear the default threshold."""
        llm = StubLlmClient(DocumentType.LEASE)
        result = ClassificationEngine(llm_client=llm).classify("", "2023_1040.pdf")
        assert result.tier == ClassificationTier.LLM
        assert result.doc_type == DocumentType.LEASE
        assert llm.calls == 1
        assert llm.texts == [filename_only_text("2023_1040.pdf")]

    def test_llm_receives_document_text(self):
        """Documents with text are sent as-is."""
        llm = StubLlmClient()
        ClassificationEngine(llm_client=llm).classify("Lease agreement between", "scan.pdf")
        assert llm.texts == ["Lease agreement between"]

    def test_custom_threshold(self):
        """A lower threshold accepts filename anchors."""
        engine = ClassificationEngine(rules_threshold=0.6)
        result = engine.classify("", "2023_1040.pdf")
        assert result.tier == ClassificationTier.RULES
        assert result.confidence == 0.62


class TestFallbackTier:
    """Tier D behavior."""

    def test_no_llm_uses_rules_guess(self):
        """Without a client the sub-threshold rules guess is returned."""
        result = ClassificationEngine().classify("", "2023_1040.pdf")
        assert result.doc_type == DocumentType.IRS_PERSONAL
        assert result.tier == ClassificationTier.FALLBACK
        assert result.model == "fallback:rules_filename"
        assert result.reason.endswith("(LLM unavailable: no LLM classifier configured)")

    def test_llm_error_is_reported(self):
        """A raising client is recorded and the chain falls through."""
        result = ClassificationEngine(llm_client=RaisingLlmClient()).classify("", "2023_1040.pdf")
        assert result.tier == ClassificationTier.FALLBACK
        assert "API call failed: timeout" in result.reason

    def test_nothing_at_all(self):
        """With no signal anywhere the result is OTHER at 0.1."""
        result = ClassificationEngine().classify("hello", "scan.pdf")
        assert result.doc_type == DocumentType.OTHER
        assert result.confidence == 0.1
        assert result.model == "fallback:none"
        assert result.reason == "Classification failed: no LLM classifier configured"
        assert result.raw_extraction == {"error": "no LLM classifier configured"}

    def test_raising_rules_never_escape(self, monkeypatch):
        """A rules failure is reported by the fallback tier instead of raised."""

        def broken(text, filename):
            raise RuntimeError("rules table corrupt")

        monkeypatch.setattr(classification, "classify_by_rules", broken)

        result = ClassificationEngine().classify("Form 1040", "2023_1040.pdf")

        assert result.doc_type == DocumentType.OTHER
        assert result.model == "fallback:none"
        assert result.reason == "Classification failed: rules table corrupt"

    def test_fallback_without_errors(self):
        """The fallback tier tolerates an empty error list."""
        request = ClassificationRequest(text="", filename="")
        result = FallbackStrategy().classify(request)
        assert result.reason == "Classification failed: unknown error"


class TestCustomStrategies:
    """Strategy chains can be replaced."""

    def test_raising_strategy_is_skipped(self):
        """A raising strategy does not stop the chain."""

        class Boom:
            name = "boom"

            def classify(self, request):
                raise RuntimeError("kaput")

        engine = ClassificationEngine(strategies=[Boom()])
        result = engine.classify("", "scan.pdf")
        assert result.tier == ClassificationTier.FALLBACK
        assert result.reason == "Classification failed: kaput"

    def test_rules_memoised(self):
        """Rules run once per request."""
        request = ClassificationRequest(text="Form 1040", filename="a.pdf")
        assert request.rules() is request.rules()
