"""Tests for the LLM fallback classifier."""

from types import SimpleNamespace

import pytest

from intake_core.exceptions import ClassifierError, ConfigurationError
from intake_core.llm_classifier import (
    TRUNCATION_MARKER,
    AnthropicClassifier,
    build_user_message,
    create_llm_classifier,
    parse_classification_response,
)
from intake_core.models.documents import ClassificationTier, DocumentType, EntityType


class FakeMessages:
    """Records create() calls and returns a canned response."""

    def __init__(self, text: str):
        self.text = text
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(
            content=[SimpleNamespace(text=self.text)],
            usage=SimpleNamespace(input_tokens=100, output_tokens=20),
        )


def fake_client(text: str):
    return SimpleNamespace(messages=FakeMessages(text))


class TestParseClassificationResponse:
    """Tests for response parsing and coercion."""

    def test_full_response(self):
        """Every field is carried across."""
        raw = (
            'Here you go: {"doc_type": "IRS_BUSINESS", "confidence": 0.95, '
            '"reason": "Form 1120S header", "tax_year": "2023", '
            '"entity_name": "ABC Holdings LLC", "entity_type": "business", '
            '"form_numbers": ["1120S", 1125], "issuer": "IRS", '
            '"period_start": "2023-01-01", "period_end": "2023-12-31"}'
        )
        result = parse_classification_response(raw, "claude-test")

        assert result.doc_type == DocumentType.IRS_BUSINESS
        assert result.confidence == 0.95
        assert result.tax_year == 2023
        assert result.entity_type == EntityType.BUSINESS
        assert result.form_numbers == ["1120S", "1125"]
        assert result.tier == ClassificationTier.LLM
        assert result.model == "claude-test"
        assert result.raw_extraction["entity_name"] == "ABC Holdings LLC"

    def test_unknown_type_becomes_other(self):
        """Types outside the vocabulary coerce to OTHER."""
        result = parse_classification_response('{"doc_type": "MENU", "confidence": 0.4}', "m")
        assert result.doc_type == DocumentType.OTHER

    def test_confidence_is_clamped(self):
        """Confidence above 1 is clamped."""
        result = parse_classification_response('{"doc_type": "PFS", "confidence": 1.7}', "m")
        assert result.confidence == 1.0

    def test_missing_confidence_defaults(self):
        """A missing or non-numeric confidence becomes 0.5."""
        result = parse_classification_response('{"doc_type": "PFS", "confidence": "high"}', "m")
        assert result.confidence == 0.5

    def test_bad_entity_type_dropped(self):
        """Only business and personal are kept."""
        result = parse_classification_response('{"doc_type": "PFS", "entity_type": "trust"}', "m")
        assert result.entity_type is None

    @pytest.mark.parametrize("raw", ["no json here", "{not json}", ""])
    def test_unparseable_raises(self, raw):
        """Responses without a JSON object raise ClassifierError."""
        with pytest.raises(ClassifierError):
            parse_classification_response(raw, "m")


class TestBuildUserMessage:
    """Tests for the per-document prompt."""

    def test_truncates_long_text(self):
        """Text beyond the limit is cut and marked."""
        message = build_user_message("a" * 50, "x.pdf", None, max_chars=10)
        assert "a" * 10 + TRUNCATION_MARKER in message
        assert "a" * 11 not in message
        assert "MIME type: unknown" in message

    def test_short_text_untouched(self):
        """Short text is sent whole."""
        message = build_user_message("Rent Roll", "rr.pdf", "application/pdf")
        assert "Filename: rr.pdf" in message
        assert TRUNCATION_MARKER not in message


class TestAnthropicClassifier:
    """Tests for the Claude-backed client."""

    def test_requires_key_or_client(self):
        """No key and no client is a configuration error."""
        with pytest.raises(ConfigurationError) as exc_info:
            AnthropicClassifier(api_key=None)
        assert exc_info.value.config_key == "INTAKE_LLM_API_KEY"
        assert not exc_info.value.recoverable

    def test_factory_returns_none_without_key(self):
        """The factory degrades to None."""
        assert create_llm_classifier(None) is None

    def test_classify_uses_client(self):
        """The request carries model settings and the response is parsed."""
        client = fake_client('{"doc_type": "RENT_ROLL", "confidence": 0.88, "reason": "unit table"}')
        classifier = AnthropicClassifier(client=client, model="claude-test", max_tokens=256)

        result = classifier.classify("Unit Tenant Rent", "rr.pdf", "application/pdf")

        assert result.doc_type == DocumentType.RENT_ROLL
        assert result.confidence == 0.88
        call = client.messages.calls[0]
        assert call["model"] == "claude-test"
        assert call["max_tokens"] == 256
        assert call["temperature"] == 0.0
        assert "Filename: rr.pdf" in call["messages"][0]["content"]

    def test_empty_response_raises(self):
        """An empty completion is a classifier error."""
        classifier = AnthropicClassifier(client=fake_client(""))
        with pytest.raises(ClassifierError, match="No text response"):
            classifier.classify("text", "a.pdf", None)
