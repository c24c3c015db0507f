"""
LLM Fallback Classifier for commercial-lending documents.

Uses the Claude API to classify documents that neither structured-OCR
signals nor the deterministic rules could resolve. Every field of the
response is coerced into the closed vocabulary before it leaves this module.
"""

import json
import re
from typing import Any, Optional, Protocol, runtime_checkable

import anthropic
import structlog

from intake_core.exceptions import ClassifierError, ConfigurationError
from intake_core.models.documents import (
    ClassificationResult,
    ClassificationTier,
    DocumentType,
    EntityType,
    clamp_confidence,
)

logger = structlog.get_logger()

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_DOCUMENT_CHARS = 15000
TRUNCATION_MARKER = "\n\n[... truncated ...]"


CLASSIFICATION_PROMPT = """You are a document classification expert for commercial lending. Analyze the provided document and extract key information.

DOCUMENT TYPES (choose the most specific match):
- IRS_BUSINESS: Business tax returns (Form 1120, 1120S, 1065, Schedule C)
- IRS_PERSONAL: Personal tax returns (Form 1040)
- PFS: Personal Financial Statement
- RENT_ROLL: Rent roll showing tenants, units, rents
- T12: Trailing 12-month operating statement / P&L
- BANK_STATEMENT: Bank account statement
- ARTICLES: Articles of incorporation/organization
- OPERATING_AGREEMENT: LLC operating agreement
- BYLAWS: Corporate bylaws
- BUSINESS_LICENSE: Business license or permit
- LEASE: Commercial lease agreement
- INSURANCE: Insurance certificate or policy
- APPRAISAL: Property appraisal report
- ENVIRONMENTAL: Environmental assessment (Phase I/II)
- SCHEDULE_OF_RE: Schedule of real estate owned
- K1: Schedule K-1 (partnership/S-corp)
- W2: W-2 wage and tax statement
- 1099: 1099 form (any variant)
- DRIVERS_LICENSE: Driver's license or ID document
- OTHER: Cannot determine type

Respond with a JSON object:
{
  "doc_type": "IRS_BUSINESS",
  "confidence": 0.95,
  "reason": "Form 1120S visible on page 1, showing S-Corporation tax return",
  "tax_year": 2023,
  "entity_name": "ABC Holdings LLC",
  "entity_type": "business",
  "proposed_deal_name": "ABC Holdings LLC",
  "proposed_deal_name_source": "1120s_header",
  "form_numbers": ["1120S"],
  "issuer": "IRS",
  "period_start": "2023-01-01",
  "period_end": "2023-12-31"
}

Rules:
- confidence: 0.0 to 1.0 (0.85+ for high confidence)
- tax_year: null if not applicable or not found
- entity_name: The business or individual name from the document
- entity_type: "business" or "personal" or null
- proposed_deal_name: If this is a tax return with a clear business name, suggest it as deal name
- proposed_deal_name_source: Where the name came from (e.g., "schedule_c", "1120s_header", "1040_header")
- form_numbers: Array of IRS form numbers visible in the document (e.g., ["1040"], ["1120S", "Schedule K-1"]). null if not a tax/IRS document.
- issuer: The issuing entity (e.g., "IRS" for tax returns, bank name for statements, insurance company). null if unknown.
- period_start: Start date of the document's reporting period in YYYY-MM-DD format. null if not applicable.
- period_end: End date of the document's reporting period in YYYY-MM-DD format. null if not applicable.

Be precise. If unsure, lower the confidence. For tax documents, always try to extract the tax year and form numbers."""


@runtime_checkable
class LlmClassifierClient(Protocol):
    """Contract for an external LLM document classifier.

    Implementations raise ClassifierError on network, timeout or parse
    failure; they never return partially trusted data.
    """

    model_name: str

    def classify(self, text: str, filename: str, mime_type: Optional[str]) -> ClassificationResult:
        """Classify a document and return a result with tier LLM."""
        ...


def build_user_message(
    text: str,
    filename: str,
    mime_type: Optional[str],
    max_chars: int = DEFAULT_MAX_DOCUMENT_CHARS,
) -> str:
    """Build the per-document message, truncating long text."""
    if len(text) > max_chars:
        text = text[:max_chars] + TRUNCATION_MARKER
    return (
        f"Filename: {filename}\n"
        f"MIME type: {mime_type or 'unknown'}\n\n"
        f"Document content:\n---\n{text}\n---\n\n"
        "Classify this document and extract key information. Respond with JSON only."
    )


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value else None


def _optional_year(value: Any) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _coerce_confidence(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = 0.0
    if not number or number != number:
        number = 0.5
    return clamp_confidence(number)


def parse_classification_response(raw: str, model: str) -> ClassificationResult:
    """Parse an LLM response into a ClassificationResult.

    The first JSON object in the response is used. Unknown document types
    become OTHER, confidence is clamped, and entity_type outside
    business/personal becomes None.

    Raises:
        ClassifierError: If no parseable JSON object is present.
    """
    match = re.search(r"\{[\s\S]*\}", raw or "")
    if not match:
        raise ClassifierError(
            "No JSON found in response",
            classifier_name=model,
            operation="parse_response",
        )
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ClassifierError(
            "Failed to parse JSON from LLM response",
            classifier_name=model,
            operation="parse_response",
            api_error=str(e),
        ) from e
    if not isinstance(parsed, dict):
        raise ClassifierError(
            "LLM response JSON is not an object",
            classifier_name=model,
            operation="parse_response",
        )

    entity_type = parsed.get("entity_type")
    form_numbers = parsed.get("form_numbers")

    return ClassificationResult(
        doc_type=DocumentType.coerce(parsed.get("doc_type")),
        confidence=_coerce_confidence(parsed.get("confidence")),
        reason=str(parsed.get("reason") or ""),
        tax_year=_optional_year(parsed.get("tax_year")),
        entity_name=_optional_str(parsed.get("entity_name")),
        entity_type=EntityType(entity_type) if entity_type in ("business", "personal") else None,
        proposed_deal_name=_optional_str(parsed.get("proposed_deal_name")),
        proposed_deal_name_source=_optional_str(parsed.get("proposed_deal_name_source")),
        form_numbers=[str(f) for f in form_numbers] if isinstance(form_numbers, list) else None,
        issuer=_optional_str(parsed.get("issuer")),
        period_start=_optional_str(parsed.get("period_start")),
        period_end=_optional_str(parsed.get("period_end")),
        tier=ClassificationTier.LLM,
        model=model,
        raw_extraction=parsed,
    )


class AnthropicClassifier:
    """
    Classify documents with Claude when deterministic tiers cannot.

    The call is blocking and bounded by ``timeout`` seconds; any failure
    surfaces as ClassifierError so the engine can fall through.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        timeout: float = 60.0,
        max_document_chars: int = DEFAULT_MAX_DOCUMENT_CHARS,
        client: Optional[Any] = None,
    ):
        """
        Initialize the classifier.

        Args:
            api_key: Anthropic API key. Required unless ``client`` is given.
            model: Claude model identifier.
            max_tokens: Maximum response tokens.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            max_document_chars: Document characters sent before truncation.
            client: Pre-built client exposing ``messages.create``.

        Raises:
            ConfigurationError: If neither an API key nor a client is available.
        """
        if client is None:
            if not api_key:
                raise ConfigurationError(
                    "No Anthropic API key provided. Set INTAKE_LLM_API_KEY "
                    "or pass api_key parameter.",
                    config_key="INTAKE_LLM_API_KEY",
                    expected="Anthropic API key",
                )
            client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
        self.client = client
        self.model_name = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_document_chars = max_document_chars

    def classify(self, text: str, filename: str, mime_type: Optional[str]) -> ClassificationResult:
        """Classify one document.

        Raises:
            ClassifierError: On API failure or an unparseable response.
        """
        prompt = CLASSIFICATION_PROMPT + "\n\n" + build_user_message(
            text, filename, mime_type, self.max_document_chars
        )

        try:
            response = self.client.messages.create(
                model=self.model_name,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            raise ClassifierError(
                f"API call failed: {e}",
                classifier_name=self.model_name,
                operation="classify_document",
                api_error=str(e),
            ) from e

        raw_response = "".join(
            getattr(block, "text", "") for block in (response.content or [])
        )
        if not raw_response:
            raise ClassifierError(
                "No text response from LLM",
                classifier_name=self.model_name,
                operation="classify_document",
            )

        usage = getattr(response, "usage", None)
        logger.info(
            "llm_classification_received",
            filename=filename,
            model=self.model_name,
            tokens_used=(usage.input_tokens + usage.output_tokens) if usage else None,
        )
        return parse_classification_response(raw_response, self.model_name)


def create_llm_classifier(
    api_key: Optional[str] = None,
    **kwargs: Any,
) -> Optional[AnthropicClassifier]:
    """
    Factory function to create an AnthropicClassifier if configured.

    Returns None when no API key is available, so the engine degrades to
    the fallback tier instead of failing.
    """
    try:
        return AnthropicClassifier(api_key=api_key, **kwargs)
    except ConfigurationError:
        return None


__all__ = [
    "CLASSIFICATION_PROMPT",
    "AnthropicClassifier",
    "LlmClassifierClient",
    "build_user_message",
    "create_llm_classifier",
    "parse_classification_response",
]
