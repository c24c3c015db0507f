"""Deterministic anchor-based document classifier.

Zero network calls. Anchor classes are tried in strict priority order, and
the class decides the winner, not the match position:

- Form anchors (0.92): IRS form identifiers printed in the text
- Keyword anchors (0.72): domain phrases such as "rent roll"
- Filename anchors (0.62): tokens in the uploaded filename

No match at any class returns None; the caller chooses the fallback.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from intake_core.models.documents import DocumentType, EntityType

FORM_CONFIDENCE = 0.92
KEYWORD_CONFIDENCE = 0.72
FILENAME_CONFIDENCE = 0.62


class RulesTier(str, Enum):
    """Which anchor class produced a rules result."""

    FORM = "rules_form"
    KEYWORD = "rules_keyword"
    FILENAME = "rules_filename"


@dataclass
class RulesResult:
    """Outcome of a rules classification."""

    doc_type: DocumentType
    confidence: float
    reason: str
    tier: RulesTier
    form_numbers: Optional[list[str]] = None
    tax_year: Optional[int] = None
    entity_type: Optional[EntityType] = None


@dataclass(frozen=True)
class _Rule:
    pattern: re.Pattern
    doc_type: DocumentType
    entity_type: Optional[EntityType] = None
    form_number: Optional[str] = None
    head_chars: Optional[int] = None


_BUSINESS = EntityType.BUSINESS
_PERSONAL = EntityType.PERSONAL

FORM_RULES = [
    _Rule(re.compile(r"Form\s+1040", re.I), DocumentType.IRS_PERSONAL, _PERSONAL, "1040"),
    _Rule(re.compile(r"Form\s+1120S\b", re.I), DocumentType.IRS_BUSINESS, _BUSINESS, "1120S"),
    _Rule(re.compile(r"Form\s+1120\b", re.I), DocumentType.IRS_BUSINESS, _BUSINESS, "1120"),
    # "Schedule K-1 (Form 1065)" must resolve to K1, so K-1 precedes 1065.
    _Rule(re.compile(r"Schedule\s+K-?1", re.I), DocumentType.K1, _BUSINESS, "K-1"),
    _Rule(re.compile(r"Form\s+1065\b", re.I), DocumentType.IRS_BUSINESS, _BUSINESS, "1065"),
    _Rule(re.compile(r"Form\s+W-?2\b", re.I), DocumentType.W2, _PERSONAL, "W-2"),
    _Rule(re.compile(r"Form\s+1099", re.I), DocumentType.FORM_1099, _PERSONAL, "1099"),
]

KEYWORD_RULES = [
    _Rule(re.compile(r"rent\s+roll", re.I), DocumentType.RENT_ROLL),
    _Rule(
        re.compile(r"trailing\s+12|operating\s+statement|income\s*(and|&|\/)?\s*expense", re.I),
        DocumentType.T12,
    ),
    _Rule(re.compile(r"personal\s+financial\s+statement", re.I), DocumentType.PFS, _PERSONAL),
    _Rule(re.compile(r"articles\s+of\s+(incorporation|organization)", re.I), DocumentType.ARTICLES, _BUSINESS),
    _Rule(re.compile(r"certificate\s+of\s+insurance|insurance\s+certificate", re.I), DocumentType.INSURANCE),
    _Rule(re.compile(r"phase\s+(i|1)\s+environmental", re.I), DocumentType.ENVIRONMENTAL),
    _Rule(re.compile(r"appraisal\s+report", re.I), DocumentType.APPRAISAL, head_chars=3000),
    _Rule(re.compile(r"bank\s+statement", re.I), DocumentType.BANK_STATEMENT),
    _Rule(re.compile(r"operating\s+agreement", re.I), DocumentType.OPERATING_AGREEMENT, _BUSINESS),
    _Rule(re.compile(r"schedule\s+of\s+real\s+estate", re.I), DocumentType.SCHEDULE_OF_RE),
    _Rule(re.compile(r"driver'?s?\s+licen[sc]e", re.I), DocumentType.DRIVERS_LICENSE, _PERSONAL),
    _Rule(re.compile(r"business\s+licen[sc]e", re.I), DocumentType.BUSINESS_LICENSE, _BUSINESS),
]

FILENAME_RULES = [
    _Rule(re.compile(r"1040", re.I), DocumentType.IRS_PERSONAL, _PERSONAL),
    _Rule(re.compile(r"1120|1065", re.I), DocumentType.IRS_BUSINESS, _BUSINESS),
    _Rule(re.compile(r"rent.?roll", re.I), DocumentType.RENT_ROLL),
    _Rule(re.compile(r"t12|operating.?statement", re.I), DocumentType.T12),
    _Rule(re.compile(r"pfs|personal.?financial", re.I), DocumentType.PFS, _PERSONAL),
    _Rule(re.compile(r"k-?1", re.I), DocumentType.K1, _BUSINESS),
    _Rule(re.compile(r"w-?2", re.I), DocumentType.W2, _PERSONAL),
    _Rule(re.compile(r"1099", re.I), DocumentType.FORM_1099, _PERSONAL),
    _Rule(re.compile(r"appraisal", re.I), DocumentType.APPRAISAL),
    _Rule(re.compile(r"insurance|coi", re.I), DocumentType.INSURANCE),
    _Rule(re.compile(r"bank.?statement", re.I), DocumentType.BANK_STATEMENT),
]

_FORM_NUMBER_PATTERNS = [
    (re.compile(r"Form\s+1040", re.I), "1040"),
    (re.compile(r"Form\s+1120S\b", re.I), "1120S"),
    (re.compile(r"Form\s+1120\b", re.I), "1120"),
    (re.compile(r"Form\s+1065", re.I), "1065"),
    (re.compile(r"Schedule\s+K-?1", re.I), "K-1"),
    (re.compile(r"Schedule\s+C\b", re.I), "Schedule C"),
    (re.compile(r"Schedule\s+E\b", re.I), "Schedule E"),
    (re.compile(r"Form\s+W-?2", re.I), "W-2"),
    (re.compile(r"Form\s+1099", re.I), "1099"),
]

_TAX_YEAR_DOC_TYPES = (DocumentType.IRS_PERSONAL, DocumentType.IRS_BUSINESS, DocumentType.K1)


def extract_form_numbers(text: str) -> list[str]:
    """Collect IRS form numbers visible in the first 3000 characters."""
    head = text[:3000]
    return [name for pattern, name in _FORM_NUMBER_PATTERNS if pattern.search(head)]


def extract_rules_tax_year(text: str) -> Optional[int]:
    """Find the tax year a return covers.

    Tries an explicit "Tax Year 2023" / "For the year ended 2023" label, then
    a "December 31, 2023" calendar date, then the latest 20xx year in the
    first 500 characters.
    """
    head = text[:2000]

    explicit = re.search(
        r"(?:tax\s+year|for\s+(?:the\s+)?year(?:\s+ended)?)\s*:?\s*(20[12]\d)", head, re.I
    )
    if explicit:
        return int(explicit.group(1))

    cal_year = re.search(r"(?:december\s+31|12\/31)[,\s]+(\d{4})", head, re.I)
    if cal_year:
        return int(cal_year.group(1))

    years = [int(y) for y in re.findall(r"\b(20[12]\d)\b", head[:500])]
    return max(years) if years else None


def classify_by_rules(text: str, filename: str) -> Optional[RulesResult]:
    """Classify a document from text and filename anchors.

    Args:
        text: Extracted document text.
        filename: Original upload filename.

    Returns:
        RulesResult from the highest-priority anchor class that matched,
        or None when nothing matched.

    Example:
        >>> classify_by_rules("Form 1040 ... rent roll schedule", "scan.pdf").doc_type
        <DocumentType.IRS_PERSONAL: 'IRS_PERSONAL'>
    """
    text = text or ""

    for rule in FORM_RULES:
        if rule.pattern.search(text):
            form_numbers = extract_form_numbers(text)
            tax_year = extract_rules_tax_year(text) if rule.doc_type in _TAX_YEAR_DOC_TYPES else None
            return RulesResult(
                doc_type=rule.doc_type,
                confidence=FORM_CONFIDENCE,
                reason=f'Form anchor: "{rule.form_number}" found in document text',
                tier=RulesTier.FORM,
                form_numbers=form_numbers or [rule.form_number],
                tax_year=tax_year,
                entity_type=rule.entity_type,
            )

    for rule in KEYWORD_RULES:
        search_text = text[:rule.head_chars] if rule.head_chars else text
        if rule.pattern.search(search_text):
            return RulesResult(
                doc_type=rule.doc_type,
                confidence=KEYWORD_CONFIDENCE,
                reason=f'Keyword anchor: "{rule.pattern.pattern}" matched in document text',
                tier=RulesTier.KEYWORD,
                entity_type=rule.entity_type,
            )

    if filename:
        for rule in FILENAME_RULES:
            if rule.pattern.search(filename):
                return RulesResult(
                    doc_type=rule.doc_type,
                    confidence=FILENAME_CONFIDENCE,
                    reason=f'Filename anchor: "{rule.pattern.pattern}" matched in filename "{filename}"',
                    tier=RulesTier.FILENAME,
                    entity_type=rule.entity_type,
                )

    return None


__all__ = [
    "FILENAME_CONFIDENCE",
    "FILENAME_RULES",
    "FORM_RULES",
    "KEYWORD_RULES",
    "RulesResult",
    "RulesTier",
    "classify_by_rules",
    "extract_form_numbers",
    "extract_rules_tax_year",
]
