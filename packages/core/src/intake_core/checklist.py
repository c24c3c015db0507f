"""
Checklist mapping, type guardrails, reconciliation and deal readiness.

A classified document maps to a list of candidate checklist keys, most
specific first. Before matching, the classifier's type passes through a
form-number guardrail so a 1120 is never filed as a personal return.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from intake_core.models.documents import ClassificationResult, DocumentType
from intake_core.models.intake import ChecklistItem, ChecklistStatus, DealReadiness, MatchStatus
from intake_core.store import IntakeStore

logger = structlog.get_logger()


# =============================================================================
# CHECKLIST KEYS
# =============================================================================

CHECKLIST_KEYS: dict[DocumentType, tuple[str, ...]] = {
    DocumentType.IRS_BUSINESS: ("IRS_BUSINESS_3Y", "IRS_BUSINESS_2Y", "BTR", "BTR_2Y", "TAX_RETURNS"),
    DocumentType.IRS_PERSONAL: ("IRS_PERSONAL_3Y", "IRS_PERSONAL_2Y", "PTR", "PTR_2Y", "TAX_RETURNS"),
    DocumentType.PFS: ("PFS_CURRENT", "SBA_413", "PFS", "PERSONAL_FINANCIAL_STATEMENT"),
    DocumentType.RENT_ROLL: ("RENT_ROLL",),
    DocumentType.T12: ("PROPERTY_T12", "FIN_STMT_PL_YTD", "T12", "OPERATING_STATEMENT"),
    DocumentType.BANK_STATEMENT: ("BANK_STMT_3M", "BANK_STATEMENTS", "BANK_STATEMENT_3MO"),
    DocumentType.ARTICLES: ("ARTICLES", "FORMATION_DOCS", "ENTITY_DOCS"),
    DocumentType.OPERATING_AGREEMENT: ("OPERATING_AGREEMENT", "ENTITY_DOCS"),
    DocumentType.BYLAWS: ("BYLAWS", "ENTITY_DOCS"),
    DocumentType.BUSINESS_LICENSE: ("BUSINESS_LICENSE", "LICENSE"),
    DocumentType.LEASE: ("LEASES_TOP", "LEASE", "COMMERCIAL_LEASE"),
    DocumentType.INSURANCE: ("PROPERTY_INSURANCE", "INSURANCE", "INSURANCE_CERT", "COI"),
    DocumentType.APPRAISAL: ("APPRAISAL_IF_AVAILABLE", "APPRAISAL"),
    DocumentType.ENVIRONMENTAL: ("ENVIRONMENTAL", "PHASE_1", "ESA"),
    DocumentType.SCHEDULE_OF_RE: ("SCHEDULE_OF_RE", "RE_SCHEDULE"),
    DocumentType.K1: ("K1", "SCHEDULE_K1"),
    DocumentType.W2: ("W2", "W2_2Y"),
    DocumentType.FORM_1099: ("1099",),
    DocumentType.DRIVERS_LICENSE: ("ID", "DRIVERS_LICENSE"),
}

# Types whose year-specific key (e.g. IRS_BUSINESS_2024) leads the list
YEAR_KEYED_TYPES = (DocumentType.IRS_BUSINESS, DocumentType.IRS_PERSONAL)

MIN_KEY_YEAR = 2000
MAX_KEY_YEAR = 2100


def map_doc_type_to_checklist_keys(doc_type: DocumentType, tax_year: Optional[int] = None) -> list[str]:
    """Candidate checklist keys for a document type, most specific first.

    Args:
        doc_type: Effective document type
        tax_year: Tax year; adds a year-specific key for tax returns when
            it falls in 2000-2100

    Returns:
        Ordered keys. Empty for OTHER.
    """
    keys = []
    if doc_type in YEAR_KEYED_TYPES and tax_year and MIN_KEY_YEAR <= tax_year <= MAX_KEY_YEAR:
        keys.append(f"{doc_type.value}_{tax_year}")
    keys.extend(CHECKLIST_KEYS.get(doc_type, ()))
    return keys


# =============================================================================
# TYPE GUARDRAIL
# =============================================================================

BUSINESS_FORMS = frozenset({"1120", "1120S", "1065"})
PERSONAL_FORMS = frozenset({"1040"})

ROUTING_DOCAI = "docai_structured"
ROUTING_OCR = "ocr_text"

CANONICAL_TYPES: dict[DocumentType, str] = {
    DocumentType.IRS_BUSINESS: "BUSINESS_TAX_RETURN",
    DocumentType.IRS_PERSONAL: "PERSONAL_TAX_RETURN",
    DocumentType.K1: "K1",
    DocumentType.W2: "W2",
    DocumentType.FORM_1099: "1099",
    DocumentType.PFS: "PFS",
    DocumentType.RENT_ROLL: "RENT_ROLL",
    DocumentType.T12: "INCOME_STATEMENT",
    DocumentType.BANK_STATEMENT: "BANK_STATEMENT",
    DocumentType.SCHEDULE_OF_RE: "SCHEDULE_OF_RE",
    DocumentType.ARTICLES: "ENTITY_DOCS",
    DocumentType.OPERATING_AGREEMENT: "ENTITY_DOCS",
    DocumentType.BYLAWS: "ENTITY_DOCS",
    DocumentType.BUSINESS_LICENSE: "BUSINESS_LICENSE",
    DocumentType.LEASE: "LEASE",
    DocumentType.DRIVERS_LICENSE: "DRIVERS_LICENSE",
    DocumentType.INSURANCE: "INSURANCE",
    DocumentType.APPRAISAL: "APPRAISAL",
    DocumentType.ENVIRONMENTAL: "ENVIRONMENTAL",
    DocumentType.OTHER: "OTHER",
}

STRUCTURED_CANONICAL_TYPES = frozenset(
    {"BUSINESS_TAX_RETURN", "PERSONAL_TAX_RETURN", "K1", "W2", "1099", "PFS"}
)


@dataclass(frozen=True)
class DocTyping:
    """Resolved typing for one classified document.

    Attributes:
        effective_doc_type: Type after the guardrail
        canonical_type: Canonical document type stamped on the document
        routing_class: docai_structured or ocr_text
        checklist_key: Primary checklist key, if the type has one
        guardrail_applied: Whether the guardrail overrode the classifier
        guardrail_reason: Why it did
    """

    effective_doc_type: DocumentType
    canonical_type: str
    routing_class: str
    checklist_key: Optional[str] = None
    guardrail_applied: bool = False
    guardrail_reason: Optional[str] = None


def _normalize_form(form: str) -> str:
    return form.upper().replace("-", "").replace(" ", "").replace("FORM", "")


def resolve_doc_typing(classification: ClassificationResult) -> DocTyping:
    """Apply form-number guardrails and derive canonical typing.

    Business forms on a document typed personal (or OTHER) force
    IRS_BUSINESS; a lone 1040 on a document typed business (or OTHER)
    forces IRS_PERSONAL. Mixed or absent forms leave the type alone.
    """
    doc_type = classification.doc_type
    forms = {_normalize_form(f) for f in classification.form_numbers or []}
    has_business = bool(forms & BUSINESS_FORMS)
    has_personal = bool(forms & PERSONAL_FORMS)

    effective = doc_type
    reason = None
    if has_business and not has_personal and doc_type in (DocumentType.IRS_PERSONAL, DocumentType.OTHER):
        effective = DocumentType.IRS_BUSINESS
        reason = f"business form {'/'.join(sorted(forms & BUSINESS_FORMS))} present; overrode {doc_type.value}"
    elif has_personal and not has_business and doc_type in (DocumentType.IRS_BUSINESS, DocumentType.OTHER):
        effective = DocumentType.IRS_PERSONAL
        reason = f"personal form 1040 present; overrode {doc_type.value}"

    canonical = CANONICAL_TYPES.get(effective, "OTHER")
    keys = map_doc_type_to_checklist_keys(effective, classification.tax_year)
    return DocTyping(
        effective_doc_type=effective,
        canonical_type=canonical,
        routing_class=ROUTING_DOCAI if canonical in STRUCTURED_CANONICAL_TYPES else ROUTING_OCR,
        checklist_key=keys[0] if keys else None,
        guardrail_applied=reason is not None,
        guardrail_reason=reason,
    )


# =============================================================================
# RECONCILIATION
# =============================================================================

SETTLED_STATUSES = (ChecklistStatus.WAIVED, ChecklistStatus.SATISFIED)
# Proposed matches wait for a human; only applied or confirmed ones count.
APPLIED_MATCH_STATUSES = (MatchStatus.AUTO_APPLIED, MatchStatus.CONFIRMED)
COMPLETE_STATUSES = (ChecklistStatus.RECEIVED, ChecklistStatus.SATISFIED, ChecklistStatus.WAIVED)


class ChecklistReconciler:
    """Flip checklist items to received or satisfied from their matches.

    Reconciliation for one deal is serialized; different deals run in
    parallel.
    """

    def __init__(self, store: IntakeStore):
        self.store = store
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _deal_lock(self, deal_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(deal_id, threading.Lock())

    def reconcile(self, deal_id: str) -> int:
        """Reconcile one deal's checklist against its matches.

        Returns:
            Number of items whose status changed.
        """
        with self._deal_lock(deal_id):
            matches = [
                m for m in self.store.list_matches(deal_id=deal_id)
                if m.status in APPLIED_MATCH_STATUSES
            ]
            years_by_key: dict[str, set[int]] = {}
            for match in matches:
                years = years_by_key.setdefault(match.checklist_key, set())
                if match.tax_year is not None:
                    years.add(match.tax_year)

            flipped = 0
            for item in self.store.get_checklist_items(deal_id, list(years_by_key)):
                if item.status in SETTLED_STATUSES:
                    continue
                if self._apply(item, years_by_key[item.checklist_key]):
                    flipped += 1

        logger.info("checklist_reconciled", deal_id=deal_id, matched_keys=len(years_by_key), flipped=flipped)
        return flipped

    def _apply(self, item: ChecklistItem, matched_years: set[int]) -> bool:
        status = ChecklistStatus.RECEIVED
        satisfied_years = list(item.satisfied_years)
        if item.required_years:
            satisfied_years = sorted(set(satisfied_years) | (matched_years & set(item.required_years)))
            if set(item.required_years) <= set(satisfied_years):
                status = ChecklistStatus.SATISFIED

        if status == item.status and satisfied_years == item.satisfied_years:
            return False

        self.store.update_checklist_item(
            item.deal_id,
            item.checklist_key,
            status=status,
            satisfied_years=satisfied_years,
            received_at=item.received_at or datetime.now(timezone.utc),
        )
        return status != item.status


# =============================================================================
# READINESS
# =============================================================================

class ReadinessCalculator:
    """Compute and persist whether a deal has every required document."""

    def __init__(self, store: IntakeStore):
        self.store = store

    def recompute(self, deal_id: str) -> DealReadiness:
        required = [item for item in self.store.get_checklist_items(deal_id) if item.required]
        missing = sorted(item.checklist_key for item in required if item.status not in COMPLETE_STATUSES)
        readiness = DealReadiness(
            deal_id=deal_id,
            ready=not missing,
            required_total=len(required),
            required_complete=len(required) - len(missing),
            missing_keys=missing,
        )
        self.store.save_readiness(readiness)
        logger.info(
            "deal_readiness_computed",
            deal_id=deal_id,
            ready=readiness.ready,
            percent_complete=readiness.percent_complete,
        )
        return readiness


__all__ = [
    "CANONICAL_TYPES",
    "CHECKLIST_KEYS",
    "ChecklistReconciler",
    "DocTyping",
    "ROUTING_DOCAI",
    "ROUTING_OCR",
    "ReadinessCalculator",
    "map_doc_type_to_checklist_keys",
    "resolve_doc_typing",
]
