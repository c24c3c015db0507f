"""Tests for checklist mapping, guardrails, reconciliation and readiness."""

import threading

import pytest

from intake_core.checklist import (
    ROUTING_DOCAI,
    ROUTING_OCR,
    ChecklistReconciler,
    ReadinessCalculator,
    map_doc_type_to_checklist_keys,
    resolve_doc_typing,
)
from intake_core.models.documents import ClassificationResult, ClassificationTier, DocumentType
from intake_core.models.intake import (
    ChecklistItem,
    ChecklistMatch,
    ChecklistStatus,
    MatchStatus,
)
from intake_core.store import IntakeStore


def classification(doc_type, form_numbers=None, tax_year=None) -> ClassificationResult:
    return ClassificationResult(
        doc_type=doc_type,
        confidence=0.9,
        tier=ClassificationTier.LLM,
        form_numbers=form_numbers,
        tax_year=tax_year,
    )


def add_match(store, key, *, tax_year=None, status=MatchStatus.AUTO_APPLIED, artifact_id="art-1"):
    store.upsert_match(ChecklistMatch(
        id=f"m-{artifact_id}-{key}-{tax_year}",
        deal_id="deal-1",
        bank_id="bank-1",
        artifact_id=artifact_id,
        checklist_key=key,
        confidence=0.9,
        tax_year=tax_year,
        status=status,
    ))


class TestChecklistKeys:
    """Tests for document type to checklist key mapping."""

    def test_year_key_leads_for_returns(self):
        """Tax returns get a year-specific key first."""
        keys = map_doc_type_to_checklist_keys(DocumentType.IRS_BUSINESS, 2023)
        assert keys[0] == "IRS_BUSINESS_2023"
        assert keys[1:] == ["IRS_BUSINESS_3Y", "IRS_BUSINESS_2Y", "BTR", "BTR_2Y", "TAX_RETURNS"]

    @pytest.mark.parametrize("year", [None, 1999, 2101])
    def test_no_year_key_out_of_range(self, year):
        """Missing or out-of-range years add no year key."""
        keys = map_doc_type_to_checklist_keys(DocumentType.IRS_PERSONAL, year)
        assert keys[0] == "IRS_PERSONAL_3Y"

    def test_year_ignored_for_other_types(self):
        """Only returns are year-keyed."""
        assert map_doc_type_to_checklist_keys(DocumentType.RENT_ROLL, 2023) == ["RENT_ROLL"]

    def test_other_has_no_keys(self):
        """OTHER maps to nothing."""
        assert map_doc_type_to_checklist_keys(DocumentType.OTHER) == []

    def test_entity_docs_share_a_fallback(self):
        """Formation documents all fall back to ENTITY_DOCS."""
        for doc_type in (DocumentType.ARTICLES, DocumentType.OPERATING_AGREEMENT, DocumentType.BYLAWS):
            assert map_doc_type_to_checklist_keys(doc_type)[-1] == "ENTITY_DOCS"


class TestResolveDocTyping:
    """Tests for the form-number guardrail and canonical typing."""

    def test_business_form_overrides_personal(self):
        """A 1120S typed personal becomes a business return."""
        typing = resolve_doc_typing(classification(DocumentType.IRS_PERSONAL, ["1120S"], 2023))

        assert typing.effective_doc_type == DocumentType.IRS_BUSINESS
        assert typing.guardrail_applied
        assert typing.guardrail_reason == "business form 1120S present; overrode IRS_PERSONAL"
        assert typing.canonical_type == "BUSINESS_TAX_RETURN"
        assert typing.checklist_key == "IRS_BUSINESS_2023"

    def test_personal_form_overrides_business(self):
        """A lone 1040 typed business becomes a personal return."""
        typing = resolve_doc_typing(classification(DocumentType.IRS_BUSINESS, ["Form 1040"]))

        assert typing.effective_doc_type == DocumentType.IRS_PERSONAL
        assert typing.guardrail_reason == "personal form 1040 present; overrode IRS_BUSINESS"

    def test_other_is_overridden(self):
        """OTHER with a business form is promoted."""
        typing = resolve_doc_typing(classification(DocumentType.OTHER, ["form-1065"]))
        assert typing.effective_doc_type == DocumentType.IRS_BUSINESS

    def test_mixed_forms_leave_type(self):
        """Both form families present leaves the classifier's type."""
        typing = resolve_doc_typing(classification(DocumentType.IRS_PERSONAL, ["1040", "1120"]))
        assert typing.effective_doc_type == DocumentType.IRS_PERSONAL
        assert not typing.guardrail_applied

    def test_non_return_types_untouched(self):
        """A K-1 mentioning 1065 stays a K-1."""
        typing = resolve_doc_typing(classification(DocumentType.K1, ["1065", "K-1"]))
        assert typing.effective_doc_type == DocumentType.K1
        assert typing.guardrail_reason is None

    @pytest.mark.parametrize(
        "doc_type,canonical,routing",
        [
            (DocumentType.IRS_PERSONAL, "PERSONAL_TAX_RETURN", ROUTING_DOCAI),
            (DocumentType.PFS, "PFS", ROUTING_DOCAI),
            (DocumentType.W2, "W2", ROUTING_DOCAI),
            (DocumentType.T12, "INCOME_STATEMENT", ROUTING_OCR),
            (DocumentType.BYLAWS, "ENTITY_DOCS", ROUTING_OCR),
            (DocumentType.OTHER, "OTHER", ROUTING_OCR),
        ],
    )
    def test_canonical_and_routing(self, doc_type, canonical, routing):
        """Canonical types decide the routing class."""
        typing = resolve_doc_typing(classification(doc_type))
        assert typing.canonical_type == canonical
        assert typing.routing_class == routing

    def test_other_has_no_checklist_key(self):
        """OTHER resolves to no primary key."""
        assert resolve_doc_typing(classification(DocumentType.OTHER)).checklist_key is None


class TestChecklistReconciler:
    """Tests for reconciliation."""

    @pytest.fixture
    def store(self):
        store = IntakeStore()
        store.upsert_checklist_item(ChecklistItem(deal_id="deal-1", checklist_key="RENT_ROLL"))
        store.upsert_checklist_item(ChecklistItem(
            deal_id="deal-1",
            checklist_key="IRS_BUSINESS_2Y",
            required_years=[2022, 2023],
        ))
        store.upsert_checklist_item(ChecklistItem(
            deal_id="deal-1",
            checklist_key="PFS_CURRENT",
            status=ChecklistStatus.WAIVED,
        ))
        return store

    def test_plain_item_received(self, store):
        """A matched slot without years becomes received."""
        add_match(store, "RENT_ROLL")

        assert ChecklistReconciler(store).reconcile("deal-1") == 1
        item = store.get_checklist_items("deal-1", ["RENT_ROLL"])[0]
        assert item.status == ChecklistStatus.RECEIVED
        assert item.received_at is not None

    def test_year_slot_progresses(self, store):
        """Year slots are received until every year is present."""
        reconciler = ChecklistReconciler(store)
        add_match(store, "IRS_BUSINESS_2Y", tax_year=2023, artifact_id="a")
        reconciler.reconcile("deal-1")

        item = store.get_checklist_items("deal-1", ["IRS_BUSINESS_2Y"])[0]
        assert item.status == ChecklistStatus.RECEIVED
        assert item.satisfied_years == [2023]

        add_match(store, "IRS_BUSINESS_2Y", tax_year=2022, artifact_id="b")
        assert reconciler.reconcile("deal-1") == 1
        item = store.get_checklist_items("deal-1", ["IRS_BUSINESS_2Y"])[0]
        assert item.status == ChecklistStatus.SATISFIED
        assert item.satisfied_years == [2022, 2023]

    def test_rejected_matches_ignored(self, store):
        """Rejected matches do not count."""
        add_match(store, "RENT_ROLL", status=MatchStatus.REJECTED)
        assert ChecklistReconciler(store).reconcile("deal-1") == 0

    def test_proposed_matches_wait_for_confirmation(self, store):
        """A proposed match leaves the item missing until it is confirmed."""
        add_match(store, "RENT_ROLL", status=MatchStatus.PROPOSED)
        reconciler = ChecklistReconciler(store)

        assert reconciler.reconcile("deal-1") == 0
        assert store.get_checklist_items("deal-1", ["RENT_ROLL"])[0].status == ChecklistStatus.MISSING

        add_match(store, "RENT_ROLL", status=MatchStatus.CONFIRMED)
        assert reconciler.reconcile("deal-1") == 1
        assert store.get_checklist_items("deal-1", ["RENT_ROLL"])[0].status == ChecklistStatus.RECEIVED

    def test_waived_untouched(self, store):
        """Waived slots are never downgraded."""
        add_match(store, "PFS_CURRENT")
        ChecklistReconciler(store).reconcile("deal-1")
        assert store.get_checklist_items("deal-1", ["PFS_CURRENT"])[0].status == ChecklistStatus.WAIVED

    def test_idempotent(self, store):
        """A second pass changes nothing."""
        add_match(store, "RENT_ROLL")
        reconciler = ChecklistReconciler(store)
        reconciler.reconcile("deal-1")
        assert reconciler.reconcile("deal-1") == 0

    def test_unknown_keys_ignored(self, store):
        """Matches to keys the deal lacks are skipped."""
        add_match(store, "APPRAISAL")
        assert ChecklistReconciler(store).reconcile("deal-1") == 0

    def test_concurrent_reconciles(self, store):
        """Parallel reconciles of one deal flip the item once."""
        add_match(store, "RENT_ROLL")
        reconciler = ChecklistReconciler(store)
        results = []

        threads = [
            threading.Thread(target=lambda: results.append(reconciler.reconcile("deal-1")))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(results) == 1


class TestReadinessCalculator:
    """Tests for deal readiness."""

    def test_not_ready(self):
        """Missing required slots are listed, sorted."""
        store = IntakeStore()
        store.upsert_checklist_item(ChecklistItem(deal_id="deal-1", checklist_key="RENT_ROLL"))
        store.upsert_checklist_item(ChecklistItem(deal_id="deal-1", checklist_key="APPRAISAL"))
        store.upsert_checklist_item(ChecklistItem(
            deal_id="deal-1", checklist_key="PFS_CURRENT", status=ChecklistStatus.RECEIVED,
        ))
        store.upsert_checklist_item(ChecklistItem(deal_id="deal-1", checklist_key="COI", required=False))

        readiness = ReadinessCalculator(store).recompute("deal-1")

        assert not readiness.ready
        assert readiness.required_total == 3
        assert readiness.required_complete == 1
        assert readiness.missing_keys == ["APPRAISAL", "RENT_ROLL"]
        assert store.get_readiness("deal-1") == readiness

    def test_ready(self):
        """Received, satisfied and waived all count as complete."""
        store = IntakeStore()
        for key, status in [
            ("A", ChecklistStatus.RECEIVED),
            ("B", ChecklistStatus.SATISFIED),
            ("C", ChecklistStatus.WAIVED),
        ]:
            store.upsert_checklist_item(ChecklistItem(deal_id="deal-1", checklist_key=key, status=status))

        readiness = ReadinessCalculator(store).recompute("deal-1")

        assert readiness.ready
        assert readiness.missing_keys == []

    def test_empty_checklist_is_ready(self):
        """A deal with no required slots is ready."""
        assert ReadinessCalculator(IntakeStore()).recompute("deal-9").ready
