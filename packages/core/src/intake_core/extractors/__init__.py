"""Deterministic fact extractors and document-type routing."""

import re
from typing import TYPE_CHECKING

import structlog

from intake_core.extractors.balance_sheet import BalanceSheetExtractor
from intake_core.extractors.base import (
    DeterministicExtractor,
    ExtractionOutcome,
    ExtractorArgs,
    LabelRule,
    first_per_key,
    label_rule,
)
from intake_core.extractors.income_statement import IncomeStatementExtractor
from intake_core.extractors.personal_income import PersonalIncomeExtractor
from intake_core.extractors.pfs import PfsExtractor
from intake_core.extractors.rent_roll import RentRollExtractor
from intake_core.extractors.tax_return import TaxReturnExtractor
from intake_core.models.documents import DocumentType
from intake_core.models.facts import ExtractionResult

if TYPE_CHECKING:
    from intake_core.store import IntakeStore

logger = structlog.get_logger()

BALANCE_SHEET_ANCHORS = re.compile(r"balance\s+sheet|total\s+liabilities\s+(?:and|&)", re.IGNORECASE)


def extractors_for(doc_type: DocumentType, text: str = "") -> list[DeterministicExtractor]:
    """Pick the extractors for a classified document.

    T12 and OTHER documents get a balance sheet pass only when the text
    carries balance-sheet anchors.
    """
    has_balance_sheet = bool(BALANCE_SHEET_ANCHORS.search(text or ""))

    if doc_type in (DocumentType.IRS_BUSINESS, DocumentType.K1):
        return [TaxReturnExtractor()]
    if doc_type == DocumentType.IRS_PERSONAL:
        return [TaxReturnExtractor(), PersonalIncomeExtractor()]
    if doc_type in (DocumentType.W2, DocumentType.FORM_1099):
        return [PersonalIncomeExtractor()]
    if doc_type == DocumentType.T12:
        extractors: list[DeterministicExtractor] = [IncomeStatementExtractor()]
        if has_balance_sheet:
            extractors.append(BalanceSheetExtractor())
        return extractors
    if doc_type == DocumentType.PFS:
        return [PfsExtractor()]
    if doc_type == DocumentType.RENT_ROLL:
        return [RentRollExtractor()]
    if doc_type == DocumentType.OTHER and has_balance_sheet:
        return [BalanceSheetExtractor()]
    return []


def extract_for_document(
    doc_type: DocumentType,
    args: ExtractorArgs,
    store: "IntakeStore",
) -> dict[str, ExtractionResult]:
    """Run every extractor routed for ``doc_type`` and write its output.

    Returns:
        Extractor id to result. Empty when the type has no extractor.
    """
    results = {}
    for extractor in extractors_for(doc_type, args.ocr_text):
        results[extractor.extractor_id] = extractor.run(args, store)

    if results:
        logger.info(
            "document_facts_extracted",
            document_id=args.document_id,
            doc_type=doc_type.value,
            facts_written=sum(r.facts_written for r in results.values()),
        )
    return results


__all__ = [
    "BalanceSheetExtractor",
    "DeterministicExtractor",
    "ExtractionOutcome",
    "ExtractorArgs",
    "IncomeStatementExtractor",
    "LabelRule",
    "PersonalIncomeExtractor",
    "PfsExtractor",
    "RentRollExtractor",
    "TaxReturnExtractor",
    "extract_for_document",
    "extractors_for",
    "first_per_key",
    "label_rule",
]
