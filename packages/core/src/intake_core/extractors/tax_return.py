"""IRS tax return extractor (1040, 1120, 1120S, 1065, Schedule C).

The structured-OCR path is primary for tax returns: entities first, then
form fields for keys the entities did not produce. The OCR fallback picks
line-number patterns by detected form family and only accepts amounts on
the same line as their label.
"""

import re

from intake_core.docai import extract_form_fields
from intake_core.extractors.base import (
    DeterministicExtractor,
    ExtractorArgs,
    LabelRule,
    Period,
    label_rule,
    normalize_entity_type,
)
from intake_core.models.documents import clamp_confidence
from intake_core.models.facts import ExtractedLineItem, ExtractionPath, FactType
from intake_core.parsing import IrsFormType, detect_irs_form_type, normalize_period, parse_money, resolve_doc_tax_year

VALID_LINE_KEYS = frozenset({
    "GROSS_RECEIPTS", "COST_OF_GOODS_SOLD", "GROSS_PROFIT",
    "TOTAL_INCOME", "TOTAL_DEDUCTIONS", "TAXABLE_INCOME", "NET_INCOME", "TAX_LIABILITY",
    "DEPRECIATION", "AMORTIZATION", "DEPLETION",
    "OFFICER_COMPENSATION", "SALARIES_WAGES",
    "INTEREST_EXPENSE", "INTEREST_INCOME",
    "RENTAL_INCOME", "RENTAL_EXPENSES",
    "WAGES_W2", "BUSINESS_INCOME_SCHEDULE_C", "CAPITAL_GAINS",
    "IRA_DISTRIBUTIONS", "SOCIAL_SECURITY",
    "ADJUSTED_GROSS_INCOME", "STANDARD_DEDUCTION", "ITEMIZED_DEDUCTIONS",
    "QUALIFIED_BUSINESS_INCOME_DEDUCTION",
    "ORDINARY_BUSINESS_INCOME", "NET_RENTAL_REAL_ESTATE_INCOME",
    "GUARANTEED_PAYMENTS", "DISTRIBUTIONS",
    "OTHER_INCOME", "OTHER_DEDUCTIONS", "MEALS_ENTERTAINMENT",
    "RENT_EXPENSE", "TAXES_LICENSES", "INSURANCE_EXPENSE",
    "REPAIRS_MAINTENANCE", "ADVERTISING", "PENSION_PROFIT_SHARING",
})

# =============================================================================
# LINE PATTERNS BY FORM FAMILY
# =============================================================================

FORM_1040_RULES = [
    label_rule("WAGES_W2", r"line\s+1\b|wages,?\s+salaries"),
    label_rule("INTEREST_INCOME", r"line\s+2b\b|taxable\s+interest"),
    label_rule("CAPITAL_GAINS", r"line\s+7\b|capital\s+gain"),
    label_rule(
        "BUSINESS_INCOME_SCHEDULE_C",
        r"line\s+(?:8|12)\b|business\s+income|schedule\s+C\s+(?:net|income)",
    ),
    label_rule("RENTAL_INCOME", r"line\s+(?:5|17)\b|rental[^\n]*?income|schedule\s+E"),
    label_rule("SOCIAL_SECURITY", r"line\s+6[ab]\b|social\s+security"),
    label_rule("IRA_DISTRIBUTIONS", r"line\s+4[ab]\b|IRA\s+distributions?|pension"),
    label_rule("TOTAL_INCOME", r"line\s+9\b|total\s+income"),
    label_rule("ADJUSTED_GROSS_INCOME", r"line\s+11\b|adjusted\s+gross\s+income|\bAGI\b"),
    label_rule("STANDARD_DEDUCTION", r"line\s+12\b|standard\s+deduction"),
    label_rule("TAXABLE_INCOME", r"line\s+15\b|taxable\s+income"),
    label_rule("TAX_LIABILITY", r"line\s+(?:16|24)\b|total\s+tax|tax\s+(?:liability|owed)"),
]

FORM_1120_RULES = [
    label_rule("GROSS_RECEIPTS", r"line\s+1[abc]?\b|gross\s+receipts"),
    label_rule("COST_OF_GOODS_SOLD", r"line\s+2\b|cost\s+of\s+goods\s+sold|\bCOGS\b"),
    label_rule("GROSS_PROFIT", r"line\s+3\b|gross\s+profit"),
    label_rule(
        "OFFICER_COMPENSATION",
        r"line\s+12\b|officer\s+compensation|compensation\s+of\s+officer",
    ),
    label_rule("SALARIES_WAGES", r"line\s+13\b|salaries\s+(?:and\s+)?wages"),
    label_rule("DEPRECIATION", r"line\s+(?:14|20)\b|depreciation"),
    label_rule("AMORTIZATION", r"amortization"),
    label_rule("INTEREST_EXPENSE", r"line\s+18\b|interest\s+(?:expense|paid|deduction)"),
    label_rule("RENT_EXPENSE", r"line\s+(?:16|17)\b|rents?\s+(?:expense|paid)"),
    label_rule("TAXES_LICENSES", r"line\s+17\b|taxes\s+(?:and\s+)?licenses"),
    label_rule("TOTAL_DEDUCTIONS", r"line\s+27\b|total\s+deductions"),
    label_rule("TAXABLE_INCOME", r"line\s+(?:28|30)\b|taxable\s+income"),
    label_rule("NET_INCOME", r"net\s+income|net\s+profit"),
]

FORM_1065_RULES = [
    label_rule("GROSS_RECEIPTS", r"line\s+1[abc]?\b|gross\s+receipts"),
    label_rule("ORDINARY_BUSINESS_INCOME", r"line\s+22\b|ordinary\s+(?:business\s+)?income"),
    label_rule(
        "NET_RENTAL_REAL_ESTATE_INCOME",
        r"net\s+rental\s+real\s+estate|rental\s+real\s+estate\s+income",
    ),
    label_rule("GUARANTEED_PAYMENTS", r"guaranteed\s+payments?"),
    label_rule("DEPRECIATION", r"depreciation"),
    label_rule("INTEREST_EXPENSE", r"interest\s+(?:expense|paid|deduction)"),
    label_rule("DISTRIBUTIONS", r"distributions?\s+(?:to|paid)"),
]

GENERIC_TAX_RULES = [
    label_rule("GROSS_RECEIPTS", r"gross\s+receipts|gross\s+income|total\s+(?:gross\s+)?revenue"),
    label_rule("COST_OF_GOODS_SOLD", r"cost\s+of\s+goods\s+sold|\bCOGS\b"),
    label_rule("TOTAL_INCOME", r"total\s+income"),
    label_rule("TOTAL_DEDUCTIONS", r"total\s+deductions"),
    label_rule("TAXABLE_INCOME", r"taxable\s+income"),
    label_rule("NET_INCOME", r"net\s+income|net\s+(?:profit|loss)"),
    label_rule("DEPRECIATION", r"\bdepreciation\b"),
    label_rule("AMORTIZATION", r"\bamortization\b"),
    label_rule("OFFICER_COMPENSATION", r"officer\s+compensation"),
    label_rule("INTEREST_EXPENSE", r"interest\s+(?:expense|paid|deduction)"),
    label_rule("SALARIES_WAGES", r"salaries\s+(?:and\s+)?wages"),
    label_rule("RENT_EXPENSE", r"rents?\s+(?:expense|paid)"),
    label_rule("ADJUSTED_GROSS_INCOME", r"adjusted\s+gross\s+income|\bAGI\b"),
    label_rule("TAX_LIABILITY", r"total\s+tax|tax\s+(?:liability|owed)"),
]

RULES_BY_FORM: dict[IrsFormType, list[LabelRule]] = {
    IrsFormType.FORM_1040: FORM_1040_RULES + GENERIC_TAX_RULES,
    IrsFormType.FORM_1120: FORM_1120_RULES + GENERIC_TAX_RULES,
    IrsFormType.FORM_1120S: FORM_1120_RULES + GENERIC_TAX_RULES,
    # Schedule C lays out like a corporate return.
    IrsFormType.SCHEDULE_C: FORM_1120_RULES + GENERIC_TAX_RULES,
    IrsFormType.FORM_1065: FORM_1065_RULES + GENERIC_TAX_RULES,
}

DOCAI_ENTITY_MAP = {
    "gross_receipts": "GROSS_RECEIPTS",
    "cost_of_goods_sold": "COST_OF_GOODS_SOLD",
    "gross_profit": "GROSS_PROFIT",
    "total_income": "TOTAL_INCOME",
    "total_deductions": "TOTAL_DEDUCTIONS",
    "taxable_income": "TAXABLE_INCOME",
    "net_income": "NET_INCOME",
    "tax": "TAX_LIABILITY",
    "tax_liability": "TAX_LIABILITY",
    "depreciation": "DEPRECIATION",
    "amortization": "AMORTIZATION",
    "officer_compensation": "OFFICER_COMPENSATION",
    "salaries_wages": "SALARIES_WAGES",
    "interest_expense": "INTEREST_EXPENSE",
    "rent": "RENT_EXPENSE",
    "ordinary_income": "ORDINARY_BUSINESS_INCOME",
    "guaranteed_payments": "GUARANTEED_PAYMENTS",
    "distributions": "DISTRIBUTIONS",
    "wages": "WAGES_W2",
    "adjusted_gross_income": "ADJUSTED_GROSS_INCOME",
    "capital_gains": "CAPITAL_GAINS",
}

FORM_FIELD_CONFIDENCE = 0.65

_FIELD_NAME_JUNK = re.compile(r"[^a-z0-9_]")


class TaxReturnExtractor(DeterministicExtractor):
    """Extract TAX_RETURN facts from business and personal returns."""

    name = "taxReturn"
    fact_type = FactType.TAX_RETURN
    valid_keys = VALID_LINE_KEYS
    docai_entity_map = DOCAI_ENTITY_MAP
    docai_confidence = 0.75
    label_rules = GENERIC_TAX_RULES
    regex_confidence = 0.55
    cross_line_confidence = None

    def period(self, args: ExtractorArgs) -> Period:
        """The fiscal year of the resolved tax year."""
        tax_year = resolve_doc_tax_year(args.ocr_text, args.doc_year)
        return normalize_period(f"FY{tax_year}" if tax_year else None)

    def rules_for(self, args: ExtractorArgs) -> list[LabelRule]:
        form_type = detect_irs_form_type(args.ocr_text)
        return RULES_BY_FORM.get(form_type, GENERIC_TAX_RULES)

    def _from_docai(self, args: ExtractorArgs) -> list[ExtractedLineItem]:
        items = super()._from_docai(args)
        found = {item.fact_key for item in items}
        period = self.period(args)

        for form_field in extract_form_fields(args.docai_payload):
            normalized = _FIELD_NAME_JUNK.sub("", normalize_entity_type(form_field.name))
            key = self.docai_entity_map.get(normalized)
            if not key or key not in self.valid_keys or key in found:
                continue
            value = parse_money(form_field.value)
            if value is None:
                continue
            found.add(key)
            confidence = clamp_confidence(form_field.confidence or FORM_FIELD_CONFIDENCE)
            items.append(self.make_item(
                args, key, value, confidence, period,
                f"{form_field.name}: {form_field.value}", ExtractionPath.DOCAI_STRUCTURED,
            ))
        return items


__all__ = ["TaxReturnExtractor", "VALID_LINE_KEYS"]
