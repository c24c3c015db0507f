"""Personal income extractor for W-2, 1099 and Schedule K-1 forms.

Each information return in the text contributes its own box patterns, so a
1040 package with attached W-2s and K-1s yields all of them. Keys are
prefixed by form family; facts are owned by the person and dated to the
fiscal year of the resolved tax year.
"""

import re

from intake_core.extractors.base import DeterministicExtractor, ExtractorArgs, LabelRule, Period, label_rule
from intake_core.models.facts import FactType, OwnerType
from intake_core.parsing import normalize_period, resolve_doc_tax_year

# =============================================================================
# BOX PATTERNS BY FORM
# =============================================================================

W2_RULES = [
    label_rule("W2_WAGES", r"wages,?\s+tips,?\s+(?:and\s+)?other\s+comp(?:ensation)?", r"box\s*1\b"),
    label_rule("W2_FEDERAL_WITHHOLDING", r"federal\s+income\s+tax\s+withheld", r"box\s*2\b"),
    label_rule("W2_SOCIAL_SECURITY_WAGES", r"social\s+security\s+wages", r"box\s*3\b"),
    label_rule("W2_SOCIAL_SECURITY_TAX", r"social\s+security\s+tax\s+withheld", r"box\s*4\b"),
    label_rule("W2_MEDICARE_WAGES", r"medicare\s+wages(?:\s+and\s+tips)?", r"box\s*5\b"),
    label_rule("W2_MEDICARE_TAX", r"medicare\s+tax\s+withheld", r"box\s*6\b"),
]

INT_RULES = [
    label_rule("INT_INTEREST_INCOME", r"(?<!tax-exempt\s)interest\s+income", r"box\s*1\b"),
]

DIV_RULES = [
    label_rule("DIV_ORDINARY_DIVIDENDS", r"total\s+ordinary\s+dividends", r"box\s*1a\b"),
    label_rule("DIV_QUALIFIED_DIVIDENDS", r"qualified\s+dividends", r"box\s*1b\b"),
]

NEC_RULES = [
    label_rule("NEC_NONEMPLOYEE_COMPENSATION", r"nonemployee\s+compensation", r"box\s*1\b"),
]

MISC_RULES = [
    label_rule("MISC_RENTS", r"\brents\b", r"box\s*1\b"),
    label_rule("MISC_OTHER_INCOME", r"other\s+income", r"box\s*3\b"),
]

R_RULES = [
    label_rule("R_GROSS_DISTRIBUTION", r"gross\s+distribution", r"box\s*1\b"),
    label_rule("R_TAXABLE_AMOUNT", r"taxable\s+amount(?!\s+not)", r"box\s*2a\b"),
]

K1_RULES = [
    label_rule("K1_ORDINARY_BUSINESS_INCOME", r"ordinary\s+business\s+income(?:\s+\(loss\))?"),
    label_rule("K1_NET_RENTAL_REAL_ESTATE", r"net\s+rental\s+real\s+estate\s+income(?:\s+\(loss\))?"),
    label_rule("K1_OTHER_NET_RENTAL", r"other\s+net\s+rental\s+income(?:\s+\(loss\))?"),
    label_rule("K1_GUARANTEED_PAYMENTS", r"guaranteed\s+payments?(?:\s+for\s+services)?"),
    label_rule("K1_DISTRIBUTIONS", r"\bdistributions\b"),
]

FORM_DETECTORS: list[tuple[re.Pattern, list[LabelRule]]] = [
    (re.compile(r"Form\s+W-?2\b|Wage\s+and\s+Tax\s+Statement", re.IGNORECASE), W2_RULES),
    (re.compile(r"1099-?INT\b", re.IGNORECASE), INT_RULES),
    (re.compile(r"1099-?DIV\b", re.IGNORECASE), DIV_RULES),
    (re.compile(r"1099-?NEC\b", re.IGNORECASE), NEC_RULES),
    (re.compile(r"1099-?MISC\b", re.IGNORECASE), MISC_RULES),
    (re.compile(r"1099-?R\b", re.IGNORECASE), R_RULES),
    (re.compile(r"Schedule\s+K-?1\b", re.IGNORECASE), K1_RULES),
]

ALL_RULES = [rule for _, rules in FORM_DETECTORS for rule in rules]

VALID_LINE_KEYS = frozenset(rule.key for rule in ALL_RULES)

DOCAI_ENTITY_MAP = {
    "wages_tips_other_compensation": "W2_WAGES",
    "wages_tips_other_comp": "W2_WAGES",
    "federal_income_tax_withheld": "W2_FEDERAL_WITHHOLDING",
    "social_security_wages": "W2_SOCIAL_SECURITY_WAGES",
    "social_security_tax_withheld": "W2_SOCIAL_SECURITY_TAX",
    "medicare_wages_and_tips": "W2_MEDICARE_WAGES",
    "medicare_tax_withheld": "W2_MEDICARE_TAX",
    "interest_income": "INT_INTEREST_INCOME",
    "ordinary_dividends": "DIV_ORDINARY_DIVIDENDS",
    "qualified_dividends": "DIV_QUALIFIED_DIVIDENDS",
    "nonemployee_compensation": "NEC_NONEMPLOYEE_COMPENSATION",
    "rents": "MISC_RENTS",
    "other_income": "MISC_OTHER_INCOME",
    "gross_distribution": "R_GROSS_DISTRIBUTION",
    "taxable_amount": "R_TAXABLE_AMOUNT",
    "ordinary_business_income": "K1_ORDINARY_BUSINESS_INCOME",
    "net_rental_real_estate_income": "K1_NET_RENTAL_REAL_ESTATE",
    "other_net_rental_income": "K1_OTHER_NET_RENTAL",
    "guaranteed_payments": "K1_GUARANTEED_PAYMENTS",
    "distributions": "K1_DISTRIBUTIONS",
}


def detect_income_forms(text: str) -> list[list[LabelRule]]:
    """Return the box rule sets for every information return found in text."""
    return [rules for pattern, rules in FORM_DETECTORS if pattern.search(text or "")]


class PersonalIncomeExtractor(DeterministicExtractor):
    """Extract PERSONAL_INCOME facts owned by the borrower."""

    name = "personalIncome"
    fact_type = FactType.PERSONAL_INCOME
    owner_type = OwnerType.PERSONAL
    valid_keys = VALID_LINE_KEYS
    docai_entity_map = DOCAI_ENTITY_MAP
    docai_confidence = 0.7
    label_rules = ALL_RULES
    regex_confidence = 0.55
    cross_line_confidence = 0.50

    def period(self, args: ExtractorArgs) -> Period:
        tax_year = resolve_doc_tax_year(args.ocr_text, args.doc_year)
        return normalize_period(f"FY{tax_year}" if tax_year else None)

    def rules_for(self, args: ExtractorArgs) -> list[LabelRule]:
        # Unlabeled box numbers are meaningless without a known form.
        return [rule for rules in detect_income_forms(args.ocr_text) for rule in rules]


__all__ = ["PersonalIncomeExtractor", "VALID_LINE_KEYS", "detect_income_forms"]
