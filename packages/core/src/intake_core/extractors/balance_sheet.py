"""Balance sheet extractor.

Totals are listed after their components, and "Total Liabilities" refuses
to match "Total Liabilities and Equity", so each subtotal keeps its own key.
"""

from intake_core.extractors.base import DeterministicExtractor, label_rule
from intake_core.models.facts import FactType

VALID_LINE_KEYS = frozenset({
    "CASH_AND_EQUIVALENTS", "ACCOUNTS_RECEIVABLE", "INVENTORY", "PREPAID_EXPENSES",
    "OTHER_CURRENT_ASSETS", "TOTAL_CURRENT_ASSETS",
    "PROPERTY_PLANT_EQUIPMENT", "ACCUMULATED_DEPRECIATION", "NET_FIXED_ASSETS",
    "INVESTMENT_PROPERTIES", "INTANGIBLE_ASSETS", "OTHER_NON_CURRENT_ASSETS",
    "TOTAL_NON_CURRENT_ASSETS", "TOTAL_ASSETS",
    "ACCOUNTS_PAYABLE", "ACCRUED_EXPENSES", "SHORT_TERM_DEBT", "CURRENT_PORTION_LTD",
    "OTHER_CURRENT_LIABILITIES", "TOTAL_CURRENT_LIABILITIES",
    "LONG_TERM_DEBT", "MORTGAGE_PAYABLE", "DEFERRED_TAX_LIABILITY",
    "OTHER_NON_CURRENT_LIABILITIES", "TOTAL_NON_CURRENT_LIABILITIES", "TOTAL_LIABILITIES",
    "COMMON_STOCK", "RETAINED_EARNINGS", "PARTNERS_CAPITAL", "MEMBERS_EQUITY",
    "OTHER_EQUITY", "TOTAL_EQUITY",
    "TOTAL_LIABILITIES_AND_EQUITY",
})

_APOS = "['’]?"

LABEL_RULES = [
    # Current assets
    label_rule(
        "CASH_AND_EQUIVALENTS",
        r"cash\s+(?:and\s+)?(?:cash\s+)?equivalents?|cash\s+(?:and\s+)?short[\s-]?term"
        r"|cash\s+(?:in\s+)?banks?|(?:checking|savings)(?:\s+account)?|current\s+assets?\s*\(cash\)"
        r"|\bcash\b(?!\s+(?:flow|basis|surrender|method|value))",
    ),
    label_rule(
        "ACCOUNTS_RECEIVABLE",
        r"accounts?\s+receivable|\bA/R\b|trade\s+receivable|unpaid\s+.*?(?:income|receivable)\s+owed",
    ),
    label_rule("INVENTORY", r"\binventor(?:y|ies)\b"),
    label_rule(
        "PREPAID_EXPENSES",
        r"prepaid\s+(?:expense|asset)|pre[\s-]?paid\s+expense|asset\s+pre[\s-]?paid",
    ),
    label_rule("OTHER_CURRENT_ASSETS", r"other\s+current\s+asset|other\s+equipment"),
    label_rule("TOTAL_CURRENT_ASSETS", r"total\s+current\s+asset"),
    # Non-current assets
    label_rule(
        "PROPERTY_PLANT_EQUIPMENT",
        r"property[\s,]+plant\s+(?:&|and)\s+equipment|PP&E|(?:net\s+)?fixed\s+assets?"
        r"|land\s+(?:&|and)\s+building",
    ),
    label_rule(
        "ACCUMULATED_DEPRECIATION",
        r"accumulated\s+depreciation|accum\.?\s+depr|\bdepreciation\b",
    ),
    label_rule("NET_FIXED_ASSETS", r"net\s+(?:fixed|property)\s+asset|total\s+fixed\s+asset"),
    label_rule("INVESTMENT_PROPERTIES", r"investment\s+(?:propert|real\s+estate)"),
    label_rule("INTANGIBLE_ASSETS", r"intangible\s+asset|goodwill"),
    label_rule("OTHER_NON_CURRENT_ASSETS", r"other\s+(?:non[\s-]?current|long[\s-]?term)\s+asset"),
    label_rule(
        "TOTAL_NON_CURRENT_ASSETS",
        r"total\s+(?:non[\s-]?current|long[\s-]?term|fixed)\s+asset",
    ),
    label_rule("TOTAL_ASSETS", r"total\s+assets"),
    # Current liabilities
    label_rule("ACCOUNTS_PAYABLE", r"accounts?\s+payable|\bA/P\b|trade\s+payable"),
    label_rule("ACCRUED_EXPENSES", r"accrued\s+(?:expense|liabilit)"),
    label_rule(
        "SHORT_TERM_DEBT",
        r"short[\s-]?term\s+(?:debt|borrowing|note)|line\s+of\s+credit|\bLOC\b|credit\s+card\s+balance",
    ),
    label_rule(
        "CURRENT_PORTION_LTD",
        r"current\s+portion\s+(?:of\s+)?(?:long[\s-]?term|LTD)|\bCPLTD\b",
    ),
    label_rule("OTHER_CURRENT_LIABILITIES", r"other\s+current\s+liabilit"),
    label_rule("TOTAL_CURRENT_LIABILITIES", r"total\s+current\s+liabilit"),
    # Non-current liabilities
    label_rule("LONG_TERM_DEBT", r"long[\s-]?term\s+(?:debt|borrowing|note)|\bLTD\b|term\s+loan"),
    label_rule("MORTGAGE_PAYABLE", r"mortgage\s+(?:payable|note|loan)"),
    label_rule("DEFERRED_TAX_LIABILITY", r"deferred\s+(?:tax|income\s+tax)\s+liabilit"),
    label_rule(
        "OTHER_NON_CURRENT_LIABILITIES",
        r"other\s+(?:non[\s-]?current|long[\s-]?term)\s+liabilit",
    ),
    label_rule(
        "TOTAL_NON_CURRENT_LIABILITIES",
        r"total\s+(?:non[\s-]?current|long[\s-]?term)\s+liabilit",
    ),
    label_rule("TOTAL_LIABILITIES", r"total\s+liabilities(?!\s+(?:and|&))"),
    # Equity
    label_rule("COMMON_STOCK", r"common\s+stock|capital\s+stock|paid[\s-]?in\s+capital"),
    label_rule("RETAINED_EARNINGS", r"retained\s+earnings|accumulated\s+(?:deficit|surplus)"),
    label_rule("PARTNERS_CAPITAL", rf"partners?{_APOS}\s+capital|partnership\s+equity"),
    label_rule("MEMBERS_EQUITY", rf"members?{_APOS}\s+equity|LLC\s+equity"),
    label_rule("OTHER_EQUITY", r"other\s+equity|treasury\s+stock|additional\s+paid"),
    label_rule(
        "TOTAL_EQUITY",
        rf"total\s+(?:stockholders?{_APOS}\s+|owners?{_APOS}\s+|partners?{_APOS}\s+|members?{_APOS}\s+)?equity"
        r"|owners?\s+equity|total\s+(?:net\s+)?worth|total\s+capital",
    ),
    label_rule(
        "TOTAL_LIABILITIES_AND_EQUITY",
        rf"total\s+liabilities\s+(?:and|&)\s+(?:stockholders?{_APOS}\s+)?equity"
        r"|total\s+liabilities\s+(?:and|&)\s+(?:net\s+)?worth",
    ),
]

DOCAI_ENTITY_MAP = {
    "cash": "CASH_AND_EQUIVALENTS",
    "cash_equivalents": "CASH_AND_EQUIVALENTS",
    "accounts_receivable": "ACCOUNTS_RECEIVABLE",
    "inventory": "INVENTORY",
    "total_current_assets": "TOTAL_CURRENT_ASSETS",
    "property_plant_equipment": "PROPERTY_PLANT_EQUIPMENT",
    "accumulated_depreciation": "ACCUMULATED_DEPRECIATION",
    "total_assets": "TOTAL_ASSETS",
    "accounts_payable": "ACCOUNTS_PAYABLE",
    "total_current_liabilities": "TOTAL_CURRENT_LIABILITIES",
    "long_term_debt": "LONG_TERM_DEBT",
    "total_liabilities": "TOTAL_LIABILITIES",
    "retained_earnings": "RETAINED_EARNINGS",
    "total_equity": "TOTAL_EQUITY",
    "total_liabilities_equity": "TOTAL_LIABILITIES_AND_EQUITY",
}


class BalanceSheetExtractor(DeterministicExtractor):
    """Extract BALANCE_SHEET facts dated at the document's as-of date."""

    name = "balanceSheet"
    fact_type = FactType.BALANCE_SHEET
    valid_keys = VALID_LINE_KEYS
    docai_entity_map = DOCAI_ENTITY_MAP
    docai_confidence = 0.7
    label_rules = LABEL_RULES
    regex_confidence = 0.55
    cross_line_confidence = 0.50


__all__ = ["BalanceSheetExtractor", "VALID_LINE_KEYS"]
