"""Personal financial statement extractor.

PFS layouts vary widely (SBA Form 413 against bank-specific forms), so each
key carries several label patterns tried in order until one yields an
amount. Facts are owned by the person, not the deal.
"""

from intake_core.extractors.base import DeterministicExtractor, label_rule
from intake_core.models.facts import FactType, OwnerType

VALID_LINE_KEYS = frozenset({
    "PFS_CASH", "PFS_SECURITIES", "PFS_REAL_ESTATE", "PFS_BUSINESS_INTERESTS",
    "PFS_RETIREMENT", "PFS_OTHER_ASSETS", "PFS_TOTAL_ASSETS",
    "PFS_MORTGAGES", "PFS_INSTALLMENT_DEBT", "PFS_CREDIT_CARDS",
    "PFS_CONTINGENT", "PFS_OTHER_LIABILITIES", "PFS_TOTAL_LIABILITIES",
    "PFS_NET_WORTH",
    "PFS_ANNUAL_DEBT_SERVICE", "PFS_LIVING_EXPENSES",
})

LABEL_RULES = [
    # Assets
    label_rule(
        "PFS_CASH",
        r"cash\s+(?:and\s+)?short[\s-]?term\s+invest",
        r"cash\s+(?:in\s+)?banks?",
        r"cash\s+(?:and\s+)?(?:cash\s+)?equivalents?",
        r"checking\s+(?:and\s+)?savings",
        r"deposits?\s+(?:in\s+)?(?:financial\s+)?institutions?",
        r"liquid\s+assets?",
    ),
    label_rule(
        "PFS_SECURITIES",
        r"stocks?\s*(?:&|and)\s*bonds?",
        r"(?:other\s+)?marketable\s+securities",
        r"stocks?,?\s+bonds?\s+(?:and\s+)?(?:other\s+)?securities",
        r"brokerage\s+accounts?",
        r"investment\s+accounts?",
    ),
    label_rule(
        "PFS_REAL_ESTATE",
        r"real\s+estate[\s-]+(?:personal\s+)?residen",
        r"real\s+estate[\s-]+invest",
        r"real\s+estate\s+(?:owned|market\s+value)",
        r"(?:market\s+)?value\s+of\s+(?:real\s+)?(?:estate|properties)",
        r"property\s+values?",
    ),
    label_rule(
        "PFS_BUSINESS_INTERESTS",
        r"business\s+(?:ownership|interests?|equity)",
        r"(?:general|limited)\s+partnership\s+interests?",
        r"partnership\s+(?:interests?|equity)",
        r"LLC\s+(?:interests?|equity)",
    ),
    label_rule(
        "PFS_RETIREMENT",
        r"retirement\s+(?:accounts?|funds?)",
        r"401[\s(]?k\)?",
        r"\bIRA\b|pension",
    ),
    label_rule(
        "PFS_OTHER_ASSETS",
        r"other\s+assets?",
        r"auto(?:mobile)?s?\s+(?:value|owned)?",
        r"life\s+insurance\s+(?:cash\s+)?(?:surrender\s+)?value",
        r"cash\s+surrender\s+value",
        r"personal\s+property",
        r"notes?\s+receivable",
    ),
    label_rule("PFS_TOTAL_ASSETS", r"total\s+assets"),
    # Liabilities
    label_rule(
        "PFS_MORTGAGES",
        r"mortgages?\s+(?:&|and)\s+obligations?\s+due",
        r"mortgage(?:s)?\s+(?:payable|balance|owed|on\s+real\s+estate)",
        r"(?:home|real\s+estate)\s+(?:loan|mortgage)\s+balance",
    ),
    label_rule(
        "PFS_INSTALLMENT_DEBT",
        r"installment\s+(?:debt|loans?|accounts?)",
        r"auto\s+loans?",
        r"student\s+loans?",
        r"notes?\s+(?:&|and)\s+accounts?\s+payable",
    ),
    label_rule(
        "PFS_CREDIT_CARDS",
        r"(?:outstanding\s+)?credit\s+card\s+balance",
        r"credit\s+card\s+(?:balance|debt)",
        r"revolving\s+(?:debt|credit)",
    ),
    label_rule(
        "PFS_CONTINGENT",
        r"contingent\s+(?:liabilit|obligation)",
        r"co[\s-]?signed?\s+(?:loan|obligation)",
        r"guarantee(?:s|d)?\s+(?:liabilit|obligation)",
    ),
    label_rule(
        "PFS_OTHER_LIABILITIES",
        r"other\s+liabilit",
        r"other\s+(?:debts?|obligations?)",
        r"tax(?:es)?\s+(?:owed|payable)",
    ),
    label_rule("PFS_TOTAL_LIABILITIES", r"total\s+liabilit"),
    # Equity
    label_rule("PFS_NET_WORTH", r"net\s+worth", r"total\s+equity"),
    # Obligations
    label_rule(
        "PFS_ANNUAL_DEBT_SERVICE",
        r"annual\s+(?:debt\s+)?(?:service|payments?)",
        r"total\s+(?:annual\s+)?(?:debt\s+)?(?:service|payments?)",
        r"(?:monthly|annual)\s+(?:loan|debt)\s+payments?",
        r"loan\s+payments?\s+(?:including|incl)",
    ),
    label_rule(
        "PFS_LIVING_EXPENSES",
        r"(?:annual\s+)?living\s+(?:expenses?|costs?)",
        r"general\s+living\s+(?:expenses?|costs?)",
        r"(?:annual\s+)?household\s+(?:expenses?|costs?)",
        r"personal\s+(?:expenses?|costs?|obligations?)",
        r"total\s+expenses",
    ),
]

DOCAI_ENTITY_MAP = {
    "cash": "PFS_CASH",
    "cash_in_banks": "PFS_CASH",
    "securities": "PFS_SECURITIES",
    "stocks_bonds": "PFS_SECURITIES",
    "real_estate": "PFS_REAL_ESTATE",
    "real_estate_owned": "PFS_REAL_ESTATE",
    "business_interests": "PFS_BUSINESS_INTERESTS",
    "retirement": "PFS_RETIREMENT",
    "retirement_accounts": "PFS_RETIREMENT",
    "other_assets": "PFS_OTHER_ASSETS",
    "total_assets": "PFS_TOTAL_ASSETS",
    "mortgages": "PFS_MORTGAGES",
    "mortgage_payable": "PFS_MORTGAGES",
    "installment_debt": "PFS_INSTALLMENT_DEBT",
    "credit_cards": "PFS_CREDIT_CARDS",
    "contingent_liabilities": "PFS_CONTINGENT",
    "other_liabilities": "PFS_OTHER_LIABILITIES",
    "total_liabilities": "PFS_TOTAL_LIABILITIES",
    "net_worth": "PFS_NET_WORTH",
}

TOTALS_CONFIDENCE = 0.50
LINE_CONFIDENCE = 0.45
CROSS_LINE_FLOOR = 0.40


class PfsExtractor(DeterministicExtractor):
    """Extract PERSONAL_FINANCIAL_STATEMENT facts owned by the borrower."""

    name = "pfs"
    fact_type = FactType.PERSONAL_FINANCIAL_STATEMENT
    owner_type = OwnerType.PERSONAL
    valid_keys = VALID_LINE_KEYS
    docai_entity_map = DOCAI_ENTITY_MAP
    docai_confidence = 0.65
    label_rules = LABEL_RULES
    regex_confidence = LINE_CONFIDENCE
    cross_line_confidence = CROSS_LINE_FLOOR

    def same_line_confidence(self, key: str) -> float:
        if key.startswith("PFS_TOTAL") or key == "PFS_NET_WORTH":
            return TOTALS_CONFIDENCE
        return LINE_CONFIDENCE

    def cross_line_confidence_for(self, key: str) -> float:
        return max(CROSS_LINE_FLOOR, self.same_line_confidence(key) - 0.05)


__all__ = ["PfsExtractor", "VALID_LINE_KEYS"]
