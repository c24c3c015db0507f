"""P&L label alias dictionary.

Maps free-form income statement row labels ("Sales Revenue from Charters",
"Merchant Fees", "R&M") onto canonical income statement fact keys. Used by
the generic row scan when fixed label patterns miss industry wording.

Entries are evaluated in order and the first match wins, so more specific
concepts (cost of sales, other operating expenses) precede broader ones.
"""

import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlAlias:
    """A P&L concept: alias key, canonical fact key and label patterns."""

    key: str
    fact_key: str
    patterns: tuple[re.Pattern, ...]

    def matches(self, label: str) -> bool:
        return any(p.search(label) for p in self.patterns)


def _alias(key: str, fact_key: str, *patterns: str) -> PlAlias:
    return PlAlias(key, fact_key, tuple(re.compile(p, re.IGNORECASE) for p in patterns))


PL_ALIASES: list[PlAlias] = [
    _alias(
        "COGS", "COST_OF_GOODS_SOLD",
        r"cost\s+of\s+(?:goods|sales|revenue)",
        r"\bcogs\b",
        r"direct\s+costs?",
        r"merchant\s+fees?",
        r"materials?\s+costs?",
    ),
    _alias("GROSS_PROFIT", "GROSS_PROFIT", r"gross\s+(?:profit|margin)"),
    _alias(
        "GROSS_REVENUE", "TOTAL_REVENUE",
        r"\brevenues?\b",
        r"\bsales\b",
        r"gross\s+receipts",
        r"\bcharters?\b",
        r"fee\s+income",
    ),
    _alias(
        "OTHER_OPERATING_EXPENSES", "OTHER_OPEX",
        r"other\s+(?:operating\s+)?expenses?",
        r"miscellaneous",
        r"general\s+(?:and|&)\s+admin",
    ),
    _alias(
        "OPERATING_EXPENSES", "TOTAL_OPERATING_EXPENSES",
        r"total\s+(?:operating\s+)?expenses",
        r"operating\s+expenses",
    ),
    _alias("PAYROLL", "PAYROLL", r"payroll", r"salar(?:y|ies)", r"\bwages\b"),
    _alias("RENT", "OTHER_OPEX", r"\brent\b(?!\s+roll)", r"lease\s+expense"),
    _alias("INSURANCE", "INSURANCE", r"\binsurance\b(?!\s+income)"),
    _alias("UTILITIES", "UTILITIES", r"utilit(?:y|ies)", r"\belectric"),
    _alias(
        "REPAIRS_MAINTENANCE", "REPAIRS_MAINTENANCE",
        r"\brepairs?\b",
        r"maintenance",
        r"\br\s*&\s*m\b",
        r"marina\s+svcs?",
    ),
    _alias(
        "INTEREST_EXPENSE", "DEBT_SERVICE",
        r"interest\s+expense",
        r"debt\s+service",
        r"mortgage\s+interest",
    ),
    _alias("DEPRECIATION_AMORTIZATION", "DEPRECIATION", r"depreciation", r"amortization"),
    _alias(
        "PRETAX_INCOME", "OPERATING_INCOME",
        r"income\s+before\s+(?:income\s+)?tax(?:es)?",
        r"pre-?\s*tax\s+income",
        r"operating\s+income",
        r"\bebt\b",
    ),
    _alias(
        "NET_INCOME", "NET_INCOME",
        r"net\s+(?:income|profit|loss|earnings)",
        r"bottom\s+line",
    ),
]

_IGNORED_LABELS = re.compile(r"^general\s+ledger\s+reference$", re.IGNORECASE)


def normalize_pl_label(label: Optional[str]) -> Optional[PlAlias]:
    """Resolve a row label to its P&L alias, or None when nothing matches.

    Example:
        >>> normalize_pl_label("Sales Revenue from Charters").fact_key
        'TOTAL_REVENUE'
    """
    cleaned = re.sub(r"\s+", " ", label or "").strip()
    if not cleaned or _IGNORED_LABELS.match(cleaned):
        return None
    return next((alias for alias in PL_ALIASES if alias.matches(cleaned)), None)


__all__ = ["PL_ALIASES", "PlAlias", "normalize_pl_label"]
