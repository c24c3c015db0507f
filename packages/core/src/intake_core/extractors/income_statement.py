"""Income statement / T12 operating statement extractor.

Covers both commercial real estate operating statements (rental income,
NOI) and general business P&Ls (revenue, COGS, EBITDA). When the fixed
label patterns find nothing, every OCR row carrying an amount is run
through the P&L alias dictionary.
"""

import re

from intake_core.extractors.base import DeterministicExtractor, ExtractorArgs, label_rule
from intake_core.models.facts import ExtractedLineItem, ExtractionPath, FactType
from intake_core.parsing import MONEY_TOKEN, parse_money
from intake_core.pl_aliases import normalize_pl_label

VALID_LINE_KEYS = frozenset({
    "GROSS_RENTAL_INCOME", "VACANCY_CONCESSIONS", "OTHER_INCOME",
    "REPAIRS_MAINTENANCE", "UTILITIES", "PROPERTY_MANAGEMENT",
    "REAL_ESTATE_TAXES", "INSURANCE", "PAYROLL", "MARKETING",
    "PROFESSIONAL_FEES", "OTHER_OPEX", "DEPRECIATION", "AMORTIZATION",
    "DEBT_SERVICE", "CAPITAL_EXPENDITURES", "EFFECTIVE_GROSS_INCOME",
    "TOTAL_OPERATING_EXPENSES", "NET_OPERATING_INCOME", "NET_INCOME",
    "TOTAL_REVENUE", "COST_OF_GOODS_SOLD", "GROSS_PROFIT",
    "SELLING_GENERAL_ADMIN", "OPERATING_INCOME", "EBITDA",
})

# General P&L concepts come first so "Total Revenue" is not taken as rental income.
LABEL_RULES = [
    label_rule(
        "TOTAL_REVENUE",
        r"total\s+(?:sales\s+)?revenue|(?:net|gross)\s+(?:sales|revenue)|total\s+sales"
        r"|service\s+(?:income|revenue)|fee\s+income",
    ),
    label_rule(
        "COST_OF_GOODS_SOLD",
        r"cost\s+of\s+(?:goods\s+)?sold|\bCOGS\b|(?:total\s+)?cost\s+of\s+(?:sales|revenue)|direct\s+costs?",
    ),
    label_rule("GROSS_PROFIT", r"gross\s+(?:profit|margin)"),
    label_rule(
        "SELLING_GENERAL_ADMIN",
        r"selling[\s,]+general\s+(?:&|and)\s+admin|\bSG&?A\b|total\s+general\s+and\s+admin",
    ),
    label_rule(
        "OPERATING_INCOME",
        r"(?:income|profit|earnings)\s+from\s+operations|operating\s+(?:income|profit|earnings)",
    ),
    label_rule("EBITDA", r"\bEBITDA\b"),
    label_rule(
        "GROSS_RENTAL_INCOME",
        r"gross\s+(?:rental\s+)?income|rental\s+revenue|total\s+rental\s+income",
    ),
    label_rule(
        "VACANCY_CONCESSIONS",
        r"vacancy|concession|loss\s+to\s+lease|vacancy\s+(?:loss|allowance)",
    ),
    label_rule(
        "OTHER_INCOME",
        r"other\s+income|miscellaneous\s+income|laundry|parking\s+income|late\s+fees",
    ),
    label_rule("EFFECTIVE_GROSS_INCOME", r"effective\s+gross\s+income|\bEGI\b|total\s+income"),
    label_rule("REPAIRS_MAINTENANCE", r"repairs?\s*(?:&|and)?\s*maintenance|\bR&M\b|marina\s+svcs"),
    label_rule("UTILITIES", r"utilit(?:y|ies)|\belectric|\bgas\b|\bwater\b|\bsewer\b|\bfuel\b"),
    label_rule(
        "PROPERTY_MANAGEMENT",
        r"(?:property\s+)?management\s+(?:fee|expense)|\bmanagement\b",
    ),
    label_rule("REAL_ESTATE_TAXES", r"real\s+estate\s+tax|property\s+tax|\bRE\s+tax"),
    label_rule("INSURANCE", r"\binsurance\b(?!\s+(?:income|value))"),
    label_rule(
        "PAYROLL",
        r"payroll(?:\s+(?:&|and)\s+labor)?|salaries|\bwages\b|employee\s+(?:cost|expense)",
    ),
    label_rule("MARKETING", r"marketing(?:\s+(?:&|and)\s+advertising)?|advertising"),
    label_rule("PROFESSIONAL_FEES", r"professional\s+fees?|\blegal\b|accounting|\baudit\b"),
    label_rule(
        "OTHER_OPEX",
        r"other\s+(?:operating\s+)?expense|general\s+(?:&|and)\s+admin|\bG&A\b|miscellaneous\s+expense",
    ),
    label_rule("DEPRECIATION", r"\bdepreciation\b"),
    label_rule("AMORTIZATION", r"\bamortization\b"),
    label_rule(
        "DEBT_SERVICE",
        r"debt\s+service|mortgage\s+payment|loan\s+payment|interest\s+(?:expense|paid)",
    ),
    label_rule(
        "CAPITAL_EXPENDITURES",
        r"capital\s+(?:expenditure|improvement)|\bcapex\b|\bcap\s+ex\b",
    ),
    label_rule("TOTAL_OPERATING_EXPENSES", r"total\s+(?:operating\s+)?expenses|total\s+opex"),
    label_rule("NET_OPERATING_INCOME", r"net\s+operating\s+income|\bNOI\b"),
    label_rule("NET_INCOME", r"net\s+(?:income|profit|loss)|bottom\s+line"),
]

DOCAI_ENTITY_MAP = {
    "revenue": "TOTAL_REVENUE",
    "total_revenue": "TOTAL_REVENUE",
    "sales": "TOTAL_REVENUE",
    "total_sales": "TOTAL_REVENUE",
    "net_sales": "TOTAL_REVENUE",
    "cost_of_goods_sold": "COST_OF_GOODS_SOLD",
    "cogs": "COST_OF_GOODS_SOLD",
    "cost_of_sales": "COST_OF_GOODS_SOLD",
    "gross_profit": "GROSS_PROFIT",
    "gross_margin": "GROSS_PROFIT",
    "operating_income": "OPERATING_INCOME",
    "income_from_operations": "OPERATING_INCOME",
    "ebitda": "EBITDA",
    "sga": "SELLING_GENERAL_ADMIN",
    "selling_general_admin": "SELLING_GENERAL_ADMIN",
    "gross_income": "GROSS_RENTAL_INCOME",
    "rental_income": "GROSS_RENTAL_INCOME",
    "total_income": "EFFECTIVE_GROSS_INCOME",
    "vacancy": "VACANCY_CONCESSIONS",
    "other_income": "OTHER_INCOME",
    "repairs": "REPAIRS_MAINTENANCE",
    "maintenance": "REPAIRS_MAINTENANCE",
    "utilities": "UTILITIES",
    "management": "PROPERTY_MANAGEMENT",
    "management_fee": "PROPERTY_MANAGEMENT",
    "property_tax": "REAL_ESTATE_TAXES",
    "taxes": "REAL_ESTATE_TAXES",
    "insurance": "INSURANCE",
    "payroll": "PAYROLL",
    "marketing": "MARKETING",
    "professional_fees": "PROFESSIONAL_FEES",
    "other_expenses": "OTHER_OPEX",
    "depreciation": "DEPRECIATION",
    "amortization": "AMORTIZATION",
    "debt_service": "DEBT_SERVICE",
    "interest": "DEBT_SERVICE",
    "capital_expenditures": "CAPITAL_EXPENDITURES",
    "total_expenses": "TOTAL_OPERATING_EXPENSES",
    "operating_expenses": "TOTAL_OPERATING_EXPENSES",
    "net_operating_income": "NET_OPERATING_INCOME",
    "noi": "NET_OPERATING_INCOME",
    "net_income": "NET_INCOME",
    "net_profit": "NET_INCOME",
}

GENERIC_SCAN_CONFIDENCE = 0.45

_MONEY_RE = re.compile(MONEY_TOKEN)
_BRACKET_REF_RE = re.compile(r"\[.*?\]")
_SCHEDULE_REF_RE = re.compile(r"\(Sch\s+\w+\)", re.IGNORECASE)


class IncomeStatementExtractor(DeterministicExtractor):
    """Extract INCOME_STATEMENT facts from T12s and P&Ls."""

    name = "incomeStatement"
    fact_type = FactType.INCOME_STATEMENT
    valid_keys = VALID_LINE_KEYS
    docai_entity_map = DOCAI_ENTITY_MAP
    docai_confidence = 0.7
    label_rules = LABEL_RULES
    regex_confidence = 0.60
    cross_line_confidence = 0.55

    def _from_generic_scan(self, args: ExtractorArgs) -> list[ExtractedLineItem]:
        """Normalize any row carrying an amount through the P&L alias dictionary.

        The label is the text before the amount; when that is under four
        characters the amount sits on its own line and the previous line
        is the label.
        """
        lines = args.ocr_text.split("\n")
        period = self.period(args)
        items = []
        seen: set[str] = set()

        for i, line in enumerate(lines):
            match = _MONEY_RE.search(line)
            if not match:
                continue
            value = parse_money(match.group(0))
            if value is None:
                continue

            label = line[:match.start()].strip()
            if len(label) < 4 and i > 0:
                label = lines[i - 1].strip()
            if not label:
                continue

            cleaned = _SCHEDULE_REF_RE.sub("", _BRACKET_REF_RE.sub("", label)).strip()
            alias = normalize_pl_label(cleaned)
            if alias is None or alias.fact_key not in self.valid_keys or alias.fact_key in seen:
                continue
            seen.add(alias.fact_key)

            items.append(self.make_item(
                args, alias.fact_key, value, GENERIC_SCAN_CONFIDENCE, period,
                f"{cleaned} {match.group(0)}".strip(), ExtractionPath.OCR_GENERIC_SCAN,
            ))
        return items


__all__ = ["IncomeStatementExtractor", "VALID_LINE_KEYS"]
