"""Text-parsing primitives for financial document extraction.

Pure functions with no I/O: money parsing, label-proximity amount search,
table splitting, date and tax-year detection, and IRS form detection.
"""

import calendar
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

Label = Union[str, re.Pattern]

MONEY_TOKEN = r"\$?\(?-?[0-9][0-9,]*(?:\.[0-9]{1,2})?\)?"

_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")
_PAREN_RE = re.compile(r"^\(([^)]+)\)$")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_ALT = "jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"

MIN_YEAR = 1990
MAX_YEAR = 2100


# =============================================================================
# MONEY
# =============================================================================

def parse_money(raw: Optional[str]) -> Optional[float]:
    """Parse a dollar-amount string into a signed float.

    Handles "$1,234.56", "(1,234.56)" as negative, trailing-minus "1234-",
    and "-$5,000".

    Args:
        raw: The raw token.

    Returns:
        The parsed value, or None when the token is not numeric.
    """
    if not raw or not isinstance(raw, str):
        return None
    cleaned = re.sub(r"\s", "", raw.replace("$", "").replace(",", ""))

    paren = _PAREN_RE.match(cleaned)
    if paren:
        cleaned = f"-{paren.group(1)}"

    if cleaned.endswith("-") and not cleaned.startswith("-"):
        cleaned = f"-{cleaned[:-1]}"

    if not _NUMERIC_RE.match(cleaned):
        return None
    return float(cleaned)


# Well-known IRS form, schedule and line reference numbers.
IRS_REFERENCE_NUMBERS = frozenset({
    1040, 1065, 1120, 1125, 1099, 1098,
    4562, 4797, 8825, 8949, 8829, 8995,
    2106, 2441, 3800, 3903, 4684,
    5884, 6198, 6251, 6252, 6765,
    7203, 8283, 8332, 8396, 8582, 8606, 8801, 8839, 8863, 8880, 8889,
    8910, 8936, 8959, 8960, 8962, 990,
})

_IRS_CONTEXT_RE = re.compile(r"\b(form|schedule|line|omb|irs|attach|see|ref|page)\b", re.IGNORECASE)


def is_likely_reference_number(value: float, context: str) -> bool:
    """True when a value is a known form number and the context reads like a reference."""
    if abs(value) not in IRS_REFERENCE_NUMBERS:
        return False
    return bool(_IRS_CONTEXT_RE.search(context))


def looks_like_money_token(raw: str) -> bool:
    """True when a token carries currency shape: $, commas, parentheses, cents, or 5+ digits."""
    if "$" in raw or "," in raw:
        return True
    if re.search(r"\([\d,.]+\)", raw):
        return True
    if re.search(r"\.\d{1,2}$", raw):
        return True
    return len(re.sub(r"[^0-9]", "", raw)) >= 5


# =============================================================================
# LABELED AMOUNTS
# =============================================================================

@dataclass
class LabeledAmount:
    """A money value found near a label, with the text that produced it."""

    value: Optional[float] = None
    snippet: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.value is not None


def _labeled_amount_regex(label: Label, max_lookahead: int, cross_line: bool) -> re.Pattern:
    if isinstance(label, re.Pattern):
        label_src = label.pattern
        flags = label.flags
    else:
        label_src = re.escape(label)
        flags = re.IGNORECASE
    gap = r"[\s\S]" if cross_line else r"[^\n\r]"
    return re.compile(
        rf"(?:{label_src}){gap}{{0,{max_lookahead}}}?(?P<amount>{MONEY_TOKEN})",
        flags,
    )


def _accept_match(text: str, match: re.Match) -> LabeledAmount:
    raw = match.group("amount")
    value = parse_money(raw)
    if value is None:
        return LabeledAmount()

    # Context window captures "Form 1065" printed just before the label.
    ctx_start = max(0, match.start() - 40)
    ctx_end = min(len(text), match.end() + 40)
    context = text[ctx_start:ctx_end]
    if is_likely_reference_number(value, context) and not looks_like_money_token(raw):
        return LabeledAmount()

    snippet = re.sub(r"\s+", " ", match.group(0)).strip()
    return LabeledAmount(value=value, snippet=snippet)


def find_labeled_amount(
    text: str,
    label: Label,
    *,
    max_lookahead: int = 120,
    cross_line: bool = False,
) -> LabeledAmount:
    """Find the first money amount following a label.

    The amount must appear within ``max_lookahead`` characters of the label.
    Unless ``cross_line`` is set the gap may not contain a line break. A hit
    whose value is a known IRS reference number is rejected unless the token
    itself looks like money.

    Args:
        text: Full document text.
        label: Literal label (matched case-insensitively) or compiled pattern.
        max_lookahead: Maximum characters between label and amount.
        cross_line: Allow the gap to span line breaks.

    Returns:
        LabeledAmount with value and snippet, or an empty LabeledAmount.
    """
    regex = _labeled_amount_regex(label, max_lookahead, cross_line)
    match = regex.search(text or "")
    if not match:
        return LabeledAmount()
    return _accept_match(text, match)


def find_all_labeled_amounts(
    text: str,
    label: Label,
    *,
    max_lookahead: int = 120,
    cross_line: bool = False,
) -> list[LabeledAmount]:
    """Find every accepted labeled amount in text, in document order."""
    regex = _labeled_amount_regex(label, max_lookahead, cross_line)
    results = []
    for match in regex.finditer(text or ""):
        hit = _accept_match(text, match)
        if hit.found:
            results.append(hit)
    return results


# =============================================================================
# TABLES
# =============================================================================

@dataclass
class ParsedTable:
    """A whitespace-delimited table recovered from OCR text."""

    headers: list[str]
    rows: list[list[str]] = field(default_factory=list)


def split_table_row(line: str) -> list[str]:
    """Split a row into cells on tabs or runs of two or more spaces."""
    return [c.strip() for c in re.split(r"\t|\s{2,}", line.strip()) if c.strip()]


def parse_table(text: str, header_pattern: re.Pattern) -> Optional[ParsedTable]:
    """Parse a text table whose header line matches ``header_pattern``.

    Separator lines are skipped, total rows are kept, and the first line with
    fewer than two cells ends the table.
    """
    lines = (text or "").split("\n")
    header_idx = next((i for i, line in enumerate(lines) if header_pattern.search(line)), -1)
    if header_idx < 0:
        return None

    headers = split_table_row(lines[header_idx])
    if len(headers) < 2:
        return None

    rows = []
    for raw_line in lines[header_idx + 1:]:
        line = raw_line.strip()
        if not line:
            continue
        if re.match(r"^[-=]{3,}$", line):
            continue
        if re.match(r"^(total|subtotal|grand\s+total)", line, re.IGNORECASE):
            rows.append(split_table_row(raw_line))
            continue
        cells = split_table_row(raw_line)
        if len(cells) < 2:
            break
        rows.append(cells)

    return ParsedTable(headers=headers, rows=rows)


# =============================================================================
# DATES AND PERIODS
# =============================================================================

def _month_number(name: str) -> Optional[int]:
    return _MONTHS.get(name[:3].lower())


def _month_bounds(year: int, month: int) -> tuple[str, str]:
    last_day = calendar.monthrange(year, month)[1]
    return f"{year}-{month:02d}-01", f"{year}-{month:02d}-{last_day:02d}"


def find_date_on_document(text: str) -> Optional[str]:
    """Extract a prominent document date as an ISO string.

    Looks for "As of", "Date", "Effective" and "Period ending" labels followed
    by an ISO, US or month-name date, then falls back to any ISO date in the
    first 500 characters.
    """
    text = text or ""
    iso = re.search(
        r"(?:as\s+of|date|effective|period\s+end(?:ing)?)[:\s]*(\d{4}-\d{2}-\d{2})",
        text, re.IGNORECASE,
    )
    if iso:
        return iso.group(1)

    us = re.search(
        r"(?:as\s+of|date|effective|period\s+end(?:ing)?)[:\s]*(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})",
        text, re.IGNORECASE,
    )
    if us:
        return f"{us.group(3)}-{us.group(1).zfill(2)}-{us.group(2).zfill(2)}"

    named = re.search(
        rf"(?:as\s+of|date|effective)[:\s]*({_MONTH_ALT})\w*\.?\s+(\d{{1,2}})?,?\s*(\d{{4}})",
        text, re.IGNORECASE,
    )
    if named:
        month = _month_number(named.group(1))
        if month:
            day = named.group(2).zfill(2) if named.group(2) else "01"
            return f"{named.group(3)}-{month:02d}-{day}"

    fallback = re.search(r"\b(\d{4}-\d{2}-\d{2})\b", text[:500])
    if fallback:
        return fallback.group(1)
    return None


_TAX_YEAR_PATTERNS = [
    re.compile(r"tax\s+(?:year|period)[:\s]*(\d{4})", re.IGNORECASE),
    re.compile(r"fiscal\s+year[:\s]*(\d{4})", re.IGNORECASE),
    re.compile(
        r"for\s+(?:the\s+)?(?:tax\s+)?year\s+(?:ended?\s+)?(?:\w+\s+\d{1,2},?\s+)?(\d{4})",
        re.IGNORECASE,
    ),
    re.compile(r"form\s+\d{3,4}\w?\s.*?(\d{4})", re.IGNORECASE),
    re.compile(r"calendar\s+year\s+(\d{4})", re.IGNORECASE),
    re.compile(r"(?:fy|FY)\s*(\d{4})"),
]


def extract_tax_year(text: str) -> Optional[int]:
    """Extract a four-digit tax year (1990-2100) from labeled text."""
    for pattern in _TAX_YEAR_PATTERNS:
        match = pattern.search(text or "")
        if match:
            year = int(match.group(1))
            if MIN_YEAR <= year <= MAX_YEAR:
                return year
    return None


def _valid_year(year: Optional[int]) -> bool:
    return bool(year) and MIN_YEAR <= year <= MAX_YEAR


def resolve_doc_date(text: str, doc_year: Optional[int] = None) -> Optional[str]:
    """Resolve a period string from text, falling back to the stored document year.

    Returns an ISO date, a bare "YYYY" (which normalize_period reads as the
    full year), or None.
    """
    found = find_date_on_document(text)
    if found:
        return found
    if _valid_year(doc_year):
        return str(doc_year)
    return None


def resolve_doc_tax_year(text: str, doc_year: Optional[int] = None) -> Optional[int]:
    """Resolve a tax year from text, falling back to the stored document year."""
    found = extract_tax_year(text)
    if found:
        return found
    if _valid_year(doc_year):
        return doc_year
    return None


@dataclass
class PeriodHeader:
    """A column header resolved to a concrete period, when it names one."""

    label: str
    start: Optional[str] = None
    end: Optional[str] = None


def _period_for_label(label: str) -> tuple[Optional[str], Optional[str]]:
    month_year = re.match(rf"^({_MONTH_ALT})\w*\.?\s+(\d{{4}})$", label, re.IGNORECASE)
    if month_year:
        month = _month_number(month_year.group(1))
        if month:
            return _month_bounds(int(month_year.group(2)), month)

    ym = re.match(r"^(\d{4})-(\d{2})$", label)
    if ym and 1 <= int(ym.group(2)) <= 12:
        return _month_bounds(int(ym.group(1)), int(ym.group(2)))

    quarter = re.match(r"^Q(\d)\s+(\d{4})$", label, re.IGNORECASE)
    if quarter:
        q, year = int(quarter.group(1)), int(quarter.group(2))
        if 1 <= q <= 4:
            start, _ = _month_bounds(year, (q - 1) * 3 + 1)
            _, end = _month_bounds(year, q * 3)
            return start, end

    fy = re.match(r"^(?:FY\s*)?(\d{4})$", label, re.IGNORECASE)
    if fy:
        year = int(fy.group(1))
        return f"{year}-01-01", f"{year}-12-31"

    # TTM, YTD, PY_YTD, Annual and Total are aggregates with no concrete dates.
    return None, None


def extract_period_from_headers(headers: list[str]) -> list[PeriodHeader]:
    """Resolve column headers such as "Jan 2024", "Q3 2024" or "FY2023" to periods."""
    result = []
    for header in headers:
        label = header.strip()
        start, end = _period_for_label(label)
        result.append(PeriodHeader(label=label, start=start, end=end))
    return result


def normalize_period(raw: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """Parse a period string into an ISO (start, end) pair.

    Handles "2023-01-01 to 2023-12-31", "2024-03-15", "2024-01", "Jan 2024",
    "Q3 2024", "FY2023" and "2023". Aggregate labels (TTM, YTD) and anything
    unrecognized give (None, None).

    Example:
        >>> normalize_period("Q1 2024")
        ('2024-01-01', '2024-03-31')
    """
    if not raw:
        return None, None
    s = str(raw).strip()

    range_match = re.match(r"^(\d{4}-\d{2}-\d{2})\s*(?:to|-)\s*(\d{4}-\d{2}-\d{2})$", s, re.IGNORECASE)
    if range_match:
        return range_match.group(1), range_match.group(2)

    if re.match(r"^\d{4}-\d{2}-\d{2}$", s):
        return s, s

    return _period_for_label(s)


# =============================================================================
# IRS FORM DETECTION
# =============================================================================

class IrsFormType(str, Enum):
    """IRS return families recognized in document text."""

    FORM_1040 = "1040"
    FORM_1120 = "1120"
    FORM_1120S = "1120S"
    FORM_1065 = "1065"
    SCHEDULE_C = "SCHEDULE_C"
    SCHEDULE_E = "SCHEDULE_E"
    K1 = "K1"
    UNKNOWN = "UNKNOWN"


def detect_irs_form_type(text: str) -> IrsFormType:
    """Detect which IRS form a document is, from its first 2000 characters."""
    upper = (text or "")[:2000].upper()

    if re.search(r"FORM\s+1120[\s-]?S", upper):
        return IrsFormType.FORM_1120S
    if re.search(r"FORM\s+1120\b", upper) and not re.search(r"1120[\s-]?S", upper):
        return IrsFormType.FORM_1120
    if re.search(r"FORM\s+1065\b", upper):
        return IrsFormType.FORM_1065
    if re.search(r"SCHEDULE\s+K[\s-]?1\b", upper):
        return IrsFormType.K1
    if re.search(r"SCHEDULE\s+C\b", upper):
        return IrsFormType.SCHEDULE_C
    if re.search(r"SCHEDULE\s+E\b", upper):
        return IrsFormType.SCHEDULE_E
    if re.search(r"FORM\s+1040\b", upper):
        return IrsFormType.FORM_1040

    head = upper[:500]
    if re.search(r"\b1120[\s-]?S\b", head):
        return IrsFormType.FORM_1120S
    if re.search(r"\b1120\b", head):
        return IrsFormType.FORM_1120
    if re.search(r"\b1065\b", head):
        return IrsFormType.FORM_1065
    if re.search(r"\b1040\b", head):
        return IrsFormType.FORM_1040

    return IrsFormType.UNKNOWN


__all__ = [
    "IRS_REFERENCE_NUMBERS",
    "MONEY_TOKEN",
    "IrsFormType",
    "LabeledAmount",
    "ParsedTable",
    "PeriodHeader",
    "detect_irs_form_type",
    "extract_period_from_headers",
    "extract_tax_year",
    "find_all_labeled_amounts",
    "find_date_on_document",
    "find_labeled_amount",
    "is_likely_reference_number",
    "looks_like_money_token",
    "normalize_period",
    "parse_money",
    "parse_table",
    "resolve_doc_date",
    "resolve_doc_tax_year",
    "split_table_row",
]
