"""Rent roll extractor.

Rent rolls produce unit rows rather than line-item facts. The structured
OCR tables are tried first; otherwise the OCR text table whose header names
a unit column is parsed. Writing a rent roll replaces every row previously
written for the same document.
"""

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog

from intake_core.docai import DocAiTable, extract_tables
from intake_core.exceptions import PersistenceError
from intake_core.extractors.base import DeterministicExtractor, ExtractionOutcome, ExtractorArgs
from intake_core.models.facts import (
    ExtractionPath,
    ExtractionResult,
    OccupancyStatus,
    RentRollRow,
    StoredRentRollRow,
)
from intake_core.parsing import find_date_on_document, parse_money, parse_table

if TYPE_CHECKING:
    from intake_core.store import IntakeStore

logger = structlog.get_logger()

HEADER_PATTERN = re.compile(
    r"\b(unit|suite|apt|space)\b.*\b(tenant|name|lessee|occupant|rent|rate|status)\b",
    re.IGNORECASE,
)

MIN_HEADER_SCORE = 2

# Footer rows such as "Total" or "Grand Total" are summaries, not units.
SUMMARY_ROW_PATTERN = re.compile(r"^(total|subtotal|sub-total|grand\s+total)s?\b", re.IGNORECASE)

# Header text to row field. Exact matches win; otherwise the first partial
# match claims a field and later ones do not overwrite it.
HEADER_MAP = {
    "unit": "unit_id",
    "unit #": "unit_id",
    "unit id": "unit_id",
    "unit no": "unit_id",
    "suite": "unit_id",
    "apt": "unit_id",
    "space": "unit_id",
    "tenant": "tenant_name",
    "tenant name": "tenant_name",
    "lessee": "tenant_name",
    "name": "tenant_name",
    "occupant": "tenant_name",
    "type": "unit_type",
    "unit type": "unit_type",
    "config": "unit_type",
    "sqft": "sqft",
    "sq ft": "sqft",
    "square feet": "sqft",
    "sf": "sqft",
    "monthly rent": "monthly_rent",
    "rent/mo": "monthly_rent",
    "mo rent": "monthly_rent",
    "rent": "monthly_rent",
    "annual rent": "annual_rent",
    "rent/yr": "annual_rent",
    "yr rent": "annual_rent",
    "annual": "annual_rent",
    "market rent": "market_rent_monthly",
    "market": "market_rent_monthly",
    "lease start": "lease_start",
    "start date": "lease_start",
    "move in": "lease_start",
    "lease end": "lease_end",
    "end date": "lease_end",
    "move out": "lease_end",
    "expiration": "lease_end",
    "status": "occupancy_status",
    "notes": "notes",
    "concessions": "concessions_monthly",
}


def score_rent_roll_headers(headers: list[str]) -> int:
    """Score how much a header row looks like a rent roll."""
    joined = " ".join(headers).lower()
    score = 0
    if re.search(r"unit|suite|apt|space", joined):
        score += 2
    if re.search(r"tenant|name|occupant", joined):
        score += 1
    if re.search(r"rent|rate|amount", joined):
        score += 1
    if re.search(r"status|occup", joined):
        score += 1
    return score


def map_headers_to_fields(headers: list[str]) -> dict[str, int]:
    """Map row field names to column indexes."""
    columns: dict[str, int] = {}
    for idx, header in enumerate(headers):
        h = header.lower().strip()
        if h in HEADER_MAP:
            columns[HEADER_MAP[h]] = idx
            continue
        for label, field_name in HEADER_MAP.items():
            if label in h and field_name not in columns:
                columns[field_name] = idx
    return columns


def normalize_lease_date(raw: Optional[str]) -> Optional[str]:
    """Normalize ISO, M/D/YYYY and M/D/YY dates; two-digit years above 50 are 19xx."""
    if not raw:
        return None
    if re.match(r"^\d{4}-\d{2}-\d{2}$", raw):
        return raw

    us = re.match(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$", raw)
    if us:
        return f"{us.group(3)}-{us.group(1).zfill(2)}-{us.group(2).zfill(2)}"

    short = re.match(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})$", raw)
    if short:
        yy = int(short.group(3))
        year = yy + (1900 if yy > 50 else 2000)
        return f"{year}-{short.group(1).zfill(2)}-{short.group(2).zfill(2)}"
    return None


def _to_number(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return None


def parse_rent_roll_row(cells: list[str], columns: dict[str, int]) -> Optional[RentRollRow]:
    """Build a row from table cells.

    Rows without a unit id, and total or subtotal rows, are dropped.
    """

    def get(field_name: str) -> Optional[str]:
        idx = columns.get(field_name)
        if idx is None or idx >= len(cells):
            return None
        value = (cells[idx] or "").strip()
        return value or None

    def money(field_name: str) -> Optional[float]:
        raw = get(field_name)
        return parse_money(raw) if raw else None

    unit_id = get("unit_id")
    if not unit_id or SUMMARY_ROW_PATTERN.match(unit_id):
        return None

    tenant_name = get("tenant_name")
    status_raw = (get("occupancy_status") or "").upper()
    vacant = status_raw in ("VACANT", "V") or (not tenant_name and status_raw != "OCCUPIED")

    return RentRollRow(
        unit_id=unit_id,
        tenant_name=tenant_name,
        occupancy_status=OccupancyStatus.VACANT if vacant else OccupancyStatus.OCCUPIED,
        unit_type=get("unit_type"),
        sqft=_to_number(get("sqft")),
        monthly_rent=money("monthly_rent"),
        annual_rent=money("annual_rent"),
        market_rent_monthly=money("market_rent_monthly"),
        lease_start=normalize_lease_date(get("lease_start")),
        lease_end=normalize_lease_date(get("lease_end")),
        concessions_monthly=money("concessions_monthly"),
        notes=get("notes"),
    )


class RentRollExtractor(DeterministicExtractor):
    """Extract unit rows from rent rolls."""

    name = "rentRoll"

    def extract(self, args: ExtractorArgs) -> ExtractionOutcome:
        if not args.has_text and not args.docai_payload:
            return ExtractionOutcome(path=ExtractionPath.OCR_REGEX)

        as_of_date = find_date_on_document(args.ocr_text) or datetime.now(timezone.utc).date().isoformat()

        if args.docai_payload:
            rows = self._rows_from_docai_tables(args)
            if rows:
                return ExtractionOutcome(
                    path=ExtractionPath.DOCAI_STRUCTURED, rows=rows, as_of_date=as_of_date,
                )

        rows = self._rows_from_ocr_table(args)
        return ExtractionOutcome(path=ExtractionPath.OCR_REGEX, rows=rows, as_of_date=as_of_date)

    def run(self, args: ExtractorArgs, store: "IntakeStore") -> ExtractionResult:
        outcome = self.extract(args)
        if not outcome.rows:
            return ExtractionResult(ok=True, facts_written=0, extraction_path=outcome.path)

        stored = [
            StoredRentRollRow(
                **row.model_dump(),
                deal_id=args.deal_id,
                bank_id=args.bank_id,
                document_id=args.document_id,
                as_of_date=outcome.as_of_date,
            )
            for row in outcome.rows
        ]
        try:
            written = store.replace_rent_roll_rows(args.document_id, stored)
        except PersistenceError as e:
            logger.warning("rent_roll_write_failed", document_id=args.document_id, error=str(e))
            return ExtractionResult(ok=False, extraction_path=outcome.path, error=str(e))

        logger.info(
            "rent_roll_rows_written",
            document_id=args.document_id,
            rows=written,
            extraction_path=outcome.path.value,
        )
        return ExtractionResult(ok=True, facts_written=written, extraction_path=outcome.path)

    def _rows_from_docai_tables(self, args: ExtractorArgs) -> list[RentRollRow]:
        best: Optional[DocAiTable] = None
        best_score = 0
        for table in extract_tables(args.docai_payload):
            headers = table.header_rows[0] if table.header_rows else []
            score = score_rent_roll_headers(headers)
            if score > best_score:
                best, best_score = table, score

        if best is None or best_score < MIN_HEADER_SCORE:
            return []

        columns = map_headers_to_fields(best.header_rows[0])
        rows = (parse_rent_roll_row(cells, columns) for cells in best.body_rows)
        return [row for row in rows if row is not None]

    def _rows_from_ocr_table(self, args: ExtractorArgs) -> list[RentRollRow]:
        table = parse_table(args.ocr_text, HEADER_PATTERN)
        if table is None or len(table.headers) < 2:
            return []
        columns = map_headers_to_fields(table.headers)
        if "unit_id" not in columns:
            return []
        rows = (parse_rent_roll_row(cells, columns) for cells in table.rows)
        return [row for row in rows if row is not None]


__all__ = [
    "RentRollExtractor",
    "map_headers_to_fields",
    "normalize_lease_date",
    "parse_rent_roll_row",
    "score_rent_roll_headers",
]
