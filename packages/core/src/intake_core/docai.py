"""Adapter for structured-OCR (Document AI) response payloads.

Normalizes an opaque processDocument() JSON payload into entities, form
fields and tables the extractors can consume. Pure functions: no network,
no LLM, only field lookup and type coercion.

Payload shape:
    document.entities[]           {type, mentionText, normalizedValue, confidence}
    document.pages[].formFields[] {fieldName, fieldValue}
    document.pages[].tables[]     {headerRows, bodyRows}
    document.text                 full text, target of textAnchor references

Keys are accepted in camelCase (REST JSON) or snake_case (protobuf dumps).
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from intake_core.models.documents import DocAiSignals
from intake_core.parsing import parse_money


@dataclass
class DocAiEntity:
    """A normalized Document AI entity."""

    type: str
    mention_text: str = ""
    normalized_value: Optional[dict[str, Any]] = None
    confidence: float = 0.0
    page_refs: list[int] = field(default_factory=list)
    properties: list["DocAiEntity"] = field(default_factory=list)


@dataclass
class DocAiFormField:
    """A key/value pair detected on a page."""

    name: str
    value: str
    confidence: float
    page_index: int


@dataclass
class DocAiTable:
    """A table detected on a page, as rows of cell text."""

    header_rows: list[list[str]]
    body_rows: list[list[str]]
    page_index: int


def _get(obj: Any, camel: str, snake: Optional[str] = None) -> Any:
    """Read a key in camelCase, falling back to snake_case."""
    if not isinstance(obj, dict):
        return None
    value = obj.get(camel)
    if value is None and snake:
        value = obj.get(snake)
    return value


def _to_float(value: Any) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


# =============================================================================
# DOCUMENT ACCESS
# =============================================================================

def get_document(payload: Any) -> Optional[dict[str, Any]]:
    """Navigate to the ``document`` object within a stored payload.

    Accepts the full processDocument response (``[{"document": ...}]``),
    a ``{"document": ...}`` wrapper, or the document itself.
    """
    if isinstance(payload, list):
        first = payload[0] if payload else None
        if isinstance(first, dict) and "document" in first:
            return first["document"]
        return None
    if not isinstance(payload, dict):
        return None
    if isinstance(payload.get("document"), dict):
        return payload["document"]
    if "text" in payload or "pages" in payload or "entities" in payload:
        return payload
    return None


def _layout_text(layout: Any, doc: dict[str, Any]) -> Optional[str]:
    """Resolve text from a layout, field or textAnchor reference."""
    if not layout:
        return None
    if isinstance(layout, str):
        return layout
    if not isinstance(layout, dict):
        return None
    if layout.get("content"):
        return str(layout["content"])
    if layout.get("text"):
        return str(layout["text"])

    anchor = _get(layout, "textAnchor", "text_anchor")
    segments = _get(anchor, "textSegments", "text_segments")
    full_text = doc.get("text")
    if isinstance(segments, list) and isinstance(full_text, str):
        parts = []
        for seg in segments:
            start = int(_get(seg, "startIndex", "start_index") or 0)
            end_raw = _get(seg, "endIndex", "end_index")
            end = int(end_raw) if end_raw is not None else start
            parts.append(full_text[start:end])
        return "".join(parts)
    return None


# =============================================================================
# ENTITIES
# =============================================================================

def _normalize_entity(raw: dict[str, Any]) -> DocAiEntity:
    anchor = _get(raw, "pageAnchor", "page_anchor") or {}
    page_refs = []
    for ref in _get(anchor, "pageRefs", "page_refs") or []:
        if isinstance(ref, dict):
            page_refs.append(int(ref.get("page") or 0))

    props = raw.get("properties")
    return DocAiEntity(
        type=str(raw.get("type") or ""),
        mention_text=str(_get(raw, "mentionText", "mention_text") or ""),
        normalized_value=_get(raw, "normalizedValue", "normalized_value"),
        confidence=_to_float(raw.get("confidence")),
        page_refs=page_refs,
        properties=[_normalize_entity(p) for p in props if isinstance(p, dict)]
        if isinstance(props, list) else [],
    )


def extract_entities(payload: Any) -> list[DocAiEntity]:
    """Extract top-level entities from a payload."""
    doc = get_document(payload)
    if not doc:
        return []
    entities = doc.get("entities")
    if not isinstance(entities, list):
        return []
    return [_normalize_entity(e) for e in entities if isinstance(e, dict)]


def extract_entities_flat(payload: Any) -> list[DocAiEntity]:
    """Extract all entities with nested properties flattened depth-first."""
    flat: list[DocAiEntity] = []

    def walk(entities: list[DocAiEntity]) -> None:
        for entity in entities:
            flat.append(entity)
            if entity.properties:
                walk(entity.properties)

    walk(extract_entities(payload))
    return flat


def find_entity_by_type(entities: list[DocAiEntity], entity_type: str) -> Optional[DocAiEntity]:
    """Find the first entity of a type (case-insensitive)."""
    upper = entity_type.upper()
    return next((e for e in entities if e.type.upper() == upper), None)


def find_entities_by_type(entities: list[DocAiEntity], entity_type: str) -> list[DocAiEntity]:
    """Find all entities of a type (case-insensitive)."""
    upper = entity_type.upper()
    return [e for e in entities if e.type.upper() == upper]


def entity_to_money(entity: DocAiEntity) -> Optional[float]:
    """Read a money value from an entity.

    Prefers the structured moneyValue, then normalizedValue.text, then the
    raw mention text.
    """
    normalized = entity.normalized_value or {}
    money = _get(normalized, "moneyValue", "money_value")
    if isinstance(money, dict):
        units = money.get("units")
        if isinstance(units, str) and units.lstrip("-").isdigit():
            units = int(units)
        if isinstance(units, (int, float)) and not isinstance(units, bool):
            return units + (money.get("nanos") or 0) / 1_000_000_000

    if normalized.get("text"):
        value = parse_money(str(normalized["text"]))
        if value is not None:
            return value

    return parse_money(entity.mention_text or "")


def entity_to_date(entity: DocAiEntity) -> Optional[str]:
    """Read an ISO date from an entity's dateValue, if it has one."""
    normalized = entity.normalized_value or {}
    date_value = _get(normalized, "dateValue", "date_value")
    if isinstance(date_value, dict) and date_value.get("year"):
        month = int(date_value.get("month") or 1)
        day = int(date_value.get("day") or 1)
        return f"{int(date_value['year'])}-{month:02d}-{day:02d}"
    return None


# =============================================================================
# FORM FIELDS AND TABLES
# =============================================================================

def _pages(doc: dict[str, Any]) -> list[Any]:
    pages = doc.get("pages")
    return pages if isinstance(pages, list) else []


def extract_form_fields(payload: Any) -> list[DocAiFormField]:
    """Extract key/value form fields from every page. Nameless fields are dropped."""
    doc = get_document(payload)
    if not doc:
        return []

    fields = []
    for page_idx, page in enumerate(_pages(doc)):
        form_fields = _get(page, "formFields", "form_fields")
        if not isinstance(form_fields, list):
            continue
        for ff in form_fields:
            field_name = _get(ff, "fieldName", "field_name")
            field_value = _get(ff, "fieldValue", "field_value")
            name = _layout_text(field_name, doc)
            if not name or not name.strip():
                continue
            value = _layout_text(field_value, doc)

            confidence = None
            if isinstance(field_name, dict):
                confidence = field_name.get("confidence")
            if confidence is None and isinstance(field_value, dict):
                confidence = field_value.get("confidence")

            fields.append(DocAiFormField(
                name=name.strip(),
                value=(value or "").strip(),
                confidence=_to_float(confidence),
                page_index=page_idx,
            ))
    return fields


def _table_rows(rows: Any, doc: dict[str, Any]) -> list[list[str]]:
    if not isinstance(rows, list):
        return []
    result = []
    for row in rows:
        cells = _get(row, "cells") or _get(row, "tableCells", "table_cells") or []
        if not isinstance(cells, list):
            result.append([])
            continue
        texts = []
        for cell in cells:
            layout = cell.get("layout", cell) if isinstance(cell, dict) else cell
            texts.append((_layout_text(layout, doc) or "").strip())
        result.append(texts)
    return result


def extract_tables(payload: Any) -> list[DocAiTable]:
    """Extract tables from every page. Tables with no rows are dropped."""
    doc = get_document(payload)
    if not doc:
        return []

    tables = []
    for page_idx, page in enumerate(_pages(doc)):
        page_tables = _get(page, "tables")
        if not isinstance(page_tables, list):
            continue
        for table in page_tables:
            header_rows = _table_rows(_get(table, "headerRows", "header_rows"), doc)
            body_rows = _table_rows(_get(table, "bodyRows", "body_rows"), doc)
            if header_rows or body_rows:
                tables.append(DocAiTable(header_rows=header_rows, body_rows=body_rows, page_index=page_idx))
    return tables


# =============================================================================
# CLASSIFICATION SIGNALS
# =============================================================================

def extract_signals(payload: Any, processor: Optional[str] = None) -> Optional[DocAiSignals]:
    """Read the document-level type label a classifier processor reported.

    An explicit ``docTypeLabel``/``docTypeConfidence`` pair on the document
    wins; otherwise the highest-confidence top-level entity is used.

    Returns:
        DocAiSignals, or None when the payload carries no label.
    """
    doc = get_document(payload)
    if not doc:
        return None

    label = _get(doc, "docTypeLabel", "doc_type_label")
    if label:
        return DocAiSignals(
            label=str(label),
            confidence=_to_float(_get(doc, "docTypeConfidence", "doc_type_confidence")),
            processor=processor,
        )

    entities = [e for e in extract_entities(payload) if e.type]
    if not entities:
        return None
    best = max(entities, key=lambda e: e.confidence)
    return DocAiSignals(label=best.type, confidence=best.confidence, processor=processor)


__all__ = [
    "DocAiEntity",
    "DocAiFormField",
    "DocAiTable",
    "entity_to_date",
    "entity_to_money",
    "extract_entities",
    "extract_entities_flat",
    "extract_form_fields",
    "extract_signals",
    "extract_tables",
    "find_entities_by_type",
    "find_entity_by_type",
    "get_document",
]
