"""Workbook parsing: header detection, column mapping, row extraction.

Reads the first worksheet of an .xlsx file with openpyxl in read-only,
data-only mode (formula cells yield their cached display values). Problems
with the file as a whole raise StructuralImportError; problems with a single
cell are recorded on that row's RawRow and handled by validation.
"""
import io
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

import openpyxl

from app.core.config import settings
from app.imports.coercion import coerce, is_blank
from app.imports.errors import CoercionError, StructuralImportError
from app.imports.schema import EntityImportConfig
from app.imports.template import instruction_text

logger = logging.getLogger(__name__)

_PLAIN_TYPES = (str, bool, int, float, date, datetime, time)


@dataclass
class RawRow:
    row_number: int  # 1-based sheet row
    values: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


@dataclass
class ParsedSheet:
    header_row: int
    columns: dict[str, int]  # field name → 0-based column index
    rows: list[RawRow]


# ─── Cell extraction ───

def cell_value(raw: Any) -> Any:
    """Return the displayable value of a cell.

    Plain values pass through. Structured values (rich text, hyperlinks,
    anything exposing `.text`) collapse to their rendered string. A value that
    cannot be rendered at all is treated as an empty cell.
    """
    if raw is None or isinstance(raw, _PLAIN_TYPES):
        return raw
    try:
        text = getattr(raw, "text", None)
        if isinstance(text, str):
            return text
        return str(raw)
    except Exception as exc:
        logger.warning("Unreadable cell of type %s treated as empty: %s", type(raw).__name__, exc)
        return None


def _cell_text(raw: Any) -> str:
    value = cell_value(raw)
    if value is None:
        return ""
    return str(value).strip()


# ─── Loading ───

def _load_rows(content: bytes) -> list[tuple]:
    try:
        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise StructuralImportError(f"Unable to read workbook: {exc}") from exc
    try:
        if not wb.worksheets:
            raise StructuralImportError("Workbook contains no worksheets")
        ws = wb.worksheets[0]
        # the stored <dimension> can be stale; scan the whole sheet
        ws.reset_dimensions()
        return [tuple(r) for r in ws.iter_rows(min_row=1, values_only=True)]
    finally:
        wb.close()


# ─── Header detection ───

def _map_columns(values: tuple, config: EntityImportConfig) -> dict[str, int]:
    columns: dict[str, int] = {}
    for idx, raw in enumerate(values):
        text = _cell_text(raw)
        if not text:
            continue
        for f in config.fields:
            if f.name not in columns and f.matches_header(text):
                columns[f.name] = idx
                break
    return columns


def find_header(rows: list[tuple], config: EntityImportConfig, scan_rows: int) -> tuple[int, dict[str, int]]:
    """Return (0-based row index, column map) of the header row.

    The first row within the scan window that names every declared field and
    has at least as many populated cells as fields wins. Otherwise the row
    naming the most fields is used so the caller can report what is missing.
    """
    n_fields = len(config.fields)
    best: tuple[int, dict[str, int]] | None = None
    for idx, values in enumerate(rows[:scan_rows]):
        columns = _map_columns(values, config)
        if not columns:
            continue
        populated = sum(1 for v in values if _cell_text(v))
        if len(columns) == n_fields and populated >= n_fields:
            return idx, columns
        if best is None or len(columns) > len(best[1]):
            best = (idx, columns)
    if best is None:
        raise StructuralImportError(
            f"No header row found in the first {scan_rows} rows. "
            f"Expected columns: {', '.join(f.label for f in config.fields)}"
        )
    return best


# ─── Row extraction ───

def _is_instruction_row(cells: dict[str, Any], config: EntityImportConfig) -> bool:
    populated = {name: _cell_text(v) for name, v in cells.items() if _cell_text(v)}
    if not populated:
        return False
    return all(
        text.lower() == instruction_text(config.field(name)).lower()
        for name, text in populated.items()
    )


def _extract_row(row_number: int, cells: dict[str, Any], config: EntityImportConfig) -> RawRow:
    row = RawRow(row_number=row_number)
    for name, raw in cells.items():
        f = config.field(name)
        try:
            row.values[name] = coerce(f, raw)
        except CoercionError as exc:
            row.values[name] = None
            row.errors.append(str(exc))
    return row


def parse_workbook(
    content: bytes,
    config: EntityImportConfig,
    scan_rows: int | None = None,
) -> ParsedSheet:
    """Parse the first worksheet into RawRows keyed by field name."""
    rows = _load_rows(content)
    scan_rows = scan_rows or settings.IMPORT_HEADER_SCAN_ROWS
    header_idx, columns = find_header(rows, config, scan_rows)

    missing = [f.label for f in config.required_fields if f.name not in columns]
    if missing:
        raise StructuralImportError(f"Missing required columns: {', '.join(missing)}")

    parsed: list[RawRow] = []
    for offset, values in enumerate(rows[header_idx + 1:], start=header_idx + 2):
        cells = {
            name: cell_value(values[idx]) if idx < len(values) else None
            for name, idx in columns.items()
        }
        if all(is_blank(v) for v in cells.values()):
            continue
        if _is_instruction_row(cells, config):
            continue
        parsed.append(_extract_row(offset, cells, config))

    logger.info(
        "Parsed %s workbook: header on row %d, %d mapped columns, %d data rows",
        config.entity_type, header_idx + 1, len(columns), len(parsed),
    )
    return ParsedSheet(header_row=header_idx + 1, columns=columns, rows=parsed)
