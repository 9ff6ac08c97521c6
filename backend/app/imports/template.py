"""Sample template and export workbooks, generated from an EntityImportConfig."""
import io
from datetime import date, datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.comments import Comment
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from app.imports.schema import EntityImportConfig, FieldDefinition, FieldType

_REQUIRED_FILL = PatternFill(start_color="FFFFD700", end_color="FFFFD700", fill_type="solid")  # gold
_OPTIONAL_FILL = PatternFill(start_color="FFE6E6FA", end_color="FFE6E6FA", fill_type="solid")  # lavender
_NOTE_FILL = PatternFill(start_color="FFF0F0F0", end_color="FFF0F0F0", fill_type="solid")

_TYPE_NAMES = {
    FieldType.string: "text",
    FieldType.number: "number",
    FieldType.boolean: "true/false",
    FieldType.date: "date YYYY-MM-DD",
    FieldType.array: "comma-separated list",
    FieldType.uuid: "UUID",
}

_DEFAULT_EXAMPLES = {
    FieldType.number: "0",
    FieldType.boolean: "false",
    FieldType.date: "2024-01-01",
    FieldType.array: "Item1, Item2",
    FieldType.uuid: "00000000-0000-0000-0000-000000000000",
}


def header_label(field: FieldDefinition) -> str:
    return f"{field.label}*" if field.required else field.label


def instruction_text(field: FieldDefinition) -> str:
    """Text of the instructions row cell; the parser recognises and skips it."""
    text = f"{'Required' if field.required else 'Optional'} · {_TYPE_NAMES[field.type]}"
    if field.choices:
        text += f" ({' | '.join(field.choices)})"
    return text


def example_value(field: FieldDefinition) -> str:
    if field.example is not None:
        return field.example
    if field.choices:
        return field.choices[0]
    return _DEFAULT_EXAMPLES.get(field.type, f"Sample {field.label}")


def _autosize(ws, fields: tuple[FieldDefinition, ...]) -> None:
    for idx, f in enumerate(fields, start=1):
        width = max(len(header_label(f)), len(instruction_text(f)), 15)
        ws.column_dimensions[get_column_letter(idx)].width = width + 2


def _to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


# ─── Sample template ───

def generate_sample(config: EntityImportConfig, reference_lists: dict[str, list[str]] | None = None) -> bytes:
    """Blank import workbook: header, instructions, example row, reference sheets.

    `reference_lists` maps each configured reference sheet title to the names
    currently valid for the tenant. Sheets without an entry are still created,
    with only their header.
    """
    reference_lists = reference_lists or {}
    wb = Workbook()
    ws = wb.active
    ws.title = f"{config.entity_type.title()} Import"[:31]

    ws.append([header_label(f) for f in config.fields])
    for idx, f in enumerate(config.fields, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.fill = _REQUIRED_FILL if f.required else _OPTIONAL_FILL
        note = f.description or f.label
        cell.comment = Comment(f"{note} ({'Required' if f.required else 'Optional'} field)", "import")

    ws.append([instruction_text(f) for f in config.fields])
    for idx in range(1, len(config.fields) + 1):
        cell = ws.cell(row=2, column=idx)
        cell.font = Font(italic=True, size=10)
        cell.fill = _NOTE_FILL
        cell.alignment = Alignment(wrap_text=True)

    ws.append([example_value(f) for f in config.fields])
    ws.freeze_panes = "A2"
    _autosize(ws, config.fields)

    for sheet in config.reference_sheets:
        ref_ws = wb.create_sheet(title=sheet.title[:31])
        ref_ws.append(["Name"])
        ref_ws.cell(row=1, column=1).font = Font(bold=True)
        for name in reference_lists.get(sheet.title, []):
            ref_ws.append([name])
        ref_ws.column_dimensions["A"].width = 40

    return _to_bytes(wb)


# ─── Export ───

def _export_cell(field: FieldDefinition, value: Any) -> Any:
    if value is None:
        return ""
    if field.type == FieldType.boolean:
        return "true" if value else "false"
    if field.type == FieldType.array:
        return ", ".join(str(v) for v in value) if isinstance(value, (list, tuple)) else str(value)
    if field.type == FieldType.date and isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    if field.type == FieldType.number:
        return float(value) if not isinstance(value, int) else value
    return str(value)


def generate_export(config: EntityImportConfig, records: list[dict[str, Any]]) -> bytes:
    """Workbook of existing records laid out so it can be edited and re-imported."""
    wb = Workbook()
    ws = wb.active
    ws.title = f"{config.entity_type.title()} Export"[:31]

    ws.append([header_label(f) for f in config.fields])
    for idx, f in enumerate(config.fields, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = Font(bold=True)
        cell.fill = _OPTIONAL_FILL

    for record in records:
        ws.append([_export_cell(f, record.get(f.name)) for f in config.fields])

    _autosize(ws, config.fields)
    return _to_bytes(wb)
