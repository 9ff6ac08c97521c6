"""Cell value coercion: raw workbook cell → typed Python value."""
import math
import re
from collections.abc import Sequence
from datetime import date, datetime
from typing import Any

from app.imports.errors import CoercionError
from app.imports.schema import FieldDefinition, FieldType


class _Missing:
    """Marks a required field whose cell was empty. Validation reports it."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}
_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%d/%m/%Y", "%Y/%m/%d")


def is_blank(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return raw.strip() == ""
    if isinstance(raw, (list, tuple)):
        return len(raw) == 0
    return False


def coerce(field: FieldDefinition, raw: Any) -> Any:
    """Convert `raw` to the field's declared type.

    Absent optional fields yield the declared default (False for booleans,
    None otherwise); absent required fields yield MISSING. Raises
    CoercionError when a present value cannot be converted.
    """
    if is_blank(raw):
        if field.required:
            return MISSING
        if field.default is not None:
            return field.default
        return False if field.type == FieldType.boolean else None

    if field.type == FieldType.string:
        return _to_string(raw)
    if field.type == FieldType.array:
        return _to_array(raw)
    converter = _CONVERTERS.get(field.type)
    if converter is None:
        raise CoercionError(f"{field.label}: unsupported field type {field.type!r}")
    return converter(field, raw)


# ─── Per-type converters ───

def _to_string(raw: Any) -> str:
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    if isinstance(raw, datetime):
        return raw.date().isoformat() if raw.time() == datetime.min.time() else raw.isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    return str(raw).strip()


def _invalid(field: FieldDefinition, raw: Any) -> CoercionError:
    return CoercionError(f"{field.label}: '{raw}' is not a valid {field.type.value}")


def _to_number(field: FieldDefinition, raw: Any) -> int | float:
    if isinstance(raw, bool):
        raise _invalid(field, raw)
    if isinstance(raw, (int, float)):
        value = raw
    else:
        try:
            value = float(str(raw).strip().replace(",", ""))
        except ValueError:
            raise _invalid(field, raw)
    if not math.isfinite(value):
        raise _invalid(field, raw)
    if isinstance(value, float) and value.is_integer() and not isinstance(raw, float):
        return int(value)
    return value


def _to_boolean(field: FieldDefinition, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise _invalid(field, raw)


def _to_date(field: FieldDefinition, raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            pass
    raise _invalid(field, raw)


def _to_array(raw: Any) -> list:
    if isinstance(raw, Sequence) and not isinstance(raw, str):
        return [v.strip() if isinstance(v, str) else v for v in raw if not is_blank(v)]
    tokens = (t.strip() for t in _to_string(raw).split(","))
    return [t for t in tokens if t]


def _to_uuid(field: FieldDefinition, raw: Any) -> str:
    text = str(raw).strip()
    if not UUID_RE.match(text):
        raise _invalid(field, raw)
    return text.lower()


_CONVERTERS = {
    FieldType.number: _to_number,
    FieldType.boolean: _to_boolean,
    FieldType.date: _to_date,
    FieldType.uuid: _to_uuid,
}
