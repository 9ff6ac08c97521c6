"""Row validation and normalization.

Turns RawRows into ImportIntents ready for persistence, or into row-tagged
error strings. Nothing here touches the database: all lookups go through the
pre-built ReferenceCatalog.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from app.imports.coercion import MISSING, is_blank
from app.imports.errors import RowError, row_message
from app.imports.references import ReferenceCatalog, normalize_key
from app.imports.schema import FieldType

if TYPE_CHECKING:
    from app.imports.entities.base import ImportHandler
    from app.imports.workbook import RawRow

logger = logging.getLogger(__name__)


@dataclass
class ImportIntent:
    row_number: int
    is_update: bool
    natural_key: str
    resolved_fields: dict[str, Any]
    target_id: uuid.UUID | None = None


@dataclass
class ValidationResult:
    intents: list[ImportIntent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def validate_row(row: "RawRow", handler: "ImportHandler", catalog: ReferenceCatalog) -> ImportIntent:
    """Validate one row. Raises RowError with a user-facing message on the first failure."""
    config = handler.config

    if row.errors:
        raise RowError("; ".join(row.errors))

    for f in config.required_fields:
        value = row.values.get(f.name, MISSING)
        if value is MISSING or is_blank(value):
            raise RowError(f"{f.label} is required")

    resolved = {name: value for name, value in row.values.items() if value is not MISSING}

    for f in config.fields:
        if not f.choices or f.name not in resolved or is_blank(resolved[f.name]):
            continue
        canonical = str(resolved[f.name]).strip().lower()
        if canonical not in f.choices:
            raise RowError(
                f"Invalid {f.label} '{resolved[f.name]}'. Must be one of: {', '.join(f.choices)}"
            )
        resolved[f.name] = canonical

    key = normalize_key(resolved[config.natural_key])
    target_id = catalog.existing_id(key)
    handler.check_row(resolved, is_update=target_id is not None)

    for ref in config.references:
        if ref.field not in resolved:
            continue  # column not in the file; leave the existing value alone
        many = config.field(ref.field).type == FieldType.array
        value = resolved[ref.field]
        if value is None or is_blank(value):
            resolved[ref.target] = [] if many else None
            continue
        names = value if isinstance(value, list) else [value]
        ids, missing = catalog.resolve(ref.source.name, names)
        if missing:
            raise RowError(f"{ref.noun} not found: {', '.join(missing)}")
        resolved[ref.target] = ids if many else ids[0]

    return ImportIntent(
        row_number=row.row_number,
        is_update=target_id is not None,
        natural_key=key,
        resolved_fields=resolved,
        target_id=target_id,
    )


def validate_rows(rows: list["RawRow"], handler: "ImportHandler", catalog: ReferenceCatalog) -> ValidationResult:
    """Validate every row; a later row repeating a natural key is rejected."""
    result = ValidationResult()
    key_label = handler.config.field(handler.config.natural_key).label
    first_seen: dict[str, int] = {}

    for row in rows:
        try:
            intent = validate_row(row, handler, catalog)
            if intent.natural_key in first_seen:
                raise RowError(
                    f"Duplicate {key_label} '{row.values.get(handler.config.natural_key)}' "
                    f"(first seen on row {first_seen[intent.natural_key]})"
                )
        except RowError as exc:
            result.errors.append(row_message(row.row_number, str(exc)))
            continue
        first_seen[intent.natural_key] = row.row_number
        result.intents.append(intent)

    logger.info(
        "Validated %d %s rows: %d valid (%d updates), %d rejected",
        len(rows), handler.config.entity_type, len(result.intents),
        sum(1 for i in result.intents if i.is_update), len(result.errors),
    )
    return result
