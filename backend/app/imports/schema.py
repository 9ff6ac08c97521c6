"""Declarative import schema: fields, references, associations, reference sheets.

An EntityImportConfig is static per entity type and owned by the domain module
that registers it (see app/imports/entities). Parser, validator, executor and
template generator are all driven by it.
"""
import enum
import uuid
from dataclasses import dataclass
from typing import Any


class FieldType(str, enum.Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    date = "date"
    array = "array"
    uuid = "uuid"


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    label: str
    required: bool = False
    type: FieldType = FieldType.string
    description: str = ""
    example: str | None = None
    choices: tuple[str, ...] = ()
    default: Any = None

    def matches_header(self, header: str) -> bool:
        h = header.strip().rstrip("*").strip().lower()
        return h in (self.name.lower(), self.label.lower())


@dataclass(frozen=True)
class ReferenceSource:
    """A name→id lookup table, e.g. roles or branches."""
    name: str
    model: Any
    tenant_scoped: bool = True
    alias_column: str | None = None


@dataclass(frozen=True)
class ReferenceField:
    """Resolves the names in `field` to ids stored under `target`."""
    field: str
    target: str
    source: ReferenceSource
    noun: str


@dataclass(frozen=True)
class Association:
    """Many-to-many join table fed by an id-array in the resolved record."""
    model: Any
    field: str
    parent_column: str
    child_column: str
    stamp_actor_column: str | None = None

    def rows(self, parent_id: uuid.UUID, child_ids: list[uuid.UUID], actor_id: uuid.UUID | None) -> list[dict]:
        out = []
        for child_id in child_ids:
            row = {self.parent_column: parent_id, self.child_column: child_id}
            if self.stamp_actor_column:
                row[self.stamp_actor_column] = actor_id
            out.append(row)
        return out


@dataclass(frozen=True)
class ReferenceSheet:
    title: str
    source: ReferenceSource


@dataclass(frozen=True)
class EntityImportConfig:
    entity_type: str
    fields: tuple[FieldDefinition, ...]
    natural_key: str
    translate_fields: tuple[str, ...] = ()
    references: tuple[ReferenceField, ...] = ()
    reference_sheets: tuple[ReferenceSheet, ...] = ()

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"{self.entity_type}: duplicate field names {dupes}")
        unknown = [n for n in (*self.translate_fields, self.natural_key) if n not in names]
        unknown += [r.field for r in self.references if r.field not in names]
        if unknown:
            raise ValueError(f"{self.entity_type}: undeclared fields {unknown}")
        if not self.field(self.natural_key).required:
            raise ValueError(f"{self.entity_type}: natural key '{self.natural_key}' must be a required field")

    @property
    def required_fields(self) -> list[FieldDefinition]:
        return [f for f in self.fields if f.required]

    def field(self, name: str) -> FieldDefinition:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)

    def reference_sources(self) -> list[ReferenceSource]:
        """Distinct sources needed to resolve references and render reference sheets."""
        seen: dict[str, ReferenceSource] = {}
        for ref in self.references:
            seen.setdefault(ref.source.name, ref.source)
        return list(seen.values())
