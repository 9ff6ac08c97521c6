"""Pydantic schemas for bulk import endpoints."""
from pydantic import BaseModel


class ImportOutcome(BaseModel):
    success: int
    failed: int
    errors: list[str] = []


class ImportFieldOut(BaseModel):
    name: str
    label: str
    required: bool
    type: str
    description: str = ""
    example: str | None = None
    choices: list[str] = []
    translate: bool = False


class EntityImportConfigOut(BaseModel):
    entity_type: str
    natural_key: str
    fields: list[ImportFieldOut]
    reference_sheets: list[str] = []
