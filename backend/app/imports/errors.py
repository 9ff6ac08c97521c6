"""Import error types.

Only StructuralImportError escapes the pipeline. RowError and CoercionError are
caught and turned into `Row <n>: <message>` strings on the outcome.
"""


class StructuralImportError(Exception):
    """The workbook as a whole is unusable; no row was processed."""


class RowError(ValueError):
    """A single row failed validation or reference resolution."""


class CoercionError(ValueError):
    """A cell could not be converted to its declared field type."""


def row_message(row_number: int, message: str) -> str:
    return f"Row {row_number}: {message}"
