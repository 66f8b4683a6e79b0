"""Exceptions raised while mapping models to and from xlsx sheets."""

from typing import Any


class XLSXError(Exception):
    """Generic error of the mapping layer.

    Unexpected lower-level errors are wrapped into this class at the public
    API boundary; all other errors of this module derive from it.
    """


class InvalidSchemaError(XLSXError):
    """Raised when the annotations of a model cannot be turned into a column plan."""


class DuplicateSheetError(XLSXError):
    """Raised when the target workbook already has a sheet with the same name."""

    def __init__(self, sheet_name: str):
        self.sheet_name = sheet_name
        super().__init__(f"Sheet '{sheet_name}' already exists in workbook.")


class MissingLocalizerError(XLSXError):
    """Raised when translated columns are exported without a localizer."""

    def __init__(self, field_names: list[str]):
        self.field_names = field_names
        super().__init__(
            f"Field(s) {', '.join(repr(n) for n in field_names)} are marked for "
            "translation but no localizer was defined in export settings."
        )


class SheetNotFoundError(XLSXError):
    """Raised when a sheet index does not exist in the workbook."""

    def __init__(self, index: int, message: str | None = None):
        self.index = index
        super().__init__(message or f"Sheet with index {index} does not exist.")


class CellReadError(XLSXError):
    """Raised when a single cell cannot be read or converted."""

    def __init__(
        self, row: int, col: int, field_key: str | None = None, message: str = ""
    ):
        self.row = row
        self.col = col
        self.field_key = field_key
        location = f"row {row}, column {col}"
        if field_key:
            location += f" (field '{field_key}')"
        super().__init__(f"Cannot import value at {location}: {message}")


class ConversionError(XLSXError, ValueError):
    """Raised when a value cannot be converted to or from its cell representation."""


class XLSXSerializationError(XLSXError):
    """Raised when writing a field value to a cell fails."""

    def __init__(self, field_name: str, value: Any, original_error: Exception):
        self.field_name = field_name
        self.value = value
        self.original_error = original_error
        super().__init__(
            f"Error serializing field '{field_name}' with value '{value}': {original_error}"
        )
