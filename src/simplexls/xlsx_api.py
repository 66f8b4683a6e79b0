"""
Public API for writing records to and reading records from xlsx files.

This module provides:
- Exporter collecting one sheet per model into a new workbook
- Importer reading sheets of an existing workbook raw or into models
- Convenience functions for the single-sheet case

Errors of this package pass through unchanged; any other error raised while
exporting or importing is wrapped into an XLSXError.
"""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from openpyxl import Workbook, load_workbook
from pydantic import BaseModel

from simplexls import config

from .errors import XLSXError
from .xlsx_common import RawTable, SheetExportSettings, SheetImportSettings
from .xlsx_table import XLSXTableReader, XLSXTableWriter

logger = logging.getLogger(__name__)


class Exporter:
    """Builds a new workbook sheet by sheet and saves it.

    Example:
        ```python
        Exporter.create_new().add_sheet(people).add_sheet(teams).export("out.xlsx")
        ```
    """

    def __init__(self, workbook: Workbook | None = None):
        if workbook is None:
            workbook = Workbook()
            # Remove default sheet
            workbook.remove(workbook.active)
        self._workbook = workbook

    @classmethod
    def create_new(cls) -> "Exporter":
        return cls()

    @property
    def workbook(self) -> Workbook:
        return self._workbook

    def add_sheet(
        self,
        records: Iterable[BaseModel],
        settings: SheetExportSettings | None = None,
        model: type[BaseModel] | None = None,
    ) -> "Exporter":
        """Append a sheet with the records; settings default to the loaded config."""
        settings = settings or config.CONFIG.export.to_settings()
        try:
            XLSXTableWriter(settings).write(self._workbook, records, model=model)
        except XLSXError:
            raise
        except Exception as e:
            msg = f"Adding sheet failed: {e}"
            raise XLSXError(msg) from e
        return self

    def export(self, target: Path | str | IO[bytes], overwrite: bool = True) -> None:
        """Save the workbook to a file path or a binary stream."""
        if not self._workbook.worksheets:
            msg = "Nothing to export: the workbook has no sheets."
            raise XLSXError(msg)

        if isinstance(target, str):
            target = Path(target)
        if isinstance(target, Path) and target.exists() and not overwrite:
            msg = f'File "{target}" already exists.'
            raise XLSXError(msg)

        try:
            self._workbook.save(target)
        except Exception as e:
            msg = f"Export failed: {e}"
            raise XLSXError(msg) from e
        logger.debug(
            "-> Exported %i sheet(s) to %s.", len(self._workbook.worksheets), target
        )


class Importer:
    """Reads sheets of an existing workbook.

    Example:
        ```python
        with Importer.open("people.xlsx") as importer:
            people = importer.import_as(Person)
        ```
    """

    def __init__(self, workbook: Workbook):
        self._workbook = workbook

    @classmethod
    def open(cls, source: Path | str | IO[bytes]) -> "Importer":
        if isinstance(source, str):
            source = Path(source)
        if isinstance(source, Path) and not source.exists():
            msg = f'File "{source}" not found.'
            raise XLSXError(msg)
        try:
            workbook = load_workbook(source, data_only=True)
        except Exception as e:
            msg = f"Opening workbook failed: {e}"
            raise XLSXError(msg) from e
        logger.debug("-> Opened workbook with sheets: %s", workbook.sheetnames)
        return cls(workbook)

    @property
    def workbook(self) -> Workbook:
        return self._workbook

    def import_raw(
        self, sheet_index: int = 1, settings: SheetImportSettings | None = None
    ) -> RawTable:
        settings = settings or config.CONFIG.import_.to_settings()
        try:
            return XLSXTableReader(settings).read_raw(self._workbook, sheet_index)
        except XLSXError:
            raise
        except Exception as e:
            msg = f"Import failed: {e}"
            raise XLSXError(msg) from e

    def import_as(
        self,
        model: type[BaseModel],
        sheet_index: int = 1,
        settings: SheetImportSettings | None = None,
    ) -> list[BaseModel]:
        settings = settings or config.CONFIG.import_.to_settings()
        try:
            return XLSXTableReader(settings).read(self._workbook, model, sheet_index)
        except XLSXError:
            raise
        except Exception as e:
            msg = f"Import failed: {e}"
            raise XLSXError(msg) from e

    def close(self) -> None:
        self._workbook.close()

    def __enter__(self) -> "Importer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def export_to_xlsx(
    records: Iterable[BaseModel],
    filepath: Path | str,
    settings: SheetExportSettings | None = None,
    model: type[BaseModel] | None = None,
) -> None:
    """Export records as a single sheet to a new xlsx file.

    Args:
        records: Sequence of model instances
        filepath: Path to save the Excel file
        settings: Optional export settings (default: from loaded config)
        model: Model class, required if records is empty
    """
    Exporter.create_new().add_sheet(records, settings, model=model).export(filepath)


def import_from_xlsx(
    filepath: Path | str,
    model: type[BaseModel],
    sheet_index: int | None = None,
    settings: SheetImportSettings | None = None,
) -> list[BaseModel]:
    """Import records of a model from a sheet of an xlsx file.

    Args:
        filepath: Path to the Excel file
        model: Pydantic model class to import into
        sheet_index: 1-based sheet position (default: from loaded config)
        settings: Optional import settings (default: from loaded config)

    Returns:
        List of model instances
    """
    if sheet_index is None:
        sheet_index = config.CONFIG.import_.sheet_index
    with Importer.open(filepath) as importer:
        return importer.import_as(model, sheet_index, settings)
