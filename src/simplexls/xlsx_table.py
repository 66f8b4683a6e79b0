"""
Table format implementation: one header row followed by one row per record.

This module contains:
- Table writer emitting headers and data rows with optional translation
- Omission of columns that stayed empty for all records
- Table reader for raw (type-free) and typed import
"""

import logging
from collections.abc import Iterable
from typing import Any

from openpyxl.workbook import Workbook
from pydantic import BaseModel

from .errors import (
    CellReadError,
    DuplicateSheetError,
    MissingLocalizerError,
    XLSXError,
    XLSXSerializationError,
)
from .localizer import Localizer
from .xlsx_common import (
    DATA_START_ROW,
    HEADER_ROW,
    ColumnDescriptor,
    FieldKind,
    RawTable,
    SheetDescriptor,
    SheetExportSettings,
    SheetImportSettings,
    XLSXFieldAnalyzer,
    XLSXSerializationEngine,
    describe_model,
)
from .xlsx_sheet import SheetAdapter, WorkbookAdapter

logger = logging.getLogger(__name__)


class XLSXTableWriter:
    """Writes a sequence of records as a new sheet of a workbook."""

    def __init__(self, settings: SheetExportSettings | None = None):
        self.settings = settings or SheetExportSettings()
        self.serialization_engine = XLSXSerializationEngine()

    def write(
        self,
        workbook: Workbook,
        records: Iterable[BaseModel],
        model: type[BaseModel] | None = None,
    ) -> SheetAdapter:
        """Add a sheet for the records to the workbook and fill it.

        The model is taken from the first record unless given explicitly;
        an empty sequence of records therefore requires ``model``.
        """
        records = list(records)
        if model is None:
            if not records:
                msg = "No data provided for export and no model given."
                raise XLSXError(msg)
            model = records[0].__class__

        descriptor = describe_model(model)
        columns = descriptor.visible_columns
        localizer = self.settings.get_localizer()

        book = WorkbookAdapter(workbook)
        sheet_name = self._resolve_sheet_name(descriptor, localizer)
        if sheet_name in book.sheet_names():
            raise DuplicateSheetError(sheet_name)

        untranslatable = [
            c.key for c in columns if c.kind == FieldKind.TRANSLATED and localizer is None
        ]
        if untranslatable:
            raise MissingLocalizerError(untranslatable)

        sheet = book.add_sheet(sheet_name)
        try:
            self._add_headers(sheet, descriptor, columns, localizer)
            column_usages = self._write_data_rows(sheet, records, columns, localizer)
            if self.settings.omit_empty_columns:
                self._omit_unused_columns(sheet, column_usages)
        except Exception:
            book.remove_sheet(sheet)
            raise

        logger.debug(
            '-> Wrote %i record(s) of "%s" to sheet "%s".',
            len(records),
            model.__name__,
            sheet_name,
        )
        return sheet

    def _resolve_sheet_name(
        self, descriptor: SheetDescriptor, localizer: Localizer | None
    ) -> str:
        # name from settings has priority over the model annotation
        name = self.settings.sheet_name or descriptor.name
        if not name:
            name = descriptor.model_type.__name__
        if localizer is not None and self.settings.translate_headers:
            name = localizer[descriptor.translation_key(name)]
        return name

    def _add_headers(
        self,
        sheet: SheetAdapter,
        descriptor: SheetDescriptor,
        columns: list[ColumnDescriptor],
        localizer: Localizer | None,
    ) -> None:
        """Add column headers."""
        for col_idx, column in enumerate(columns, start=1):
            heading = column.attributes.heading
            if localizer is not None and self.settings.translate_headers:
                heading = localizer[descriptor.translation_key(heading)]
            sheet.set_cell(HEADER_ROW, col_idx, heading)

    def _write_data_rows(
        self,
        sheet: SheetAdapter,
        records: list[BaseModel],
        columns: list[ColumnDescriptor],
        localizer: Localizer | None,
    ) -> list[int]:
        """Write data rows and count the non-empty cells of each column."""
        column_usages = [0] * len(columns)

        for row_idx, record in enumerate(records, start=DATA_START_ROW):
            for col_idx, column in enumerate(columns, start=1):
                value = None
                try:
                    value = column.get_value(record)
                    cell_value = self.serialization_engine.serialize_value(
                        value, column, self.settings.culture
                    )
                    if column.attributes.translate:
                        cell_value = self._translate_value(cell_value, column, localizer)
                    sheet.set_cell(row_idx, col_idx, cell_value)
                except Exception as e:
                    raise XLSXSerializationError(column.key, value, e) from e

                if cell_value is not None and cell_value != "":
                    column_usages[col_idx - 1] += 1

        return column_usages

    @staticmethod
    def _translate_value(
        value: Any, column: ColumnDescriptor, localizer: Localizer
    ) -> Any:
        if value is None:
            return None
        text = str(value)
        if not text.strip():
            return value
        return localizer[f"{column.attributes.dictionary_prefix}{text}"]

    @staticmethod
    def _omit_unused_columns(sheet: SheetAdapter, column_usages: list[int]) -> None:
        """Delete columns without any non-empty data cell."""
        deleted = 0
        for col_idx, usage in enumerate(column_usages, start=1):
            if usage:
                continue
            # columns right of a deleted one have shifted left
            sheet.delete_column(col_idx - deleted)
            deleted += 1
        if deleted:
            logger.debug('-> Omitted %i empty column(s) of sheet "%s".', deleted, sheet.title)


class XLSXTableReader:
    """Reads sheets either type-free or into records of a model."""

    def __init__(self, settings: SheetImportSettings | None = None):
        self.settings = settings or SheetImportSettings()
        self.serialization_engine = XLSXSerializationEngine()

    def _first_data_row(self) -> int:
        return DATA_START_ROW if self.settings.has_header else HEADER_ROW

    def read_raw(self, workbook: Workbook, sheet_index: int = 1) -> RawTable:
        """Read all cells of a sheet without any type conversion."""
        sheet = WorkbookAdapter(workbook).get_sheet(sheet_index)
        table = RawTable()
        total_rows, total_cols = sheet.dimensions()
        if total_rows == 0 or total_cols == 0:
            return table

        if self.settings.has_header:
            table.headers = self._read_headers(sheet, total_cols)

        for row_idx in range(self._first_data_row(), total_rows + 1):
            line: list[Any] = [None] * total_cols
            for col_idx in range(1, total_cols + 1):
                try:
                    line[col_idx - 1] = sheet.get_cell(row_idx, col_idx)
                except Exception as e:
                    self._handle_cell_error(row_idx, col_idx, None, e)
            table.values.append(line)

        return table

    @staticmethod
    def _read_headers(sheet: SheetAdapter, total_cols: int) -> list[str | None]:
        headers: list[str | None] = []
        for col_idx in range(1, total_cols + 1):
            value = sheet.get_cell(HEADER_ROW, col_idx)
            headers.append(None if value is None else str(value))
        return headers

    def read(
        self, workbook: Workbook, model: type[BaseModel], sheet_index: int = 1
    ) -> list[BaseModel]:
        """Read the rows of a sheet into records of the model.

        Columns are matched by position. Cells that cannot be converted are
        left at the field default unless ``break_on_error`` is set.
        """
        sheet = WorkbookAdapter(workbook).get_sheet(sheet_index)
        total_rows, total_cols = sheet.dimensions()
        if total_rows == 0 or total_cols == 0:
            return []

        descriptor = describe_model(model)
        columns = descriptor.visible_columns
        max_col = min(total_cols, len(columns))

        records = []
        for row_idx in range(self._first_data_row(), total_rows + 1):
            values = {
                column.key: column.default_value()
                for column in descriptor.columns
                if not column.default_needs_data
            }
            for col_idx, column in enumerate(columns[:max_col], start=1):
                try:
                    raw_value = sheet.get_cell(row_idx, col_idx)
                    self._read_cell(raw_value, column, values)
                except Exception as e:
                    self._handle_cell_error(row_idx, col_idx, column.key, e)
            self._fill_data_defaults(row_idx, descriptor, values)
            records.append(model.model_construct(**values))

        logger.debug(
            '-> Read %i record(s) of "%s" from sheet "%s".',
            len(records),
            model.__name__,
            sheet.title,
        )
        return records

    @staticmethod
    def _fill_data_defaults(
        row_idx: int, descriptor: SheetDescriptor, values: dict[str, Any]
    ) -> None:
        """Resolve defaults computed from other fields once the row is read."""
        for column in descriptor.columns:
            if not column.default_needs_data or column.key in values:
                continue
            try:
                values[column.key] = column.default_value(dict(values))
            except Exception as e:
                values[column.key] = None
                logger.debug(
                    "-> No default for field %s at row %i: %s", column.key, row_idx, e
                )

    def _read_cell(
        self, raw_value: Any, column: ColumnDescriptor, values: dict[str, Any]
    ) -> None:
        if column.converter is not None:
            value = column.converter.read(raw_value)
            if value is None and not column.nullable:
                return
            values[column.key] = value
            return

        if raw_value is None:
            return
        if raw_value == "" and not XLSXFieldAnalyzer.is_textual(
            column.field_type
        ):
            return
        values[column.key] = self.serialization_engine.coerce_value(
            raw_value, column.field_type
        )

    def _handle_cell_error(
        self, row_idx: int, col_idx: int, field_key: str | None, error: Exception
    ) -> None:
        if self.settings.break_on_error:
            raise CellReadError(row_idx, col_idx, field_key, str(error)) from error
        logger.debug(
            "-> Skipped cell at row %i, column %i (%s): %s",
            row_idx,
            col_idx,
            field_key or "raw",
            error,
        )
