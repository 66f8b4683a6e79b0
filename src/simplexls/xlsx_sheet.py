"""Thin adapters giving the table reader/writer a cell-level view of openpyxl."""

import logging
from typing import Any

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .errors import SheetNotFoundError

logger = logging.getLogger(__name__)

MAX_SHEETNAME_LENGTH = 31


class SheetAdapter:
    """Cell access to a single worksheet (1-based rows and columns)."""

    def __init__(self, worksheet: Worksheet):
        self.worksheet = worksheet

    @property
    def title(self) -> str:
        return self.worksheet.title

    def get_cell(self, row: int, col: int) -> Any:
        return self.worksheet.cell(row=row, column=col).value

    def set_cell(self, row: int, col: int, value: Any) -> None:
        self.worksheet.cell(row=row, column=col).value = value

    def delete_column(self, index: int) -> None:
        self.worksheet.delete_cols(index)

    def dimensions(self) -> tuple[int, int]:
        """Get (rows, columns) of the used range; (0, 0) for an empty sheet."""
        ws = self.worksheet
        if ws.max_row == 1 and ws.max_column == 1 and ws.cell(1, 1).value is None:
            return 0, 0
        return ws.max_row, ws.max_column


class WorkbookAdapter:
    """Sheet management of an openpyxl workbook."""

    def __init__(self, workbook: Workbook):
        self.workbook = workbook

    def sheet_names(self) -> set[str]:
        return set(self.workbook.sheetnames)

    def add_sheet(self, name: str) -> SheetAdapter:
        if len(name) > MAX_SHEETNAME_LENGTH:
            logger.warning(
                'Sheet name "%s" is longer than %i characters.',
                name,
                MAX_SHEETNAME_LENGTH,
            )
        worksheet = self.workbook.create_sheet(title=name)
        logger.debug('-> Added sheet "%s".', name)
        return SheetAdapter(worksheet)

    def remove_sheet(self, sheet: SheetAdapter) -> None:
        self.workbook.remove(sheet.worksheet)
        logger.debug('-> Removed sheet "%s".', sheet.title)

    def get_sheet(self, index: int) -> SheetAdapter:
        """Get a sheet by its 1-based position."""
        worksheets = self.workbook.worksheets
        if not worksheets:
            raise SheetNotFoundError(index, "The document is empty!")
        if index < 1 or index > len(worksheets):
            raise SheetNotFoundError(index)
        return SheetAdapter(worksheets[index - 1])
