"""Binary workbook -> ordered ``{sheet name: row matrix}``.

``.xlsx`` goes through openpyxl, legacy ``.xls`` through xlrd. Date cells
come back as ``datetime`` from both readers.
"""

from __future__ import annotations

from io import BytesIO
from typing import Any, Dict, List

import openpyxl
import xlrd

from resale_connector.services.errors import SheetParseError
from resale_connector.utils.logger import logger

XLSX_MAGIC = b"PK\x03\x04"
XLS_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

Matrix = List[List[Any]]


def _read_xlsx(file_bytes: bytes) -> Dict[str, Matrix]:
    wb = openpyxl.load_workbook(BytesIO(file_bytes), read_only=True, data_only=True)
    try:
        return {
            ws.title: [list(row) for row in ws.iter_rows(values_only=True)]
            for ws in wb.worksheets
        }
    finally:
        wb.close()


def _xls_cell(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
        except (xlrd.xldate.XLDateError, ValueError, OverflowError):
            return cell.value
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return None
    return cell.value


def _read_xls(file_bytes: bytes) -> Dict[str, Matrix]:
    book = xlrd.open_workbook(file_contents=file_bytes)
    sheets: Dict[str, Matrix] = {}
    for sheet in book.sheets():
        sheets[sheet.name] = [
            [_xls_cell(cell, book.datemode) for cell in sheet.row(r)]
            for r in range(sheet.nrows)
        ]
    return sheets


def read_workbook(file_bytes: bytes) -> Dict[str, Matrix]:
    if not file_bytes:
        raise SheetParseError("Empty file")
    try:
        if file_bytes.startswith(XLSX_MAGIC):
            return _read_xlsx(file_bytes)
        if file_bytes.startswith(XLS_MAGIC):
            return _read_xls(file_bytes)
    except Exception as e:
        logger.warning("[spreadsheet_import] Unreadable workbook: %s", e)
        raise SheetParseError(f"Could not read workbook: {e}") from e
    raise SheetParseError("Unsupported file format; expected .xlsx or .xls")
