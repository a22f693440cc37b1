"""Walk a workbook's sheets and collect sales, inventory and deposit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from resale_connector.config import settings
from resale_connector.services.errors import SheetParseError
from resale_connector.services.spreadsheet_import.classifier import SOLD_BY_ME, SheetRole, sheet_assignments
from resale_connector.services.spreadsheet_import.columns import (
    DEPOSIT_COLUMNS,
    INVENTORY_COLUMNS,
    SALES_COLUMNS,
    SalesDialect,
    detect_sales_dialect,
    find_header_row,
    header_at,
    resolve_columns,
)
from resale_connector.services.spreadsheet_import.extractors import (
    ParsedDeposit,
    ParsedInventoryItem,
    ParsedSale,
    extract_deposit_rows,
    extract_inventory_rows,
    extract_sales_rows,
)
from resale_connector.services.spreadsheet_import.workbook import Matrix, read_workbook
from resale_connector.utils.logger import logger


@dataclass
class ParseResult:
    sales: List[ParsedSale] = field(default_factory=list)
    inventory_items: List[ParsedInventoryItem] = field(default_factory=list)
    deposits: List[ParsedDeposit] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _parse_sheet(
    name: str, matrix: Matrix, result: ParseResult, dialect: Optional[str], today: date
) -> None:
    assignments = sheet_assignments(name)
    if not assignments or not matrix:
        return

    header_index = find_header_row(matrix)
    header = header_at(matrix, header_index)
    row_errors: List[str] = []

    for role, layout in assignments:
        if role is SheetRole.SALES:
            if layout == SOLD_BY_ME:
                sales_dialect = SalesDialect.SIMPLE
            else:
                sales_dialect = detect_sales_dialect(header, dialect or settings.IMPORT_SALES_DIALECT)
            columns = resolve_columns(header, SALES_COLUMNS[sales_dialect])
            sales, errors = extract_sales_rows(matrix, header_index, columns, sales_dialect, today)
            result.sales.extend(sales)
            row_errors.extend(errors)
            logger.info(
                "[spreadsheet_import] Sheet %r: layout=%s dialect=%s sales=%s",
                name, layout, sales_dialect.value, len(sales),
            )
        elif role is SheetRole.INVENTORY:
            columns = resolve_columns(header, INVENTORY_COLUMNS)
            items, errors = extract_inventory_rows(matrix, header_index, columns, today)
            result.inventory_items.extend(items)
            row_errors.extend(errors)
        elif role is SheetRole.DEPOSITS:
            columns = resolve_columns(header, DEPOSIT_COLUMNS)
            deposits, errors = extract_deposit_rows(matrix, header_index, columns, today)
            result.deposits.extend(deposits)
            row_errors.extend(errors)

    result.errors.extend(f'Sheet "{name}" {error}' for error in row_errors)


def parse_workbook(file_bytes: bytes, dialect: Optional[str] = None, today: Optional[date] = None) -> ParseResult:
    result = ParseResult()
    today = today or date.today()
    try:
        sheets = read_workbook(file_bytes)
    except SheetParseError as e:
        result.errors.append(str(e))
        return result

    for name, matrix in sheets.items():
        try:
            _parse_sheet(name, matrix, result, dialect, today)
        except Exception as e:
            logger.warning("[spreadsheet_import] Sheet %r failed: %s", name, e)
            result.errors.append(f'Error parsing sheet "{name}": {e}')

    return result
