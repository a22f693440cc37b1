"""Row extractors: header-resolved rows -> typed records.

Each extractor returns ``(records, errors)``. Rows that are not records
(blank lines, marketplace artifacts) are skipped silently; a row that
blows up becomes an error string and the sheet carries on.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from resale_connector.services.spreadsheet_import.coercion import (
    cell_text,
    is_blank,
    parse_date,
    parse_number,
)
from resale_connector.services.spreadsheet_import.columns import SalesDialect

EXCLUDED_DESCRIPTION_FRAGMENTS = (
    "payment",
    "purchase",
    "refund",
    "shipping label error",
    "ups shipping",
)
EXCLUDED_STATUS_FRAGMENTS = ("cancel", "error")
INVENTORY_SOLD_MARKERS = ("yes", "sold", "x")
# "Sold", "sold 3/2"; not "unsold" or "not sold"
SOLD_STATUS = re.compile(r"sold\b")

UNKNOWN_DESCRIPTION = "Unknown Item"


@dataclass
class ParsedSale:
    item_number: str
    description: str
    listed_price: float
    sale_price: float
    shipping_cost: float
    supplies_cost: float
    net_profit: float
    listed_date: Optional[date]
    sale_date: date
    offer_start_date: Optional[date]
    offer_expiration_date: Optional[date]
    row_number: int = 0


@dataclass
class ParsedInventoryItem:
    item_number: Optional[str]
    description: str
    minimum_price: Optional[float]
    cost: Optional[float]
    date_added: date
    row_number: int = 0


@dataclass
class ParsedDeposit:
    sold_date: date
    description: str
    total: float
    net_profit: Optional[float]
    row_number: int = 0


class _Row:
    def __init__(self, values: Sequence[Any], columns: Dict[str, int]):
        self.values = values
        self.columns = columns

    def raw(self, field: str) -> Any:
        index = self.columns.get(field, -1)
        if index < 0 or index >= len(self.values):
            return None
        return self.values[index]

    def has(self, field: str) -> bool:
        return not is_blank(self.raw(field))

    def text(self, field: str) -> str:
        return cell_text(self.raw(field))

    def number(self, field: str) -> float:
        return parse_number(self.raw(field))

    def date(self, field: str) -> Optional[date]:
        return parse_date(self.raw(field))


def _data_rows(matrix: Sequence[Sequence[Any]], header_row_index: int):
    for index in range(header_row_index + 1, len(matrix)):
        values = matrix[index]
        if not values or all(is_blank(v) for v in values):
            continue
        # 1-based row number as shown in the spreadsheet application
        yield index + 1, values


def _is_marketplace_artifact(row: _Row, description: str) -> bool:
    status = row.text("status").lower()
    if any(fragment in status for fragment in EXCLUDED_STATUS_FRAGMENTS):
        return True
    lowered = description.lower()
    return any(fragment in lowered for fragment in EXCLUDED_DESCRIPTION_FRAGMENTS)


def _accept_sale(row: _Row, dialect: SalesDialect, listed_price: float, sale_price: float) -> bool:
    if dialect is SalesDialect.POSITIONAL:
        if SOLD_STATUS.match(row.text("status").strip().lower()):
            return True
        return row.number("sub_total") != 0 or row.number("ninety_day_total") != 0
    return listed_price != 0 or sale_price != 0


def _net_profit(row: _Row, dialect: SalesDialect, sale_price: float, supplies_cost: float) -> float:
    if row.has("net_profit"):
        return row.number("net_profit")
    if dialect is SalesDialect.SIMPLE and row.columns.get("sub_total", -1) >= 0:
        return row.number("sub_total")
    return sale_price - supplies_cost


def extract_sales_rows(
    matrix: Sequence[Sequence[Any]],
    header_row_index: int,
    columns: Dict[str, int],
    dialect: SalesDialect = SalesDialect.SIMPLE,
    today: Optional[date] = None,
) -> Tuple[List[ParsedSale], List[str]]:
    today = today or date.today()
    sales: List[ParsedSale] = []
    errors: List[str] = []

    for row_number, values in _data_rows(matrix, header_row_index):
        try:
            row = _Row(values, columns)
            item_number = row.text("item_number")
            description = row.text("description")
            if not item_number and not description:
                continue
            if dialect is SalesDialect.POSITIONAL and _is_marketplace_artifact(row, description):
                continue

            listed_price = row.number("listed_price")
            sale_price = row.number("sale_price")
            if not _accept_sale(row, dialect, listed_price, sale_price):
                continue

            supplies_cost = row.number("supplies_cost")
            sales.append(
                ParsedSale(
                    item_number=item_number or f"ITEM-{row_number}",
                    description=description or UNKNOWN_DESCRIPTION,
                    listed_price=listed_price,
                    sale_price=sale_price,
                    shipping_cost=row.number("shipping_cost"),
                    supplies_cost=supplies_cost,
                    net_profit=_net_profit(row, dialect, sale_price, supplies_cost),
                    listed_date=row.date("listed_date"),
                    sale_date=row.date("sale_date") or today,
                    offer_start_date=row.date("offer_start_date"),
                    offer_expiration_date=row.date("offer_expiration_date"),
                    row_number=row_number,
                )
            )
        except Exception as e:
            errors.append(f"Row {row_number}: {e}")

    return sales, errors


def extract_inventory_rows(
    matrix: Sequence[Sequence[Any]],
    header_row_index: int,
    columns: Dict[str, int],
    today: Optional[date] = None,
) -> Tuple[List[ParsedInventoryItem], List[str]]:
    today = today or date.today()
    items: List[ParsedInventoryItem] = []
    errors: List[str] = []

    for row_number, values in _data_rows(matrix, header_row_index):
        try:
            row = _Row(values, columns)
            item_number = row.text("item_number")
            description = row.text("description")
            if not item_number and not description:
                continue
            sold = row.raw("sold")
            if sold is True or row.text("sold").lower() in INVENTORY_SOLD_MARKERS:
                continue

            items.append(
                ParsedInventoryItem(
                    item_number=item_number or None,
                    description=description or UNKNOWN_DESCRIPTION,
                    minimum_price=row.number("minimum_price") or None,
                    cost=row.number("cost") or None,
                    date_added=row.date("date_added") or today,
                    row_number=row_number,
                )
            )
        except Exception as e:
            errors.append(f"Row {row_number}: {e}")

    return items, errors


def extract_deposit_rows(
    matrix: Sequence[Sequence[Any]],
    header_row_index: int,
    columns: Dict[str, int],
    today: Optional[date] = None,
) -> Tuple[List[ParsedDeposit], List[str]]:
    today = today or date.today()
    deposits: List[ParsedDeposit] = []
    errors: List[str] = []

    for row_number, values in _data_rows(matrix, header_row_index):
        try:
            row = _Row(values, columns)
            description = row.text("description")
            total = row.number("total")
            if not description or total == 0:
                continue

            deposits.append(
                ParsedDeposit(
                    sold_date=row.date("sold_date") or today,
                    description=description,
                    total=total,
                    net_profit=row.number("net_profit") or None,
                    row_number=row_number,
                )
            )
        except Exception as e:
            errors.append(f"Row {row_number}: {e}")

    return deposits, errors
