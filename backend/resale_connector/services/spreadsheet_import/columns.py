"""Header row detection and fuzzy column lookup.

Column lookup scans the header left to right and takes the first cell
whose text contains any candidate fragment, so candidate order inside a
list does not matter; column order does.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from resale_connector.services.spreadsheet_import.coercion import cell_text

HEADER_SCAN_ROWS = 10
HEADER_KEYWORDS = ("item #", "description", "date", "price", "sold")
HEADER_MIN_SCORE = 2

# In the positional layout "Date"/"Sale" labels recur in the first 16
# columns for unrelated data; sale figures live after column 15.
POSITIONAL_MIN_INDEX = 16
POSITIONAL_MARKER = "90 day total"


class SalesDialect(str, enum.Enum):
    SIMPLE = "simple"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class ColumnSpec:
    field: str
    candidates: Tuple[str, ...]
    min_index: int = 0


_ITEM_NUMBER = ColumnSpec("item_number", ("item #", "item number", "item"))
_DESCRIPTION = ColumnSpec("description", ("description", "desc", "item description"))
_LISTED_PRICE = ColumnSpec("listed_price", ("listed price", "list price", "asking"))
_LISTED_DATE = ColumnSpec("listed_date", ("date listed", "listed date", "list date"))
_OFFER_START = ColumnSpec("offer_start_date", ("offer start", "offer begins"))
_OFFER_EXPIRATION = ColumnSpec("offer_expiration_date", ("offer exp", "offer expiration", "offer ends"))

_SALE_FIELDS = (
    ("sale_price", ("sale price", "sold price", "sold for", "price")),
    ("shipping_cost", ("shipping", "ship cost", "shipping cost")),
    ("supplies_cost", ("supplies", "supplies cost", "cost")),
    ("net_profit", ("net", "net sales", "net profit", "profit")),
    ("sale_date", ("date sold", "sold date", "sale date")),
    ("status", ("status",)),
    ("sub_total", ("sub-total", "subtotal", "sub total")),
)

SALES_COLUMNS: Dict[SalesDialect, Tuple[ColumnSpec, ...]] = {
    SalesDialect.SIMPLE: (
        _ITEM_NUMBER, _DESCRIPTION, _LISTED_PRICE, _LISTED_DATE, _OFFER_START, _OFFER_EXPIRATION,
        *(ColumnSpec(name, candidates) for name, candidates in _SALE_FIELDS),
    ),
    SalesDialect.POSITIONAL: (
        _ITEM_NUMBER, _DESCRIPTION, _LISTED_PRICE, _LISTED_DATE, _OFFER_START, _OFFER_EXPIRATION,
        *(ColumnSpec(name, candidates, POSITIONAL_MIN_INDEX) for name, candidates in _SALE_FIELDS),
        ColumnSpec("ninety_day_total", (POSITIONAL_MARKER,), POSITIONAL_MIN_INDEX),
    ),
}

INVENTORY_COLUMNS: Tuple[ColumnSpec, ...] = (
    _ITEM_NUMBER,
    ColumnSpec("description", ("description", "desc")),
    ColumnSpec("minimum_price", ("minimum", "min price", "internet price")),
    ColumnSpec("cost", ("cost",)),
    ColumnSpec("date_added", ("date",)),
    ColumnSpec("sold", ("sold",)),
)

DEPOSIT_COLUMNS: Tuple[ColumnSpec, ...] = (
    ColumnSpec("sold_date", ("sold date", "date")),
    ColumnSpec("description", ("description", "desc")),
    ColumnSpec("total", ("total",)),
    ColumnSpec("net_profit", ("net profit", "net")),
)


def _norm_header(v: Any) -> str:
    return " ".join(cell_text(v).lower().split())


def find_header_row(matrix: Sequence[Sequence[Any]]) -> int:
    for index, row in enumerate(matrix[:HEADER_SCAN_ROWS]):
        cells = [_norm_header(v) for v in row or ()]
        score = sum(1 for keyword in HEADER_KEYWORDS if any(keyword in cell for cell in cells))
        if score >= HEADER_MIN_SCORE:
            return index
    return 0


def find_column(header_row: Sequence[Any], candidates: Sequence[str], min_index: int = 0) -> int:
    fragments = [c.lower() for c in candidates]
    for index in range(max(min_index, 0), len(header_row)):
        header = _norm_header(header_row[index])
        if header and any(fragment in header for fragment in fragments):
            return index
    return -1


def resolve_columns(header_row: Sequence[Any], specs: Sequence[ColumnSpec]) -> Dict[str, int]:
    return {spec.field: find_column(header_row, spec.candidates, spec.min_index) for spec in specs}


def detect_sales_dialect(header_row: Sequence[Any], override: Optional[str] = None) -> SalesDialect:
    """``override`` is "auto", "simple" or "positional"; anything but a concrete dialect means detect."""
    if override and override != "auto":
        return SalesDialect(override)
    if any(POSITIONAL_MARKER in _norm_header(v) for v in header_row):
        return SalesDialect.POSITIONAL
    return SalesDialect.SIMPLE


def header_at(matrix: Sequence[Sequence[Any]], index: int) -> List[Any]:
    if index < len(matrix) and matrix[index]:
        return list(matrix[index])
    return []
