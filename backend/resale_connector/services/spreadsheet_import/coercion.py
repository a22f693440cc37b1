"""Loose cell value coercion. Nothing here raises; bad input becomes a default."""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from dateutil import parser as date_parser
from openpyxl.utils.datetime import from_excel

_LEADING_NUMBER = re.compile(r"^[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")


def cell_text(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v).strip()


def is_blank(v: Any) -> bool:
    return cell_text(v) == ""


def parse_number(v: Any) -> float:
    """Currency-ish cell -> float. ``"$1,234.50"`` -> 1234.5; anything unparseable -> 0.0."""
    if v is None or isinstance(v, bool):
        return 0.0
    if isinstance(v, (int, float, Decimal)):
        num = float(v)
        return num if math.isfinite(num) else 0.0
    if isinstance(v, str):
        cleaned = re.sub(r"[$,]", "", v).strip()
        m = _LEADING_NUMBER.match(cleaned)
        if not m:
            return 0.0
        num = float(m.group(0))
        return num if math.isfinite(num) else 0.0
    return 0.0


def _from_serial(serial: float) -> Optional[date]:
    if not math.isfinite(serial) or serial < 1:
        return None
    try:
        value = from_excel(serial)
    except (ValueError, OverflowError):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def parse_date(v: Any) -> Optional[date]:
    """Date cell, spreadsheet serial (1900 epoch) or free text -> date; otherwise None."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, (int, float)):
        return _from_serial(float(v))
    if isinstance(v, str):
        s = v.strip()
        # a bare year is not a day
        if not s or re.fullmatch(r"\d{4}", s):
            return None
        if re.fullmatch(r"\d+(\.\d+)?", s):
            return _from_serial(float(s))
        try:
            return date_parser.parse(s).date()
        except (ValueError, OverflowError):
            return None
    return None


def to_decimal(v: Optional[float]) -> Optional[Decimal]:
    if v is None:
        return None
    return Decimal(str(v)).quantize(Decimal("0.01"))
