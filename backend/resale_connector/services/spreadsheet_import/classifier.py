"""Sheet name -> ingestion roles.

Rules are evaluated in order against the lower-cased sheet name. A sheet
can take several roles (e.g. an inventory tab named "Deposits & Inventory").
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Set, Tuple


class SheetRole(str, enum.Enum):
    SALES = "sales"
    INVENTORY = "inventory"
    DEPOSITS = "deposits"


EBAY_SOLD = "ebay_sold"
SOLD_BY_ME = "sold_by_me"


@dataclass(frozen=True)
class SheetRule:
    role: SheetRole
    layout: Optional[str] = None
    any_of: Tuple[str, ...] = ()
    all_of: Tuple[str, ...] = ()
    none_of: Tuple[str, ...] = ()
    pattern: Optional[Pattern[str]] = None

    def matches(self, name: str) -> bool:
        if self.any_of and not any(token in name for token in self.any_of):
            return False
        if any(token not in name for token in self.all_of):
            return False
        if any(token in name for token in self.none_of):
            return False
        if self.pattern is not None and not self.pattern.search(name):
            return False
        return True


SHEET_RULES: Tuple[SheetRule, ...] = (
    SheetRule(
        SheetRole.SALES,
        layout=EBAY_SOLD,
        all_of=("ebay",),
        pattern=re.compile(r"202\d"),
        none_of=("sold by me", "usb", "deposit"),
    ),
    SheetRule(SheetRole.SALES, layout=SOLD_BY_ME, any_of=("sold by me",)),
    SheetRule(SheetRole.INVENTORY, any_of=("items to sell", "inventory")),
    SheetRule(SheetRole.DEPOSITS, any_of=("usb", "deposit")),
)


def sheet_assignments(name: str) -> List[Tuple[SheetRole, Optional[str]]]:
    lowered = (name or "").lower()
    return [(rule.role, rule.layout) for rule in SHEET_RULES if rule.matches(lowered)]


def classify_sheet(name: str) -> Set[SheetRole]:
    return {role for role, _ in sheet_assignments(name)}
