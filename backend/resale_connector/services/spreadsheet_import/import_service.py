"""Persist parsed workbook records.

Every imported row carries a SHA-256 ``dedupe_key`` over its identifying
fields; a row whose key already exists for the user (or earlier in the
same upload) is counted as a duplicate and skipped. The whole upload is
committed once, so a persistence failure leaves nothing behind.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from resale_connector.db_models import Deposit, InventoryItem, Item, Sale
from resale_connector.services.spreadsheet_import.coercion import to_decimal
from resale_connector.services.spreadsheet_import.extractors import (
    ParsedDeposit,
    ParsedInventoryItem,
    ParsedSale,
)
from resale_connector.services.spreadsheet_import.orchestrator import parse_workbook
from resale_connector.utils.logger import logger


@dataclass
class ImportOutcome:
    sales_created: int = 0
    inventory_created: int = 0
    deposits_created: int = 0
    duplicates_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sales_created": self.sales_created,
            "inventory_created": self.inventory_created,
            "deposits_created": self.deposits_created,
            "duplicates_skipped": self.duplicates_skipped,
            "errors": list(self.errors),
        }


def _compute_row_dedupe_key(kind: str, *parts: Any) -> str:
    normalized = []
    for part in parts:
        if part is None:
            normalized.append("")
        elif isinstance(part, date):
            normalized.append(part.isoformat())
        elif isinstance(part, float):
            normalized.append(f"{part:.2f}")
        else:
            normalized.append(" ".join(str(part).lower().split()))
    key = f"{kind}|" + "|".join(normalized)
    return hashlib.sha256(key.encode()).hexdigest()


def sale_dedupe_key(sale: ParsedSale) -> str:
    return _compute_row_dedupe_key(
        "sale", sale.item_number, sale.description, sale.sale_date, sale.sale_price, sale.listed_price,
        sale.net_profit,
    )


def inventory_dedupe_key(item: ParsedInventoryItem) -> str:
    return _compute_row_dedupe_key(
        "inventory", item.item_number, item.description, item.date_added, item.minimum_price, item.cost
    )


def deposit_dedupe_key(deposit: ParsedDeposit) -> str:
    return _compute_row_dedupe_key("deposit", deposit.sold_date, deposit.description, deposit.total)


class _Importer:
    def __init__(self, db: Session, user_id: str, outcome: ImportOutcome):
        self.db = db
        self.user_id = user_id
        self.outcome = outcome
        self.seen: Set[str] = set()
        self.items: Dict[str, Item] = {}

    def _is_duplicate(self, model, key: str) -> bool:
        if key in self.seen:
            return True
        self.seen.add(key)
        exists = (
            self.db.query(model.id)
            .filter(model.user_id == self.user_id, model.dedupe_key == key)
            .first()
        )
        return exists is not None

    def _get_or_create_item(self, item_number: str, description: str) -> Item:
        item = self.items.get(item_number)
        if item is None:
            item = self.db.query(Item).filter(Item.item_number == item_number).first()
        if item is None:
            item = Item(item_number=item_number, description=description)
            self.db.add(item)
        self.items[item_number] = item
        return item

    def add_sale(self, sale: ParsedSale) -> None:
        key = sale_dedupe_key(sale)
        if self._is_duplicate(Sale, key):
            self.outcome.duplicates_skipped += 1
            return
        item = self._get_or_create_item(sale.item_number, sale.description)
        self.db.add(
            Sale(
                user_id=self.user_id,
                item=item,
                listed_date=sale.listed_date,
                sale_date=sale.sale_date,
                offer_start_date=sale.offer_start_date,
                offer_expiration_date=sale.offer_expiration_date,
                listed_price=to_decimal(sale.listed_price),
                sale_price=to_decimal(sale.sale_price),
                shipping_cost=to_decimal(sale.shipping_cost),
                supplies_cost=to_decimal(sale.supplies_cost),
                net_profit=to_decimal(sale.net_profit),
                dedupe_key=key,
            )
        )
        self.outcome.sales_created += 1

    def add_inventory_item(self, parsed: ParsedInventoryItem) -> None:
        key = inventory_dedupe_key(parsed)
        if self._is_duplicate(InventoryItem, key):
            self.outcome.duplicates_skipped += 1
            return
        self.db.add(
            InventoryItem(
                user_id=self.user_id,
                item_number=parsed.item_number,
                description=parsed.description,
                minimum_price=to_decimal(parsed.minimum_price),
                cost=to_decimal(parsed.cost),
                date_added=parsed.date_added,
                dedupe_key=key,
            )
        )
        self.outcome.inventory_created += 1

    def add_deposit(self, parsed: ParsedDeposit) -> None:
        key = deposit_dedupe_key(parsed)
        if self._is_duplicate(Deposit, key):
            self.outcome.duplicates_skipped += 1
            return
        self.db.add(
            Deposit(
                user_id=self.user_id,
                sold_date=parsed.sold_date,
                description=parsed.description,
                total=to_decimal(parsed.total),
                net_profit=to_decimal(parsed.net_profit),
                dedupe_key=key,
            )
        )
        self.outcome.deposits_created += 1


def import_workbook(
    db: Session,
    user_id: str,
    file_bytes: bytes,
    dialect: Optional[str] = None,
    today: Optional[date] = None,
) -> ImportOutcome:
    parsed = parse_workbook(file_bytes, dialect=dialect, today=today)
    outcome = ImportOutcome(errors=list(parsed.errors))
    importer = _Importer(db, user_id, outcome)

    try:
        for sale in parsed.sales:
            importer.add_sale(sale)
        for item in parsed.inventory_items:
            importer.add_inventory_item(item)
        for deposit in parsed.deposits:
            importer.add_deposit(deposit)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("[spreadsheet_import] Import failed for user_id=%s: %s", user_id, e)
        return ImportOutcome(errors=outcome.errors + [f"Failed to save imported records: {e}"])

    logger.info(
        "[spreadsheet_import] Import finished: user_id=%s sales=%s inventory=%s deposits=%s duplicates=%s errors=%s",
        user_id, outcome.sales_created, outcome.inventory_created, outcome.deposits_created,
        outcome.duplicates_skipped, len(outcome.errors),
    )
    return outcome
