"""Pull orders, listings and payouts from eBay into the local tables.

Each resource type is described by a ``ResourceSpec`` row: which client
method pages it, which model and key column it lands in, how a record is
mapped, and whether existing rows are updated or left alone. Sync of one
account is serialized by a per-account ``asyncio.Lock``; a failure in one
resource type is recorded and the others still run.
"""
from __future__ import annotations

import asyncio
import json
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.db_models import EbayListing, EbayPayout, EbaySale
from resale_connector.services.ebay_api_client import EbayApiClient
from resale_connector.services.ebay_oauth import EbayOAuthService
from resale_connector.services.errors import NotConnected
from resale_connector.utils.logger import ebay_logger, logger


@dataclass
class SyncOutcome:
    resource: str
    imported: int = 0
    updated: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource,
            "imported": self.imported,
            "updated": self.updated,
            "errors": list(self.errors),
        }


@dataclass
class SyncResult:
    orders: SyncOutcome = field(default_factory=lambda: SyncOutcome("orders"))
    listings: SyncOutcome = field(default_factory=lambda: SyncOutcome("listings"))
    payouts: SyncOutcome = field(default_factory=lambda: SyncOutcome("payouts"))

    @property
    def errors(self) -> List[str]:
        return self.orders.errors + self.listings.errors + self.payouts.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orders_imported": self.orders.imported,
            "orders_updated": self.orders.updated,
            "listings_imported": self.listings.imported,
            "listings_updated": self.listings.updated,
            "payouts_imported": self.payouts.imported,
            "errors": self.errors,
        }


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------

def parse_amount(money: Any) -> Decimal:
    """``{"value": "12.34", "currency": "USD"}`` -> Decimal; absent or garbage -> 0."""
    value = money.get("value") if isinstance(money, dict) else money
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return amount


def parse_timestamp(value: Optional[str], default: datetime) -> datetime:
    if not value:
        return default
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def map_order_status(fulfillment_status: Optional[str], payment_status: Optional[str]) -> str:
    if fulfillment_status == "FULFILLED":
        return "DELIVERED"
    if fulfillment_status == "IN_PROGRESS":
        return "SHIPPED"
    if payment_status == "PAID":
        return "PAID"
    return "PENDING"


def map_listing_status(offer: Dict[str, Any]) -> str:
    listing = offer.get("listing") or {}
    if offer.get("status") in ("PUBLISHED", "ACTIVE") or listing.get("listingStatus") == "ACTIVE":
        return "ACTIVE"
    return "ENDED"


# ---------------------------------------------------------------------------
# Record mappers: eBay payload -> model column values
# ---------------------------------------------------------------------------

def map_order(order: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    line_items = order.get("lineItems") or []
    main_item = line_items[0] if line_items else {}
    pricing = order.get("pricingSummary") or {}
    return {
        "order_id": order["orderId"],
        "legacy_order_id": order.get("legacyOrderId"),
        "buyer_username": (order.get("buyer") or {}).get("username"),
        "item_id": main_item.get("legacyItemId"),
        "title": main_item.get("title") or "Unknown Item",
        "sku": main_item.get("sku"),
        "quantity": main_item.get("quantity") or 1,
        "item_price": parse_amount(main_item.get("lineItemCost")),
        "shipping_cost": parse_amount(pricing.get("deliveryCost")),
        "sales_tax": parse_amount(pricing.get("tax")),
        "total_amount": parse_amount(pricing.get("total")),
        "order_date": parse_timestamp(order.get("creationDate"), now),
        "order_status": map_order_status(
            order.get("orderFulfillmentStatus"), order.get("orderPaymentStatus")
        ),
        "raw_order_data": json.dumps(order),
    }


def map_listing(offer: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    listing = offer.get("listing") or {}
    pricing = offer.get("pricingSummary") or {}
    original = pricing.get("originalRetailPrice")
    return {
        "listing_id": listing.get("listingId") or offer["offerId"],
        "title": offer.get("listingDescription") or f"SKU: {offer.get('sku')}",
        "sku": offer.get("sku"),
        "current_price": parse_amount(pricing.get("price")),
        "original_price": parse_amount(original) if original else None,
        "quantity_available": offer.get("availableQuantity") or 0,
        "status": map_listing_status(offer),
    }


def map_payout(payout: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    instrument = payout.get("payoutInstrument") or {}
    return {
        "payout_id": payout["payoutId"],
        "amount": parse_amount(payout.get("amount")),
        "payout_date": parse_timestamp(payout.get("payoutDate"), now),
        "payout_status": payout.get("payoutStatus"),
        "bank_account_last4": instrument.get("accountLastFourDigits"),
    }


@dataclass(frozen=True)
class ResourceSpec:
    resource: str
    label: str
    model: Any
    key_column: str
    fetch: str
    mapper: Callable[[Dict[str, Any], datetime], Dict[str, Any]]
    date_filter_field: Optional[str] = None
    insert_only: bool = False


RESOURCE_SPECS: Dict[str, ResourceSpec] = {
    "orders": ResourceSpec(
        resource="orders",
        label="Orders",
        model=EbaySale,
        key_column="order_id",
        fetch="list_orders",
        mapper=map_order,
        date_filter_field="creationdate",
    ),
    "listings": ResourceSpec(
        resource="listings",
        label="Listings",
        model=EbayListing,
        key_column="listing_id",
        fetch="list_offers",
        mapper=map_listing,
    ),
    "payouts": ResourceSpec(
        resource="payouts",
        label="Payouts",
        model=EbayPayout,
        key_column="payout_id",
        fetch="list_payouts",
        mapper=map_payout,
        date_filter_field="payoutDate",
        insert_only=True,
    ),
}

SYNC_ORDER = ("orders", "listings", "payouts")

FEE_TRANSACTION_TYPES = ("NON_SALE_CHARGE",)

# asyncio locks are bound to the loop that first waits on them.
_account_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


def account_lock(user_id: str) -> asyncio.Lock:
    locks = _account_locks.setdefault(asyncio.get_running_loop(), {})
    lock = locks.get(user_id)
    if lock is None:
        lock = locks[user_id] = asyncio.Lock()
    return lock


def _iso_z(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class EbaySyncService:
    def __init__(
        self,
        db: Session,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        oauth: Optional[EbayOAuthService] = None,
        page_size: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.http_client = http_client
        self.oauth = oauth
        self.page_size = page_size or settings.SYNC_PAGE_SIZE
        self._now = now or (lambda: datetime.now(timezone.utc))

    def _client(self, user_id: str) -> EbayApiClient:
        return EbayApiClient(self.db, user_id, http_client=self.http_client, oauth=self.oauth)

    async def sync_resource(self, user_id: str, resource_type: str, days_back: Optional[int] = None) -> SyncOutcome:
        spec = RESOURCE_SPECS.get(resource_type)
        if spec is None:
            raise ValueError(f"Unknown resource type: {resource_type}")
        async with account_lock(user_id):
            outcome, _ = await self._sync_guarded(self._client(user_id), spec, days_back)
        return outcome

    async def sync_all(self, user_id: str, days_back: Optional[int] = None) -> SyncResult:
        result = SyncResult()
        ebay_logger.log_ebay_event("sync_started", f"Full sync started for user {user_id}")
        async with account_lock(user_id):
            client = self._client(user_id)
            disconnected: Optional[Exception] = None
            for resource in SYNC_ORDER:
                spec = RESOURCE_SPECS[resource]
                outcome = getattr(result, resource)
                if disconnected is not None:
                    outcome.errors.append(f"{spec.label} sync skipped: {disconnected}")
                    continue
                outcome, error = await self._sync_guarded(client, spec, days_back)
                setattr(result, resource, outcome)
                if isinstance(error, NotConnected):
                    disconnected = error

        ebay_logger.log_ebay_event(
            "sync_finished",
            f"Full sync finished for user {user_id}",
            response_data=result.to_dict(),
            status="error" if result.errors else "success",
        )
        return result

    async def _sync_guarded(
        self, client: EbayApiClient, spec: ResourceSpec, days_back: Optional[int]
    ) -> Tuple[SyncOutcome, Optional[Exception]]:
        outcome = SyncOutcome(resource=spec.resource)
        try:
            await self._sync_pages(client, spec, days_back, outcome)
        except Exception as e:
            self.db.rollback()
            logger.error(
                "[ebay_sync] %s sync failed: user_id=%s error=%s", spec.label, client.user_id, e
            )
            outcome.errors.append(f"{spec.label} sync failed: {e}")
            return outcome, e
        logger.info(
            "[ebay_sync] %s synced: user_id=%s imported=%s updated=%s",
            spec.label, client.user_id, outcome.imported, outcome.updated,
        )
        return outcome, None

    async def _sync_pages(
        self, client: EbayApiClient, spec: ResourceSpec, days_back: Optional[int], outcome: SyncOutcome
    ) -> None:
        now = self._now()
        kwargs: Dict[str, Any] = {}
        if spec.date_filter_field:
            start = now - timedelta(days=days_back or settings.SYNC_DEFAULT_DAYS_BACK)
            kwargs["date_filter"] = f"{spec.date_filter_field}:[{_iso_z(start)}..]"

        fetch = getattr(client, spec.fetch)
        offset = 0
        while True:
            page = await fetch(limit=self.page_size, offset=offset, **kwargs)
            imported = updated = 0
            for record in page.items:
                created = self._upsert(client.user_id, spec, spec.mapper(record, now))
                if created:
                    imported += 1
                elif not spec.insert_only:
                    updated += 1
            self.db.commit()
            outcome.imported += imported
            outcome.updated += updated

            offset += self.page_size
            if len(page.items) < self.page_size:
                break

    def _upsert(self, user_id: str, spec: ResourceSpec, values: Dict[str, Any]) -> bool:
        key = values[spec.key_column]
        column = getattr(spec.model, spec.key_column)
        existing = (
            self.db.query(spec.model)
            .filter(spec.model.user_id == user_id, column == key)
            .first()
        )
        if existing is None:
            self.db.add(spec.model(user_id=user_id, **values))
            self.db.flush()
            return True
        if not spec.insert_only:
            for attr, value in values.items():
                setattr(existing, attr, value)
        return False

    async def sync_fees_for_orders(self, user_id: str) -> int:
        async with account_lock(user_id):
            return await self._sync_fees(self._client(user_id))

    async def _sync_fees(self, client: EbayApiClient) -> int:
        orders = (
            self.db.query(EbaySale)
            .filter(EbaySale.user_id == client.user_id, EbaySale.ebay_fees == 0)
            .all()
        )
        if not orders:
            return 0

        fees_by_order: Dict[str, Decimal] = {}
        offset = 0
        while True:
            page = await client.list_transactions(limit=self.page_size, offset=offset)
            for txn in page.items:
                if txn.get("transactionType") not in FEE_TRANSACTION_TYPES and not txn.get("feeType"):
                    continue
                order_ids = {ref.get("referenceId") for ref in txn.get("references") or []}
                if txn.get("orderId"):
                    order_ids.add(txn["orderId"])
                amount = abs(parse_amount(txn.get("amount")))
                for order_id in order_ids:
                    if order_id:
                        fees_by_order[order_id] = fees_by_order.get(order_id, Decimal("0")) + amount
            offset += self.page_size
            if len(page.items) < self.page_size:
                break

        updated = 0
        for order in orders:
            fees = fees_by_order.get(order.order_id, Decimal("0"))
            if fees > 0:
                order.ebay_fees = fees
                updated += 1
        self.db.commit()
        logger.info("[ebay_sync] Fees reconciled: user_id=%s orders_updated=%s", client.user_id, updated)
        return updated
