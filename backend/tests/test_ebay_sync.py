import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from resale_connector.db_models import EbayListing, EbayPayout, EbaySale, User
from resale_connector.services.ebay_sync import (
    EbaySyncService,
    map_listing,
    map_order,
    map_order_status,
    parse_amount,
)
from resale_connector.services.token_store import token_store

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _order(order_id, fulfillment="NOT_STARTED", payment="PAID", total="25.00"):
    return {
        "orderId": order_id,
        "legacyOrderId": f"L-{order_id}",
        "creationDate": "2026-10-01T10:00:00.000Z",
        "buyer": {"username": "buyer_one"},
        "orderFulfillmentStatus": fulfillment,
        "orderPaymentStatus": payment,
        "pricingSummary": {
            "total": {"value": total, "currency": "USD"},
            "deliveryCost": {"value": "5.00", "currency": "USD"},
            "tax": {"value": "1.50", "currency": "USD"},
        },
        "lineItems": [
            {
                "legacyItemId": "1234",
                "title": "Vintage lamp",
                "sku": "LAMP-1",
                "quantity": 1,
                "lineItemCost": {"value": "18.50", "currency": "USD"},
            }
        ],
    }


OFFER = {
    "offerId": "OFFER-1",
    "sku": "LAMP-2",
    "availableQuantity": 3,
    "status": "PUBLISHED",
    "listingDescription": "Brass lamp",
    "pricingSummary": {"price": {"value": "30.00", "currency": "USD"}},
    "listing": {"listingId": "LISTING-1", "listingStatus": "ACTIVE"},
}

PAYOUT = {
    "payoutId": "PAYOUT-1",
    "payoutStatus": "SUCCEEDED",
    "amount": {"value": "120.40", "currency": "USD"},
    "payoutDate": "2026-10-05T00:00:00.000Z",
    "payoutInstrument": {"instrumentType": "BANK", "accountLastFourDigits": "6789"},
}


def _paged(key, records):
    def respond(request):
        offset = int(request.url.params.get("offset", "0"))
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json={key: records[offset:offset + limit], "total": len(records)})

    return respond


class _Api:
    """Routes MockTransport requests by path and records them."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.routes[request.url.path](request)

    def calls_to(self, path):
        return [r for r in self.requests if r.url.path == path]


def _default_api(orders=None, offers=None, payouts=None):
    return _Api({
        "/sell/fulfillment/v1/order": _paged("orders", orders if orders is not None else [_order("O-1"), _order("O-2")]),
        "/sell/inventory/v1/offer": _paged("offers", offers if offers is not None else [OFFER]),
        "/sell/finances/v1/payout": _paged("payouts", payouts if payouts is not None else [PAYOUT]),
    })


def _service(db, mock_http, api, page_size=50):
    return EbaySyncService(db, http_client=mock_http(api), page_size=page_size, now=lambda: NOW)


@pytest.mark.asyncio
async def test_sync_all_is_idempotent(db, connect_user, mock_http):
    connect_user()
    api = _default_api()

    first = await _service(db, mock_http, api).sync_all("user-1")
    second = await _service(db, mock_http, api).sync_all("user-1")

    assert first.to_dict() == {
        "orders_imported": 2,
        "orders_updated": 0,
        "listings_imported": 1,
        "listings_updated": 0,
        "payouts_imported": 1,
        "errors": [],
    }
    assert second.to_dict() == {
        "orders_imported": 0,
        "orders_updated": 2,
        "listings_imported": 0,
        "listings_updated": 1,
        "payouts_imported": 0,
        "errors": [],
    }
    assert db.query(EbaySale).count() == 2
    assert db.query(EbayListing).count() == 1
    assert db.query(EbayPayout).count() == 1


@pytest.mark.asyncio
async def test_listings_failure_does_not_stop_orders_or_payouts(db, connect_user, mock_http):
    connect_user()
    api = _default_api()
    api.routes["/sell/inventory/v1/offer"] = lambda request: httpx.Response(500, text="boom")

    result = await _service(db, mock_http, api).sync_all("user-1")

    assert len(result.errors) == 1
    assert result.errors[0].startswith("Listings sync failed")
    assert result.orders.imported == 2
    assert result.payouts.imported == 1
    assert db.query(EbayListing).count() == 0


@pytest.mark.asyncio
async def test_not_connected_skips_remaining_resources(db, user, mock_http):
    api = _default_api()

    result = await _service(db, mock_http, api).sync_all("user-1")

    assert api.requests == []
    assert result.errors[0].startswith("Orders sync failed")
    assert result.errors[1].startswith("Listings sync skipped")
    assert result.errors[2].startswith("Payouts sync skipped")


@pytest.mark.asyncio
async def test_pagination_stops_on_short_page(db, connect_user, mock_http):
    connect_user()
    api = _default_api(orders=[_order(f"O-{i}") for i in range(5)])

    outcome = await _service(db, mock_http, api, page_size=2).sync_resource("user-1", "orders")

    offsets = [r.url.params["offset"] for r in api.calls_to("/sell/fulfillment/v1/order")]
    assert offsets == ["0", "2", "4"]
    assert outcome.imported == 5


@pytest.mark.asyncio
async def test_pagination_with_exact_multiple_fetches_trailing_empty_page(db, connect_user, mock_http):
    connect_user()
    api = _default_api(orders=[_order(f"O-{i}") for i in range(4)])

    outcome = await _service(db, mock_http, api, page_size=2).sync_resource("user-1", "orders")

    assert len(api.calls_to("/sell/fulfillment/v1/order")) == 3
    assert outcome.imported == 4


@pytest.mark.asyncio
async def test_orders_and_payouts_use_date_window(db, connect_user, mock_http):
    connect_user()
    api = _default_api()

    await _service(db, mock_http, api).sync_all("user-1")

    order_filter = api.calls_to("/sell/fulfillment/v1/order")[0].url.params["filter"]
    payout_filter = api.calls_to("/sell/finances/v1/payout")[0].url.params["filter"]
    assert order_filter == "creationdate:[2026-07-21T12:00:00.000Z..]"
    assert payout_filter == "payoutDate:[2026-07-21T12:00:00.000Z..]"
    assert "filter" not in api.calls_to("/sell/inventory/v1/offer")[0].url.params


@pytest.mark.asyncio
async def test_payouts_are_insert_only(db, connect_user, mock_http):
    connect_user()
    api = _default_api()
    await _service(db, mock_http, api).sync_resource("user-1", "payouts")

    changed = dict(PAYOUT, payoutStatus="REVERSED")
    api.routes["/sell/finances/v1/payout"] = _paged("payouts", [changed])
    outcome = await _service(db, mock_http, api).sync_resource("user-1", "payouts")

    payout = db.query(EbayPayout).one()
    assert outcome.imported == 0
    assert outcome.updated == 0
    assert payout.payout_status == "SUCCEEDED"
    assert payout.bank_account_last4 == "6789"
    assert payout.amount == Decimal("120.40")


@pytest.mark.asyncio
async def test_order_update_overwrites_mapped_fields(db, connect_user, mock_http):
    connect_user()
    api = _default_api(orders=[_order("O-1", fulfillment="NOT_STARTED", payment="PAID")])
    await _service(db, mock_http, api).sync_resource("user-1", "orders")

    api.routes["/sell/fulfillment/v1/order"] = _paged("orders", [_order("O-1", fulfillment="FULFILLED")])
    outcome = await _service(db, mock_http, api).sync_resource("user-1", "orders")

    assert outcome.updated == 1
    assert db.query(EbaySale).one().order_status == "DELIVERED"


@pytest.mark.asyncio
async def test_same_order_id_on_two_accounts_is_kept_apart(db, connect_user, mock_http):
    connect_user()
    db.add(User(id="user-2", email="other@example.com", name="Other seller"))
    db.commit()
    token_store.set(
        db,
        "user-2",
        access_token="access-2",
        refresh_token="refresh-2",
        expires_at=datetime(2099, 1, 1, tzinfo=timezone.utc),
    )
    api = _default_api(orders=[_order("O-1")], offers=[], payouts=[])

    first = await _service(db, mock_http, api).sync_resource("user-1", "orders")
    second = await _service(db, mock_http, api).sync_resource("user-2", "orders")

    assert (first.imported, first.updated) == (1, 0)
    assert (second.imported, second.updated) == (1, 0)
    owners = sorted(s.user_id for s in db.query(EbaySale).filter(EbaySale.order_id == "O-1"))
    assert owners == ["user-1", "user-2"]


@pytest.mark.asyncio
async def test_fee_reconciliation_sums_fee_transactions(db, connect_user, mock_http):
    connect_user()
    api = _default_api(orders=[_order("O-1"), _order("O-2")])
    await _service(db, mock_http, api).sync_resource("user-1", "orders")

    transactions = [
        {"transactionType": "SALE", "orderId": "O-1", "amount": {"value": "25.00"}},
        {
            "transactionType": "NON_SALE_CHARGE",
            "amount": {"value": "-1.50"},
            "references": [{"referenceId": "O-1", "referenceType": "ORDER_ID"}],
        },
        {"transactionType": "SALE", "orderId": "O-1", "feeType": "FINAL_VALUE_FEE", "amount": {"value": "-0.35"}},
        {"transactionType": "NON_SALE_CHARGE", "amount": {"value": "-9.99"}, "references": []},
    ]
    api.routes["/sell/finances/v1/transaction"] = _paged("transactions", transactions)
    service = _service(db, mock_http, api)

    updated = await service.sync_fees_for_orders("user-1")

    assert updated == 1
    fees = {s.order_id: s.ebay_fees for s in db.query(EbaySale).all()}
    assert fees["O-1"] == Decimal("1.85")
    assert fees["O-2"] == Decimal("0")

    # a later order upsert leaves reconciled fees alone
    await service.sync_resource("user-1", "orders")
    assert db.query(EbaySale).filter_by(order_id="O-1").one().ebay_fees == Decimal("1.85")


@pytest.mark.asyncio
async def test_concurrent_syncs_for_one_account_are_serialized(db, connect_user, mock_http):
    connect_user()
    in_flight = 0
    peak = 0

    async def handler(request):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return httpx.Response(200, json={"orders": [_order("O-1")]})

    service = EbaySyncService(db, http_client=mock_http(handler), now=lambda: NOW)

    await asyncio.gather(
        service.sync_resource("user-1", "orders"),
        service.sync_resource("user-1", "orders"),
    )

    assert peak == 1


@pytest.mark.parametrize("fulfillment,payment,expected", [
    ("FULFILLED", "PENDING", "DELIVERED"),
    ("IN_PROGRESS", "PAID", "SHIPPED"),
    ("NOT_STARTED", "PAID", "PAID"),
    ("NOT_STARTED", "PENDING", "PENDING"),
    (None, None, "PENDING"),
])
def test_map_order_status(fulfillment, payment, expected):
    assert map_order_status(fulfillment, payment) == expected


def test_map_order_defaults():
    values = map_order({"orderId": "O-9", "creationDate": "garbage", "lineItems": []}, NOW)

    assert values["title"] == "Unknown Item"
    assert values["quantity"] == 1
    assert values["total_amount"] == Decimal("0")
    assert values["order_date"] == NOW


def test_map_listing_falls_back_to_offer_id_and_sku_title():
    values = map_listing(
        {"offerId": "OFFER-9", "sku": "SKU-9", "status": "UNPUBLISHED", "pricingSummary": {}},
        NOW,
    )

    assert values["listing_id"] == "OFFER-9"
    assert values["title"] == "SKU: SKU-9"
    assert values["status"] == "ENDED"
    assert values["original_price"] is None


def test_map_listing_active_from_listing_status():
    values = map_listing({"offerId": "O", "status": "UNPUBLISHED", "listing": {"listingStatus": "ACTIVE"}}, NOW)

    assert values["status"] == "ACTIVE"


@pytest.mark.parametrize("money,expected", [
    ({"value": "12.34"}, Decimal("12.34")),
    ({"value": "abc"}, Decimal("0")),
    ({"value": "NaN"}, Decimal("0")),
    (None, Decimal("0")),
    ({}, Decimal("0")),
])
def test_parse_amount(money, expected):
    assert parse_amount(money) == expected
