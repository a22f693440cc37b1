"""Authenticated accessor for the eBay Sell APIs used by the sync engine.

One client is bound to one account. Every call asks the token provider for
a valid token first, so a refresh can happen transparently between pages.
There is no retry here; callers decide what a failure means.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.services.ebay_oauth import EbayOAuthService, http_client_scope
from resale_connector.services.ebay_token_provider import get_valid_access_token
from resale_connector.services.errors import NotConnected, RefreshFailure, UpstreamError
from resale_connector.utils.logger import logger

ORDERS_PATH = "/sell/fulfillment/v1/order"
OFFERS_PATH = "/sell/inventory/v1/offer"
PAYOUTS_PATH = "/sell/finances/v1/payout"
TRANSACTIONS_PATH = "/sell/finances/v1/transaction"
IDENTITY_USER_PATH = "/commerce/identity/v1/user/"


@dataclass
class EbayPage:
    items: List[Dict[str, Any]] = field(default_factory=list)
    page_size: int = 0
    total: Optional[int] = None


@dataclass
class EbayProfile:
    external_user_id: Optional[str]
    username: Optional[str] = None


class EbayApiClient:
    def __init__(
        self,
        db: Session,
        user_id: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        oauth: Optional[EbayOAuthService] = None,
    ):
        self.db = db
        self.user_id = user_id
        self.http_client = http_client
        self.oauth = oauth or EbayOAuthService(http_client=http_client)

    async def _access_token(self) -> str:
        result = await get_valid_access_token(self.db, self.user_id, oauth=self.oauth)
        if result.success:
            return result.access_token
        if result.error_code == "refresh_failed":
            raise RefreshFailure(result.error_message or "eBay token refresh failed")
        raise NotConnected()

    async def _get(self, base_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        token = await self._access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-EBAY-C-MARKETPLACE-ID": settings.EBAY_MARKETPLACE_ID,
        }
        url = f"{base_url.rstrip('/')}{path}"

        try:
            async with http_client_scope(self.http_client) as client:
                resp = await client.get(
                    url,
                    headers=headers,
                    params=params,
                    timeout=settings.EBAY_HTTP_TIMEOUT_SECONDS,
                )
        except httpx.HTTPError as exc:
            logger.error("[ebay_api] Request error path=%s user_id=%s: %s", path, self.user_id, exc)
            raise UpstreamError(f"Request to {path} failed: {exc}") from exc

        if resp.status_code < 200 or resp.status_code >= 300:
            body = resp.text
            logger.warning(
                "[ebay_api] Non-success status=%s path=%s user_id=%s body=%s",
                resp.status_code, path, self.user_id, body[:500],
            )
            raise UpstreamError(
                f"eBay API {path} returned {resp.status_code}: {body[:500]}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError(
                f"eBay API {path} returned invalid JSON", status_code=resp.status_code, body=resp.text
            ) from exc

    async def _page(
        self,
        base_url: str,
        path: str,
        collection_key: str,
        limit: int,
        offset: int,
        date_filter: Optional[str] = None,
    ) -> EbayPage:
        params: Dict[str, Any] = {"limit": str(limit), "offset": str(offset)}
        if date_filter:
            params["filter"] = date_filter
        data = await self._get(base_url, path, params)
        items = data.get(collection_key) or []
        logger.info(
            "[ebay_api] Fetched %s: user_id=%s offset=%s count=%s total=%s",
            collection_key, self.user_id, offset, len(items), data.get("total"),
        )
        return EbayPage(items=items, page_size=limit, total=data.get("total"))

    async def list_orders(self, limit: int, offset: int = 0, date_filter: Optional[str] = None) -> EbayPage:
        return await self._page(settings.ebay_api_base_url, ORDERS_PATH, "orders", limit, offset, date_filter)

    async def list_offers(self, limit: int, offset: int = 0) -> EbayPage:
        return await self._page(settings.ebay_api_base_url, OFFERS_PATH, "offers", limit, offset)

    async def list_payouts(self, limit: int, offset: int = 0, date_filter: Optional[str] = None) -> EbayPage:
        return await self._page(settings.ebay_finances_base_url, PAYOUTS_PATH, "payouts", limit, offset, date_filter)

    async def list_transactions(self, limit: int, offset: int = 0, date_filter: Optional[str] = None) -> EbayPage:
        return await self._page(
            settings.ebay_finances_base_url, TRANSACTIONS_PATH, "transactions", limit, offset, date_filter
        )

    async def get_profile(self) -> EbayProfile:
        data = await self._get(settings.ebay_api_base_url, IDENTITY_USER_PATH)
        return EbayProfile(external_user_id=data.get("userId"), username=data.get("username"))
