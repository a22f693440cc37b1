"""Connecting, disconnecting and describing a user's eBay account."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import httpx
from sqlalchemy import func
from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.db_models import EbayListing, EbayPayout, EbaySale
from resale_connector.services.ebay_api_client import EbayApiClient
from resale_connector.services.ebay_oauth import EbayOAuthService
from resale_connector.services.errors import EbayIntegrationError, UpstreamError
from resale_connector.services.token_store import token_store
from resale_connector.utils.logger import ebay_logger, logger

STATE_COOKIE_NAME = "ebay_oauth_state"
STATE_COOKIE_MAX_AGE = 600


class EbayAccountService:
    def __init__(self, http_client: Optional[httpx.AsyncClient] = None):
        self.http_client = http_client
        self.oauth = EbayOAuthService(http_client=http_client)

    def build_connect_state(self, user_id: str) -> Tuple[str, str]:
        """Return ``(state, authorization_url)``; the state binds the consent to ``user_id``."""
        state = f"{user_id}:{secrets.token_urlsafe(16)}"
        return state, self.oauth.get_authorization_url(state)

    @staticmethod
    def user_id_from_state(state: str, expected_state: Optional[str]) -> Optional[str]:
        if not state or not expected_state or not secrets.compare_digest(state, expected_state):
            return None
        user_id, _, nonce = state.partition(":")
        if not user_id or not nonce:
            return None
        return user_id

    async def complete_connect(self, db: Session, user_id: str, code: str) -> Dict[str, Any]:
        token = await self.oauth.exchange_code_for_token(code)
        if not token.refresh_token:
            raise UpstreamError("eBay token response did not include a refresh token")
        now = datetime.now(timezone.utc)
        token_store.set(
            db,
            user_id,
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            expires_at=now + timedelta(seconds=token.expires_in),
            connected_at=now,
        )

        username = None
        try:
            profile = await EbayApiClient(
                db, user_id, http_client=self.http_client, oauth=self.oauth
            ).get_profile()
        except EbayIntegrationError as e:
            logger.warning("[ebay_account] Could not fetch eBay profile: user_id=%s error=%s", user_id, e)
        else:
            username = profile.username
            credential = token_store.get(db, user_id)
            token_store.set(
                db,
                user_id,
                access_token=credential.access_token,
                refresh_token=credential.refresh_token,
                expires_at=credential.expires_at,
                ebay_user_id=profile.external_user_id,
                username=profile.username,
                connected_at=credential.connected_at,
            )

        ebay_logger.log_ebay_event(
            "account_connected",
            f"eBay account connected for user {user_id}",
            response_data={"username": username},
            status="success",
        )
        return {"connected": True, "username": username}

    def disconnect(self, db: Session, user_id: str) -> None:
        token_store.clear(db, user_id)
        ebay_logger.log_ebay_event("account_disconnected", f"eBay account disconnected for user {user_id}")

    def status(self, db: Session, user_id: str) -> Dict[str, Any]:
        credential = token_store.get(db, user_id)
        connected = bool(credential and credential.is_connected)
        return {
            "connected": connected,
            "configured": settings.ebay_configured,
            "environment": settings.EBAY_ENVIRONMENT,
            "ebay_username": credential.username if credential else None,
            "ebay_user_id": credential.ebay_user_id if credential else None,
            "connected_at": credential.connected_at if credential else None,
            "expires_at": credential.expires_at if connected else None,
        }

    def sync_status(self, db: Session, user_id: str) -> Dict[str, Any]:
        counts = {
            "orders": db.query(func.count(EbaySale.id)).filter(EbaySale.user_id == user_id).scalar() or 0,
            "listings": db.query(func.count(EbayListing.id)).filter(EbayListing.user_id == user_id).scalar() or 0,
            "payouts": db.query(func.count(EbayPayout.id)).filter(EbayPayout.user_id == user_id).scalar() or 0,
        }
        candidates = [
            db.query(func.max(EbaySale.updated_at)).filter(EbaySale.user_id == user_id).scalar(),
            db.query(func.max(EbayListing.updated_at)).filter(EbayListing.user_id == user_id).scalar(),
            db.query(func.max(EbayPayout.created_at)).filter(EbayPayout.user_id == user_id).scalar(),
        ]
        candidates = [c.replace(tzinfo=c.tzinfo or timezone.utc) for c in candidates if c is not None]
        credential = token_store.get(db, user_id)
        return {
            "connected": bool(credential and credential.is_connected),
            "counts": counts,
            "last_sync": max(candidates) if candidates else None,
        }


ebay_account_service = EbayAccountService()
