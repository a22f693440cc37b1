"""Single source of valid eBay access tokens.

Usage:
    from resale_connector.services.ebay_token_provider import get_valid_access_token

    result = await get_valid_access_token(db, user_id)
    if result.success:
        token = result.access_token
    else:
        # result.error_code is "not_connected" or "refresh_failed"
        ...

A stored token is handed out unchanged while it has more than
``EBAY_TOKEN_REFRESH_BUFFER_MINUTES`` left. Otherwise it is refreshed and the
new tokens are committed with a compare-and-swap on the credential version
read beforehand, so two concurrent refreshes cannot overwrite each other.
An irrecoverable refresh failure clears the credential.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Literal, Any, Dict

from sqlalchemy.orm import Session

from resale_connector.config import settings
from resale_connector.services.ebay_oauth import EbayOAuthService
from resale_connector.services.errors import CredentialConflict, RefreshFailure
from resale_connector.services.token_store import Credential, token_store
from resale_connector.utils.logger import logger, token_fingerprint


@dataclass
class EbayTokenResult:
    """Result of a token lookup. Never carries the raw token into ``to_dict``."""

    success: bool
    access_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    source: Literal["existing", "refreshed", "concurrent_refresh", "none"] = "none"
    user_id: Optional[str] = None
    credential_version: Optional[int] = None
    token_hash: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    retrieved_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "source": self.source,
            "user_id": self.user_id,
            "credential_version": self.credential_version,
            "token_hash": self.token_hash,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "retrieved_at": self.retrieved_at.isoformat(),
        }


def needs_refresh(credential: Credential, now: datetime) -> bool:
    if not credential.access_token or credential.expires_at is None:
        return True
    buffer = timedelta(minutes=settings.EBAY_TOKEN_REFRESH_BUFFER_MINUTES)
    return credential.expires_at - now < buffer


def _ok(user_id: str, credential: Credential, source: str) -> EbayTokenResult:
    return EbayTokenResult(
        success=True,
        access_token=credential.access_token,
        expires_at=credential.expires_at,
        source=source,
        user_id=user_id,
        credential_version=credential.version,
        token_hash=token_fingerprint(credential.access_token),
    )


def _not_connected(user_id: str) -> EbayTokenResult:
    return EbayTokenResult(
        success=False,
        user_id=user_id,
        error_code="not_connected",
        error_message="eBay account not connected",
    )


async def get_valid_access_token(
    db: Session,
    user_id: str,
    *,
    now: Optional[datetime] = None,
    oauth: Optional[EbayOAuthService] = None,
) -> EbayTokenResult:
    now = now or datetime.now(timezone.utc)

    credential = token_store.get(db, user_id)
    if credential is None or not credential.is_connected:
        logger.info("[token_provider] No credential: user_id=%s", user_id)
        return _not_connected(user_id)

    if not needs_refresh(credential, now):
        return _ok(user_id, credential, "existing")

    logger.info(
        "[token_provider] Refreshing token: user_id=%s version=%s expires_at=%s",
        user_id, credential.version, credential.expires_at,
    )
    oauth = oauth or EbayOAuthService()
    try:
        token = await oauth.refresh_access_token(credential.refresh_token)
    except RefreshFailure as e:
        logger.warning("[token_provider] Refresh failed: user_id=%s error=%s", user_id, str(e)[:200])
        try:
            token_store.clear(db, user_id, expected_version=credential.version)
        except CredentialConflict:
            # Another writer rotated the credential while our grant was in flight.
            winner = token_store.get(db, user_id)
            if winner is not None and winner.is_connected and not needs_refresh(winner, now):
                return _ok(user_id, winner, "concurrent_refresh")
            token_store.clear(db, user_id)
        return EbayTokenResult(
            success=False,
            user_id=user_id,
            error_code="refresh_failed",
            error_message=str(e),
        )

    expires_at = now + timedelta(seconds=token.expires_in)
    swapped = token_store.compare_and_swap(
        db,
        user_id,
        credential.version,
        access_token=token.access_token,
        refresh_token=token.refresh_token or credential.refresh_token,
        expires_at=expires_at,
    )
    if not swapped:
        winner = token_store.get(db, user_id)
        logger.info(
            "[token_provider] Lost refresh race, using stored credential: user_id=%s version=%s",
            user_id, winner.version if winner else None,
        )
        if winner is None or not winner.is_connected:
            return _not_connected(user_id)
        return _ok(user_id, winner, "concurrent_refresh")

    refreshed = token_store.get(db, user_id)
    logger.info(
        "[token_provider] Token refreshed: user_id=%s version=%s token_hash=%s",
        user_id, refreshed.version, token_fingerprint(refreshed.access_token),
    )
    return _ok(user_id, refreshed, "refreshed")


async def get_access_token(db: Session, user_id: str, **kwargs) -> Optional[str]:
    result = await get_valid_access_token(db, user_id, **kwargs)
    return result.access_token if result.success else None
