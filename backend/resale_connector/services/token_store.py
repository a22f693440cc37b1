"""Versioned storage of the per-account eBay credential.

The credential lives on the ``users`` row. Every write bumps
``credential_version`` so a refresh can be committed with
``compare_and_swap`` and a concurrent refresh is detected instead of being
silently overwritten.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from resale_connector.db_models import User
from resale_connector.services.errors import CredentialConflict
from resale_connector.utils.logger import logger, token_fingerprint


@dataclass(frozen=True)
class Credential:
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    version: int = 0
    ebay_user_id: Optional[str] = None
    username: Optional[str] = None
    connected_at: Optional[datetime] = None

    @property
    def is_connected(self) -> bool:
        return bool(self.refresh_token)


def _normalize_datetime(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timezone-aware columns back naive.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_pair(access_token: Optional[str], refresh_token: Optional[str]) -> None:
    if bool(access_token) != bool(refresh_token):
        raise ValueError("access_token and refresh_token must be stored together")


class TokenStore:
    def get(self, db: Session, user_id: str) -> Optional[Credential]:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            return None
        return Credential(
            access_token=user.ebay_access_token,
            refresh_token=user.ebay_refresh_token,
            expires_at=_normalize_datetime(user.ebay_token_expires_at),
            version=user.credential_version or 0,
            ebay_user_id=user.ebay_user_id,
            username=user.ebay_username,
            connected_at=_normalize_datetime(user.ebay_connected_at),
        )

    def set(
        self,
        db: Session,
        user_id: str,
        *,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
        ebay_user_id: Optional[str] = None,
        username: Optional[str] = None,
        connected_at: Optional[datetime] = None,
    ) -> Credential:
        """Unconditionally store a full credential (used by the connect flow)."""
        _check_pair(access_token, refresh_token)
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise LookupError(f"User {user_id} not found")

        user.ebay_access_token = access_token
        user.ebay_refresh_token = refresh_token
        user.ebay_token_expires_at = expires_at
        if ebay_user_id is not None:
            user.ebay_user_id = ebay_user_id
        if username is not None:
            user.ebay_username = username
        user.ebay_connected_at = connected_at or datetime.now(timezone.utc)
        user.credential_version = (user.credential_version or 0) + 1
        db.commit()

        logger.info(
            "[token_store] Credential stored: user_id=%s version=%s token_hash=%s",
            user_id, user.credential_version, token_fingerprint(access_token),
        )
        return self.get(db, user_id)

    def compare_and_swap(
        self,
        db: Session,
        user_id: str,
        expected_version: int,
        *,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> bool:
        """Write new tokens only if nobody changed the credential since ``expected_version``.

        Returns False when another writer got there first.
        """
        _check_pair(access_token, refresh_token)
        result = db.execute(
            update(User)
            .where(User.id == user_id, User.credential_version == expected_version)
            .values(
                ebay_access_token=access_token,
                ebay_refresh_token=refresh_token,
                ebay_token_expires_at=expires_at,
                credential_version=expected_version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
        swapped = result.rowcount == 1
        if swapped:
            db.expire_all()
        logger.info(
            "[token_store] Credential CAS: user_id=%s expected_version=%s swapped=%s",
            user_id, expected_version, swapped,
        )
        return swapped

    def clear(self, db: Session, user_id: str, expected_version: Optional[int] = None) -> None:
        """Remove every credential field.

        With ``expected_version`` the clear only applies if the credential is
        unchanged; ``CredentialConflict`` is raised otherwise.
        """
        stmt = update(User).where(User.id == user_id)
        if expected_version is not None:
            stmt = stmt.where(User.credential_version == expected_version)
        result = db.execute(
            stmt.values(
                ebay_access_token=None,
                ebay_refresh_token=None,
                ebay_token_expires_at=None,
                ebay_user_id=None,
                ebay_username=None,
                ebay_connected_at=None,
                credential_version=User.credential_version + 1,
            ).execution_options(synchronize_session=False)
        )
        db.commit()
        db.expire_all()
        if expected_version is not None and result.rowcount != 1:
            raise CredentialConflict(
                f"Credential for user {user_id} changed since version {expected_version}"
            )
        logger.info("[token_store] Credential cleared: user_id=%s", user_id)


token_store = TokenStore()
