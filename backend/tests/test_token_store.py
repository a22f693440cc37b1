from datetime import datetime, timedelta, timezone

import pytest

from resale_connector.services.errors import CredentialConflict
from resale_connector.services.token_store import token_store


def _expiry():
    return datetime.now(timezone.utc) + timedelta(hours=2)


def test_set_bumps_version(db, user):
    first = token_store.set(db, user.id, access_token="a1", refresh_token="r1", expires_at=_expiry())
    second = token_store.set(db, user.id, access_token="a2", refresh_token="r2", expires_at=_expiry())

    assert second.version == first.version + 1
    assert second.connected_at is not None


def test_half_credential_is_rejected(db, user):
    with pytest.raises(ValueError):
        token_store.set(db, user.id, access_token="a1", refresh_token="", expires_at=_expiry())


def test_compare_and_swap_only_applies_to_expected_version(db, user):
    current = token_store.set(db, user.id, access_token="a1", refresh_token="r1", expires_at=_expiry())

    assert token_store.compare_and_swap(
        db, user.id, current.version, access_token="a2", refresh_token="r1", expires_at=_expiry()
    ) is True
    # the version moved on, so a second writer holding the old version loses
    assert token_store.compare_and_swap(
        db, user.id, current.version, access_token="a3", refresh_token="r1", expires_at=_expiry()
    ) is False

    stored = token_store.get(db, user.id)
    assert stored.access_token == "a2"
    assert stored.version == current.version + 1


def test_clear_with_stale_version_raises_conflict(db, user):
    current = token_store.set(db, user.id, access_token="a1", refresh_token="r1", expires_at=_expiry())
    token_store.set(db, user.id, access_token="a2", refresh_token="r2", expires_at=_expiry())

    with pytest.raises(CredentialConflict):
        token_store.clear(db, user.id, expected_version=current.version)

    assert token_store.get(db, user.id).access_token == "a2"


def test_clear_removes_every_field(db, user):
    token_store.set(
        db, user.id, access_token="a1", refresh_token="r1", expires_at=_expiry(), username="seller_one"
    )

    token_store.clear(db, user.id)

    stored = token_store.get(db, user.id)
    assert stored.access_token is None
    assert stored.refresh_token is None
    assert stored.username is None
    assert stored.connected_at is None
