import base64
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from resale_connector.services.ebay_token_provider import get_access_token, get_valid_access_token
from resale_connector.services.token_store import token_store


def _token_response(access_token="access-2", refresh_token=None, expires_in=7200):
    body = {"access_token": access_token, "expires_in": expires_in, "token_type": "User Access Token"}
    if refresh_token:
        body["refresh_token"] = refresh_token
    return httpx.Response(200, json=body)


def _never_called(request):
    raise AssertionError(f"unexpected HTTP call to {request.url}")


@pytest.mark.asyncio
async def test_not_connected_without_credential(db, user, oauth_with):
    result = await get_valid_access_token(db, user.id, oauth=oauth_with(_never_called))

    assert result.success is False
    assert result.error_code == "not_connected"
    assert result.access_token is None


@pytest.mark.asyncio
async def test_token_with_six_minutes_left_is_used_as_is(db, connect_user, oauth_with):
    connect_user(expires_in=timedelta(minutes=6))

    result = await get_valid_access_token(db, "user-1", oauth=oauth_with(_never_called))

    assert result.success is True
    assert result.source == "existing"
    assert result.access_token == "access-1"


@pytest.mark.asyncio
async def test_token_with_four_minutes_left_is_refreshed(db, connect_user, oauth_with):
    before = connect_user(expires_in=timedelta(minutes=4))
    requests = []

    def handler(request):
        requests.append(request)
        return _token_response(access_token="access-2")

    result = await get_valid_access_token(db, "user-1", oauth=oauth_with(handler))

    assert result.success is True
    assert result.source == "refreshed"
    assert result.access_token == "access-2"

    assert len(requests) == 1
    request = requests[0]
    assert request.url == "https://api.sandbox.ebay.com/identity/v1/oauth2/token"
    expected_auth = base64.b64encode(b"dummy-client-id:dummy-client-secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected_auth}"
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["refresh-1"]

    stored = token_store.get(db, "user-1")
    assert stored.access_token == "access-2"
    # no rotated refresh token in the response: the old one is kept
    assert stored.refresh_token == "refresh-1"
    assert stored.version == before.version + 1
    assert stored.expires_at > datetime.now(timezone.utc) + timedelta(hours=1)


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_stored(db, connect_user, oauth_with):
    connect_user(expires_in=timedelta(minutes=1))

    result = await get_valid_access_token(
        db, "user-1", oauth=oauth_with(lambda request: _token_response(refresh_token="refresh-2"))
    )

    assert result.success is True
    assert token_store.get(db, "user-1").refresh_token == "refresh-2"


@pytest.mark.asyncio
async def test_missing_expiry_counts_as_expired(db, connect_user, oauth_with):
    connect_user()
    from resale_connector.db_models import User

    db.query(User).filter(User.id == "user-1").update({"ebay_token_expires_at": None})
    db.commit()
    calls = []

    def handler(request):
        calls.append(request)
        return _token_response()

    result = await get_valid_access_token(db, "user-1", oauth=oauth_with(handler))

    assert result.source == "refreshed"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_refresh_failure_clears_credential(db, connect_user, oauth_with):
    connect_user(expires_in=timedelta(minutes=-10))

    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant"})

    result = await get_valid_access_token(db, "user-1", oauth=oauth_with(handler))

    assert result.success is False
    assert result.error_code == "refresh_failed"
    stored = token_store.get(db, "user-1")
    assert stored.access_token is None
    assert stored.refresh_token is None
    assert stored.expires_at is None
    assert stored.is_connected is False


@pytest.mark.asyncio
async def test_transport_error_during_refresh_clears_credential(db, connect_user, oauth_with):
    connect_user(expires_in=timedelta(minutes=-10))

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    token = await get_access_token(db, "user-1", oauth=oauth_with(handler))

    assert token is None
    assert token_store.get(db, "user-1").is_connected is False


@pytest.mark.asyncio
async def test_lost_refresh_race_returns_winner_token(db, connect_user, oauth_with):
    connect_user(expires_in=timedelta(minutes=1))

    def handler(request):
        # Another worker lands its refresh while ours is in flight.
        token_store.set(
            db,
            "user-1",
            access_token="winner-access",
            refresh_token="winner-refresh",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=2),
        )
        return _token_response(access_token="loser-access", refresh_token="loser-refresh")

    result = await get_valid_access_token(db, "user-1", oauth=oauth_with(handler))

    assert result.success is True
    assert result.source == "concurrent_refresh"
    assert result.access_token == "winner-access"
    stored = token_store.get(db, "user-1")
    assert stored.access_token == "winner-access"
    assert stored.refresh_token == "winner-refresh"


def test_to_dict_never_contains_raw_token():
    from resale_connector.services.ebay_token_provider import EbayTokenResult

    result = EbayTokenResult(success=True, access_token="secret-token", token_hash="abc")
    data = result.to_dict()

    assert "access_token" not in data
    assert "secret-token" not in str(data)
