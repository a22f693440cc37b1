import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from resale_connector.config import settings
from resale_connector.database import Base
from resale_connector.db_models import User
from resale_connector.services.ebay_oauth import EbayOAuthService
from resale_connector.services.token_store import token_store


@pytest.fixture(autouse=True)
def _ebay_settings(monkeypatch):
    """Deterministic eBay configuration; no test talks to the real API."""
    monkeypatch.setattr(settings, "EBAY_ENVIRONMENT", "sandbox")
    monkeypatch.setattr(settings, "EBAY_CLIENT_ID", "dummy-client-id")
    monkeypatch.setattr(settings, "EBAY_CLIENT_SECRET", "dummy-client-secret")
    monkeypatch.setattr(settings, "EBAY_REDIRECT_URI", "dummy-runame")
    monkeypatch.setattr(settings, "EBAY_MARKETPLACE_ID", "EBAY_US")
    monkeypatch.setattr(settings, "EBAY_TOKEN_REFRESH_BUFFER_MINUTES", 5)
    monkeypatch.setattr(settings, "IMPORT_SALES_DIALECT", "auto")


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def user(db):
    u = User(id="user-1", email="seller@example.com", name="Seller")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def connect_user(db, user):
    """Store a credential for ``user`` expiring ``expires_in`` from now."""

    def _connect(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_in=timedelta(hours=2),
        expires_at=None,
    ):
        return token_store.set(
            db,
            user.id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at or datetime.now(timezone.utc) + expires_in,
        )

    return _connect


@pytest.fixture
def mock_http():
    """Build an ``httpx.AsyncClient`` whose requests are answered by ``handler``."""

    def _build(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _build


@pytest.fixture
def oauth_with(mock_http):
    def _build(handler):
        return EbayOAuthService(http_client=mock_http(handler))

    return _build
