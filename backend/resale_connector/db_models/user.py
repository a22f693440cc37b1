from sqlalchemy import Column, String, DateTime, Integer, Text
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class User(Base):
    """Application user; also the owner of exactly one eBay credential.

    The eBay token columns form the stored Credential. They are written only
    through ``services.token_store`` so ``credential_version`` stays in step
    with every change.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(255))

    ebay_user_id = Column(String(100))
    ebay_username = Column(String(100))
    ebay_access_token = Column(Text)
    ebay_refresh_token = Column(Text)
    ebay_token_expires_at = Column(DateTime(timezone=True))
    ebay_connected_at = Column(DateTime(timezone=True))
    credential_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
