from sqlalchemy import Column, String, DateTime, Numeric, Text, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class EbayListing(Base):
    __tablename__ = "ebay_listings"
    __table_args__ = (
        UniqueConstraint("user_id", "listing_id", name="uq_ebay_listings_user_listing_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    listing_id = Column(String(100), nullable=False, index=True)
    sku = Column(String(100), index=True)
    title = Column(Text, nullable=False)

    current_price = Column(Numeric(10, 2), nullable=False, default=0)
    original_price = Column(Numeric(10, 2))
    quantity_available = Column(Integer, default=0)
    status = Column(String(20), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
