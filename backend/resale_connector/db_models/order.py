from sqlalchemy import Column, String, DateTime, Numeric, Text, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class EbaySale(Base):
    """Canonical eBay order, keyed by the Fulfillment API ``orderId``."""

    __tablename__ = "ebay_sales"
    __table_args__ = (
        UniqueConstraint("user_id", "order_id", name="uq_ebay_sales_user_order_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    order_id = Column(String(100), nullable=False, index=True)
    legacy_order_id = Column(String(100))
    buyer_username = Column(String(100), index=True)

    # Summary of the first line item
    item_id = Column(String(100))
    title = Column(Text, nullable=False)
    sku = Column(String(100), index=True)
    quantity = Column(Integer, nullable=False, default=1)

    item_price = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    sales_tax = Column(Numeric(10, 2), nullable=False, default=0)
    ebay_fees = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    order_date = Column(DateTime(timezone=True), nullable=False, index=True)
    order_status = Column(String(20), nullable=False, index=True)

    raw_order_data = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
