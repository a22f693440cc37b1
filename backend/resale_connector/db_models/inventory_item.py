from sqlalchemy import Column, String, DateTime, Date, Numeric, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        UniqueConstraint("user_id", "dedupe_key", name="uq_inventory_items_user_dedupe"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    item_number = Column(String(100), index=True)
    description = Column(Text, nullable=False)
    minimum_price = Column(Numeric(10, 2))
    cost = Column(Numeric(10, 2))
    date_added = Column(Date, nullable=False)

    dedupe_key = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
