from sqlalchemy import Column, String, DateTime, Date, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class Sale(Base):
    __tablename__ = "sales"
    __table_args__ = (
        UniqueConstraint("user_id", "dedupe_key", name="uq_sales_user_dedupe"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    item_id = Column(String(36), ForeignKey('items.id'), nullable=False, index=True)

    listed_date = Column(Date)
    sale_date = Column(Date, nullable=False, index=True)
    offer_start_date = Column(Date)
    offer_expiration_date = Column(Date)

    listed_price = Column(Numeric(10, 2), nullable=False, default=0)
    sale_price = Column(Numeric(10, 2), nullable=False, default=0)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    supplies_cost = Column(Numeric(10, 2), nullable=False, default=0)
    net_profit = Column(Numeric(10, 2), nullable=False, default=0)

    dedupe_key = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    item = relationship("Item", back_populates="sales")
