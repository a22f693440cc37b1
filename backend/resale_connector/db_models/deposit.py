from sqlalchemy import Column, String, DateTime, Date, Numeric, Text, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class Deposit(Base):
    __tablename__ = "deposits"
    __table_args__ = (
        UniqueConstraint("user_id", "dedupe_key", name="uq_deposits_user_dedupe"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    sold_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    net_profit = Column(Numeric(10, 2))

    dedupe_key = Column(String(64), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
