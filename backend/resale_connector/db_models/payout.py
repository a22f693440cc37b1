from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from resale_connector.database import Base
import uuid


class EbayPayout(Base):
    """Issued payouts are immutable; rows are inserted once and never updated."""

    __tablename__ = "ebay_payouts"
    __table_args__ = (
        UniqueConstraint("user_id", "payout_id", name="uq_ebay_payouts_user_payout_id"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    payout_id = Column(String(100), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    payout_date = Column(DateTime(timezone=True), nullable=False, index=True)
    payout_status = Column(String(50))
    bank_account_last4 = Column(String(4))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
