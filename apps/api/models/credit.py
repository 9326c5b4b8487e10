"""Credit model for balance transfer records."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


CREDIT_TYPE_DEBIT = "Debit"
CREDIT_TYPE_REVERSE_CREDIT = "Reverse Credit"
CREDIT_TYPES = (CREDIT_TYPE_DEBIT, CREDIT_TYPE_REVERSE_CREDIT)


class Credit(Base):
    """One completed transfer between a sender and a target account."""

    __tablename__ = "credits"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_credits_amount_positive"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    # Null only on records written before senders were tracked.
    sender_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("User", foreign_keys=[user_id], back_populates="credits_received")
    sender = relationship("User", foreign_keys=[sender_id])
