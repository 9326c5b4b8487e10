"""User model for admin, distributor and reseller accounts."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


ROLE_ADMIN = "admin"
ROLE_DISTRIBUTOR = "distributor"
ROLE_RESELLER = "reseller"

STATUS_ACTIVE = "Active"
STATUS_INACTIVE = "Inactive"


class User(Base):
    """Account that can hold a balance and take part in credit transfers."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=ROLE_RESELLER, index=True)
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default=STATUS_ACTIVE, index=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    credits_received = relationship(
        "Credit",
        foreign_keys="Credit.user_id",
        back_populates="user",
    )
    subscribers = relationship("Subscriber", back_populates="reseller")
