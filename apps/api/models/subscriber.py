"""Subscriber model and its package assignment."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Table
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


SUBSCRIBER_STATUS_FRESH = "Fresh"
SUBSCRIBER_STATUS_ACTIVE = "Active"
SUBSCRIBER_STATUS_INACTIVE = "Inactive"
SUBSCRIBER_STATUSES = (SUBSCRIBER_STATUS_FRESH, SUBSCRIBER_STATUS_ACTIVE, SUBSCRIBER_STATUS_INACTIVE)


subscriber_packages = Table(
    "subscriber_packages",
    Base.metadata,
    Column("subscriber_id", String, ForeignKey("subscribers.id", ondelete="CASCADE"), primary_key=True),
    Column("package_id", String, ForeignKey("packages.id"), primary_key=True),
)


class Subscriber(Base):
    """End-user device whose packages are paid for by its reseller."""

    __tablename__ = "subscribers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    reseller_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    subscriber_name = Column(String, nullable=False)
    serial_number = Column(String, nullable=False)
    mac_address = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=SUBSCRIBER_STATUS_FRESH)
    expiry_date = Column(DateTime(timezone=True), server_default=func.now())
    primary_package_id = Column(String, ForeignKey("packages.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    reseller = relationship("User", back_populates="subscribers")
    packages = relationship("Package", secondary=subscriber_packages)
    primary_package = relationship("Package", foreign_keys=[primary_package_id])
