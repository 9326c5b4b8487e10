"""Package model for the channel package catalog."""

import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from database import Base


class Package(Base):
    """Sellable channel package with a flat cost."""

    __tablename__ = "packages"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    cost = Column(Numeric(12, 2), nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
