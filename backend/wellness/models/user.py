# backend/wellness/models/user.py
"""
User model for the wellness marketplace.

A single users table backs all three sides of the marketplace; the role
column holds the normalized RoleName value.
"""

import logging

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """Authentication identity for customers, therapists and business owners."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(String(20), nullable=False, default=RoleName.CUSTOMER.value)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    therapist_profile = relationship("Therapist", back_populates="user", uselist=False)
    owned_businesses = relationship("Business", back_populates="owner")

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} ({self.role})>"
