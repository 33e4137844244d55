# backend/wellness/models/business.py
"""
Business and service catalog models.

Classes:
    Business: A wellness business with daily opening hours
    Service: A bookable offering owned by one business
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Table, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

service_therapists = Table(
    "service_therapists",
    Base.metadata,
    Column("service_id", String(26), ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "therapist_id", String(26), ForeignKey("therapists.id", ondelete="CASCADE"), primary_key=True
    ),
)


class Business(Base):
    """A business owned by one user, open between opening_time and closing_time daily."""

    __tablename__ = "businesses"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    opening_time = Column(String(5), nullable=False, default="09:00")
    closing_time = Column(String(5), nullable=False, default="18:00")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    owner = relationship("User", back_populates="owned_businesses")
    services = relationship("Service", back_populates="business")

    def __repr__(self) -> str:
        return f"<Business {self.id} {self.name} {self.opening_time}-{self.closing_time}>"


class Service(Base):
    """Bookable service. Price is in the business's currency, duration in minutes."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    business_id = Column(String(26), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    business = relationship("Business", back_populates="services")
    therapists = relationship("Therapist", secondary=service_therapists, back_populates="services")

    def __repr__(self) -> str:
        return f"<Service {self.id} {self.name} price={self.price} duration={self.duration_minutes}>"
