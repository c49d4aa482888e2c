"""Leases (confirmed or requested bookings). Owns at most one RentalAgreement."""
import enum

from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Numeric, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.models.user import new_id


class LeaseStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class Lease(Base):
    __tablename__ = "leases"

    id = Column(String(36), primary_key=True, default=new_id)
    property_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    landlord_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    tenant_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    rent_amount = Column(Numeric(12, 2), nullable=False)
    currency_code = Column(String(3), nullable=False, default="MYR")
    status = Column(SQLEnum(LeaseStatus), nullable=False, default=LeaseStatus.PENDING)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    property = relationship("Property")
    landlord = relationship("User", foreign_keys=[landlord_id])
    tenant = relationship("User", foreign_keys=[tenant_id])
    agreement = relationship("RentalAgreement", back_populates="lease", uselist=False)
