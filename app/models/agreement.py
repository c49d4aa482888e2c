"""Digital rental agreement: one per lease, signed landlord first, then tenant.
Never deleted; terminal states are COMPLETED, EXPIRED and CANCELLED."""
import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base
from app.models.user import new_id


class AgreementStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING_LANDLORD = "PENDING_LANDLORD"
    PENDING_TENANT = "PENDING_TENANT"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @property
    def is_pending(self) -> bool:
        return self in PENDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


PENDING_STATUSES = frozenset({AgreementStatus.PENDING_LANDLORD, AgreementStatus.PENDING_TENANT})
TERMINAL_STATUSES = frozenset({AgreementStatus.COMPLETED, AgreementStatus.EXPIRED, AgreementStatus.CANCELLED})


class RentalAgreement(Base):
    __tablename__ = "rental_agreements"

    id = Column(String(36), primary_key=True, default=new_id)
    lease_id = Column(String(36), ForeignKey("leases.id"), unique=True, nullable=False, index=True)

    status = Column(SQLEnum(AgreementStatus), nullable=False, default=AgreementStatus.DRAFT, index=True)

    # Integrity anchor: SHA-256 of the generated document content
    document_hash = Column(String(64), nullable=False)
    current_version = Column(Integer, nullable=False, default=1)
    pdf_url = Column(String(500), nullable=True)

    landlord_signed = Column(Boolean, nullable=False, default=False)
    landlord_signed_at = Column(DateTime(timezone=True), nullable=True)
    landlord_sign_hash = Column(String(64), nullable=True)
    landlord_sign_ip = Column(String(64), nullable=True)

    tenant_signed = Column(Boolean, nullable=False, default=False)
    tenant_signed_at = Column(DateTime(timezone=True), nullable=True)
    tenant_sign_hash = Column(String(64), nullable=True)
    tenant_sign_ip = Column(String(64), nullable=True)

    generated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    lease = relationship("Lease", back_populates="agreement")
