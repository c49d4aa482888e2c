"""Append-only audit trail for rental agreements.
No updates or deletes - every record is permanent."""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from app.database import Base


class AgreementAuditLog(Base):
    __tablename__ = "agreement_audit_logs"

    # Autoincrement id doubles as insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)

    agreement_id = Column(String(36), ForeignKey("rental_agreements.id"), nullable=False, index=True)

    # NULL for system actions (passive expiry)
    actor_user_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    # created | initiated | landlord_signed | tenant_signed | completed | cancelled | expired | regenerated | ...
    action = Column(String(64), nullable=False, index=True)

    meta = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # Request context
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
