"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Base.metadata.create_all() creates every table; no migration scripts needed for fresh installs.
"""
from app.models.user import User, UserRole
from app.models.property import Property
from app.models.lease import Lease, LeaseStatus
from app.models.agreement import RentalAgreement, AgreementStatus
from app.models.audit_log import AgreementAuditLog

__all__ = [
    "User",
    "UserRole",
    "Property",
    "Lease",
    "LeaseStatus",
    "RentalAgreement",
    "AgreementStatus",
    "AgreementAuditLog",
]
