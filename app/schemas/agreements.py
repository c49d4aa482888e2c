"""Rental agreement request/response schemas."""
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import Field

from app.models.agreement import AgreementStatus
from app.models.lease import LeaseStatus
from app.schemas.common import APIModel, UTCDateTime


class UserSummary(APIModel):
    id: str
    name: str
    email: str


class PropertySummary(APIModel):
    id: str
    title: str
    address: str
    city: str | None = None


class LeaseSummary(APIModel):
    id: str
    start_date: date
    end_date: date
    rent_amount: Decimal
    currency_code: str
    status: LeaseStatus
    property: PropertySummary | None = None
    landlord: UserSummary | None = None
    tenant: UserSummary | None = None


class AgreementResponse(APIModel):
    """Agreement as shown to its parties. Signature hashes and IPs are not exposed."""
    id: str
    lease_id: str
    status: AgreementStatus
    document_hash: str
    current_version: int
    pdf_url: str | None = None

    landlord_signed: bool
    landlord_signed_at: UTCDateTime | None = None
    tenant_signed: bool
    tenant_signed_at: UTCDateTime | None = None

    generated_at: UTCDateTime | None = None
    expires_at: UTCDateTime | None = None
    completed_at: UTCDateTime | None = None
    cancelled_at: UTCDateTime | None = None
    cancel_reason: str | None = None

    lease: LeaseSummary | None = None


class AgreementWithAccess(APIModel):
    agreement: AgreementResponse
    user_role: str
    can_sign: bool


class InitiateSigningRequest(APIModel):
    expires_in_days: int | None = None


class SignAgreementRequest(APIModel):
    # Raw values; the workflow checks turn first, then signature and confirmed == true
    signature: Any = None
    confirmed: Any = None

    @classmethod
    def from_body(cls, body: Any) -> "SignAgreementRequest":
        return cls.model_validate(body) if isinstance(body, dict) else cls()


class CancelAgreementRequest(APIModel):
    reason: str | None = None


class LandlordSignResponse(APIModel):
    status: AgreementStatus
    landlord_signed_at: UTCDateTime | None = None
    next_step: str = "Waiting for tenant signature"


class TenantSignResponse(APIModel):
    status: AgreementStatus
    tenant_signed_at: UTCDateTime | None = None
    completed_at: UTCDateTime | None = None


class CancelResponse(APIModel):
    status: AgreementStatus
    cancelled_at: UTCDateTime | None = None
    reason: str | None = Field(default=None, validation_alias="cancel_reason")


class AuditEntryResponse(APIModel):
    id: int
    agreement_id: str
    actor_user_id: str | None = None
    action: str
    metadata: dict | None = Field(default=None, validation_alias="meta")
    ip_address: str | None = None
    timestamp: UTCDateTime = Field(validation_alias="created_at")
