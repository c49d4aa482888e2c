"""Who may see, sign or cancel an agreement, decided from the parties on its lease."""
import enum

from app.errors import AccessDenied
from app.models.agreement import AgreementStatus, RentalAgreement
from app.services.clock import as_utc, utcnow


class PartyRole(str, enum.Enum):
    landlord = "landlord"
    tenant = "tenant"


def resolve_role(agreement: RentalAgreement, user_id: str) -> PartyRole:
    lease = agreement.lease
    if lease is not None and lease.landlord_id == user_id:
        return PartyRole.landlord
    if lease is not None and lease.tenant_id == user_id:
        return PartyRole.tenant
    raise AccessDenied("Access denied")


def require_landlord(agreement: RentalAgreement, user_id: str, message: str = "Only the landlord can perform this action") -> None:
    if resolve_role(agreement, user_id) != PartyRole.landlord:
        raise AccessDenied(message)


def is_past_expiry(agreement: RentalAgreement) -> bool:
    expires_at = as_utc(agreement.expires_at)
    return expires_at is not None and utcnow() > expires_at


def can_user_sign(agreement: RentalAgreement, user_id: str) -> bool:
    try:
        role = resolve_role(agreement, user_id)
    except AccessDenied:
        return False
    if is_past_expiry(agreement):
        return False
    if role == PartyRole.landlord:
        return agreement.status == AgreementStatus.PENDING_LANDLORD and not agreement.landlord_signed
    return (
        agreement.status == AgreementStatus.PENDING_TENANT
        and agreement.landlord_signed
        and not agreement.tenant_signed
    )
