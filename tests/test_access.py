from datetime import timedelta
from types import SimpleNamespace

import pytest

from app.errors import AccessDenied
from app.models.agreement import AgreementStatus
from app.services.access import PartyRole, can_user_sign, is_past_expiry, require_landlord, resolve_role
from app.services.clock import utcnow


def _agreement(status=AgreementStatus.PENDING_LANDLORD, landlord_signed=False, tenant_signed=False, expires_at=None):
    return SimpleNamespace(
        lease=SimpleNamespace(landlord_id="L", tenant_id="T"),
        status=status,
        landlord_signed=landlord_signed,
        tenant_signed=tenant_signed,
        expires_at=expires_at,
    )


def test_resolve_role_for_each_party():
    agreement = _agreement()
    assert resolve_role(agreement, "L") == PartyRole.landlord
    assert resolve_role(agreement, "T") == PartyRole.tenant


def test_resolve_role_rejects_outsiders():
    with pytest.raises(AccessDenied) as exc:
        resolve_role(_agreement(), "someone-else")
    assert exc.value.status_code == 403
    assert exc.value.message == "Access denied"


def test_require_landlord_uses_given_message():
    with pytest.raises(AccessDenied, match="Only the landlord can cancel"):
        require_landlord(_agreement(), "T", "Only the landlord can cancel the agreement")
    require_landlord(_agreement(), "L")


@pytest.mark.parametrize(
    "status,landlord_signed,tenant_signed,user,expected",
    [
        (AgreementStatus.PENDING_LANDLORD, False, False, "L", True),
        (AgreementStatus.PENDING_LANDLORD, False, False, "T", False),
        (AgreementStatus.PENDING_TENANT, True, False, "T", True),
        (AgreementStatus.PENDING_TENANT, True, False, "L", False),
        (AgreementStatus.DRAFT, False, False, "L", False),
        (AgreementStatus.COMPLETED, True, True, "T", False),
        (AgreementStatus.PENDING_TENANT, True, False, "stranger", False),
    ],
)
def test_can_user_sign(status, landlord_signed, tenant_signed, user, expected):
    agreement = _agreement(status, landlord_signed, tenant_signed)
    assert can_user_sign(agreement, user) is expected


def test_cannot_sign_after_deadline_even_before_expiry_is_recorded():
    agreement = _agreement(expires_at=utcnow() - timedelta(seconds=1))
    assert can_user_sign(agreement, "L") is False


def test_is_past_expiry():
    assert is_past_expiry(_agreement()) is False
    assert is_past_expiry(_agreement(expires_at=utcnow() + timedelta(days=1))) is False
    assert is_past_expiry(_agreement(expires_at=utcnow() - timedelta(seconds=1))) is True
