"""Agreement signing workflow.

DRAFT -> PENDING_LANDLORD -> PENDING_TENANT -> COMPLETED, with CANCELLED reachable
from any non-terminal state (landlord only) and EXPIRED applied passively on read
once expires_at has passed. Every status change is a conditional update on the
expected status, so of two concurrent requests only one can move the row.

Each successful mutation is committed together with its audit entry; emails are
handed to the dispatch callable afterwards and never affect the outcome.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import AccessDenied, InvalidState, ValidationError
from app.models.agreement import AgreementStatus, RentalAgreement
from app.models.audit_log import AgreementAuditLog
from app.services import audit_log
from app.services.access import PartyRole, can_user_sign, is_past_expiry, require_landlord, resolve_role
from app.services.agreement_store import AgreementStore
from app.services.clock import as_utc, utcnow
from app.services.documents import build_lease_agreement, sha256_hex
from app.services.notifications import AgreementNotice, AgreementNotifier, Party, dispatch_safely

logger = logging.getLogger(__name__)

Dispatch = Callable[..., None]

_TERMINAL_MESSAGES = {
    AgreementStatus.COMPLETED: "Agreement is already completed",
    AgreementStatus.EXPIRED: "Agreement has expired",
    AgreementStatus.CANCELLED: "Agreement has been cancelled",
}


def signature_hash(signature: str, ip_address: str | None, signed_at: datetime) -> str:
    """Hash of the signature evidence; the raw signature is never stored."""
    return sha256_hex(f"{signature}{ip_address or ''}{signed_at.isoformat()}")


def truncate_hash(value: str | None) -> str | None:
    return f"{value[:8]}..." if value else None


def build_notice(agreement: RentalAgreement) -> AgreementNotice:
    lease = agreement.lease
    prop = lease.property if lease else None
    landlord = lease.landlord if lease else None
    tenant = lease.tenant if lease else None
    return AgreementNotice(
        agreement_id=agreement.id,
        status=agreement.status.value,
        property_title=prop.title if prop else "your rental",
        property_address=", ".join(p for p in [prop.address, prop.city] if p) if prop else "",
        landlord=Party(name=landlord.name if landlord else "", email=landlord.email if landlord else ""),
        tenant=Party(name=tenant.name if tenant else "", email=tenant.email if tenant else ""),
        expires_at=as_utc(agreement.expires_at),
        completed_at=as_utc(agreement.completed_at),
        cancel_reason=agreement.cancel_reason,
    )


def _run_now(fn, *args) -> None:
    dispatch_safely(fn, *args)


@dataclass
class AgreementView:
    agreement: RentalAgreement
    role: PartyRole
    can_sign: bool


class SigningWorkflow:
    def __init__(
        self,
        db: Session,
        notifier: AgreementNotifier | None = None,
        dispatch: Dispatch | None = None,
    ):
        self.db = db
        self.store = AgreementStore(db)
        self.notifier = notifier
        self.dispatch = dispatch or _run_now
        self.settings = get_settings()

    # --- helpers ---

    def _notify(self, fn_name: str, *args) -> None:
        if self.notifier is None:
            return
        fn = getattr(self.notifier, fn_name)
        try:
            self.dispatch(fn, *args)
        except Exception:
            logger.exception("Could not schedule notification %s", fn_name)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _ensure_not_terminal(self, agreement: RentalAgreement) -> None:
        message = _TERMINAL_MESSAGES.get(agreement.status)
        if message:
            raise InvalidState(message)

    def _ensure_signable(self, agreement: RentalAgreement, expected: AgreementStatus, role: PartyRole) -> RentalAgreement:
        agreement = self.expire_if_due(agreement)
        self._ensure_not_terminal(agreement)
        if agreement.status != expected:
            raise InvalidState(f"Agreement is not awaiting {role.value} signature")
        return agreement

    @staticmethod
    def _validate_signature(signature: Any, confirmed: Any) -> str:
        if not isinstance(signature, str) or not signature.strip():
            raise ValidationError("Signature is required")
        if confirmed is not True:
            raise ValidationError("You must confirm agreement to the terms")
        return signature

    def _validate_expiry_days(self, expires_in_days: Any) -> int:
        if expires_in_days is None:
            return self.settings.agreement_default_expiry_days
        max_days = self.settings.agreement_max_expiry_days
        if isinstance(expires_in_days, bool) or not isinstance(expires_in_days, int):
            raise ValidationError("expiresInDays must be a whole number of days")
        if not 1 <= expires_in_days <= max_days:
            raise ValidationError(f"expiresInDays must be between 1 and {max_days}")
        return expires_in_days

    # --- reads ---

    def expire_if_due(self, agreement: RentalAgreement) -> RentalAgreement:
        """Move a pending agreement past its deadline to EXPIRED. No-op otherwise."""
        if not agreement.status.is_pending or not is_past_expiry(agreement):
            return agreement
        previous = agreement.status
        updated = self.store.transition(
            agreement.id,
            previous,
            {"status": AgreementStatus.EXPIRED},
        )
        if updated is None:
            # Someone else changed it first; report what is stored now
            self.db.rollback()
            return self.store.get(agreement.id)
        audit_log.append(
            self.db,
            updated.id,
            None,
            audit_log.ACTION_EXPIRED,
            {"previous_status": previous, "expires_at": updated.expires_at},
        )
        self._commit()
        logger.info("Agreement %s expired (was %s)", updated.id, previous.value)
        return updated

    def get_with_access(self, agreement_id: str, user_id: str) -> AgreementView:
        agreement = self.store.get(agreement_id)
        role = resolve_role(agreement, user_id)
        agreement = self.expire_if_due(agreement)
        return AgreementView(agreement=agreement, role=role, can_sign=can_user_sign(agreement, user_id))

    def get_by_lease_with_access(self, lease_id: str, user_id: str) -> AgreementView:
        agreement = self.store.get_by_lease(lease_id)
        role = resolve_role(agreement, user_id)
        agreement = self.expire_if_due(agreement)
        return AgreementView(agreement=agreement, role=role, can_sign=can_user_sign(agreement, user_id))

    def list_for_user(self, user_id: str) -> list[AgreementView]:
        views = []
        for agreement in self.store.list_for_user(user_id):
            agreement = self.expire_if_due(agreement)
            views.append(
                AgreementView(
                    agreement=agreement,
                    role=resolve_role(agreement, user_id),
                    can_sign=can_user_sign(agreement, user_id),
                )
            )
        return views

    def audit_trail(self, agreement_id: str, user_id: str) -> list[AgreementAuditLog]:
        agreement = self.store.get(agreement_id)
        resolve_role(agreement, user_id)
        return audit_log.list_entries(self.db, agreement_id)

    def verification_summary(self, agreement_id: str) -> dict[str, Any]:
        """Public integrity spot-check. Signature hashes are only ever shown truncated."""
        agreement = self.expire_if_due(self.store.get(agreement_id))
        return {
            "agreementId": agreement.id,
            "status": agreement.status.value,
            "documentHash": agreement.document_hash,
            "signatures": {
                "landlord": {
                    "signed": agreement.landlord_signed,
                    "signedAt": as_utc(agreement.landlord_signed_at),
                    "signatureHash": truncate_hash(agreement.landlord_sign_hash),
                },
                "tenant": {
                    "signed": agreement.tenant_signed,
                    "signedAt": as_utc(agreement.tenant_signed_at),
                    "signatureHash": truncate_hash(agreement.tenant_sign_hash),
                },
            },
            "completedAt": as_utc(agreement.completed_at),
            "documentVersion": agreement.current_version,
            "verificationNote": "Document hashes can be verified against the original PDF to ensure integrity",
        }

    # --- transitions ---

    def initiate(self, agreement_id: str, user_id: str, expires_in_days: Any = None) -> RentalAgreement:
        agreement = self.store.get(agreement_id)
        require_landlord(agreement, user_id, "Only the landlord can initiate signing")
        days = self._validate_expiry_days(expires_in_days)
        self._ensure_not_terminal(agreement)
        if agreement.status != AgreementStatus.DRAFT:
            raise InvalidState("Signing has already been initiated for this agreement")

        expires_at = utcnow() + timedelta(days=days)
        updated = self.store.transition(
            agreement_id,
            AgreementStatus.DRAFT,
            {"status": AgreementStatus.PENDING_LANDLORD, "expires_at": expires_at},
        )
        if updated is None:
            self.db.rollback()
            raise InvalidState("Signing has already been initiated for this agreement")
        audit_log.append(
            self.db,
            agreement_id,
            user_id,
            audit_log.ACTION_INITIATED,
            {"expires_in_days": days, "expires_at": expires_at},
        )
        self._commit()

        notice = build_notice(updated)
        self._notify("send_signing_reminder", notice, PartyRole.landlord.value)
        self._notify("send_signing_reminder", notice, PartyRole.tenant.value)
        return updated

    def sign_as_landlord(
        self,
        agreement_id: str,
        user_id: str,
        signature: Any,
        confirmed: Any,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RentalAgreement:
        agreement = self.store.get(agreement_id)
        if resolve_role(agreement, user_id) != PartyRole.landlord:
            raise AccessDenied("Only the landlord can sign as landlord")
        agreement = self._ensure_signable(agreement, AgreementStatus.PENDING_LANDLORD, PartyRole.landlord)
        signature = self._validate_signature(signature, confirmed)

        signed_at = utcnow()
        sign_hash = signature_hash(signature, ip_address, signed_at)
        updated = self.store.transition(
            agreement_id,
            AgreementStatus.PENDING_LANDLORD,
            {
                "status": AgreementStatus.PENDING_TENANT,
                "landlord_signed": True,
                "landlord_signed_at": signed_at,
                "landlord_sign_hash": sign_hash,
                "landlord_sign_ip": ip_address,
            },
        )
        if updated is None:
            self.db.rollback()
            raise InvalidState("Agreement is not awaiting landlord signature")
        audit_log.append(
            self.db,
            agreement_id,
            user_id,
            audit_log.ACTION_LANDLORD_SIGNED,
            {"document_hash": updated.document_hash, "document_version": updated.current_version},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._commit()
        logger.info("Agreement %s signed by landlord", agreement_id)

        self._notify("send_signing_reminder", build_notice(updated), PartyRole.tenant.value)
        return updated

    def sign_as_tenant(
        self,
        agreement_id: str,
        user_id: str,
        signature: Any,
        confirmed: Any,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RentalAgreement:
        agreement = self.store.get(agreement_id)
        if resolve_role(agreement, user_id) != PartyRole.tenant:
            raise AccessDenied("Only the tenant can sign as tenant")
        if not agreement.landlord_signed:
            audit_log.append(
                self.db,
                agreement_id,
                user_id,
                audit_log.ACTION_SIGN_REJECTED,
                {"reason": "landlord_not_signed", "status": agreement.status},
                ip_address=ip_address,
                user_agent=user_agent,
            )
            self._commit()
            raise AccessDenied("Landlord must sign first")
        agreement = self._ensure_signable(agreement, AgreementStatus.PENDING_TENANT, PartyRole.tenant)
        signature = self._validate_signature(signature, confirmed)

        signed_at = utcnow()
        sign_hash = signature_hash(signature, ip_address, signed_at)
        updated = self.store.transition(
            agreement_id,
            AgreementStatus.PENDING_TENANT,
            {
                "status": AgreementStatus.COMPLETED,
                "tenant_signed": True,
                "tenant_signed_at": signed_at,
                "tenant_sign_hash": sign_hash,
                "tenant_sign_ip": ip_address,
                "completed_at": signed_at,
            },
        )
        if updated is None:
            self.db.rollback()
            raise InvalidState("Agreement is not awaiting tenant signature")
        audit_log.append(
            self.db,
            agreement_id,
            user_id,
            audit_log.ACTION_TENANT_SIGNED,
            {"document_hash": updated.document_hash, "document_version": updated.current_version},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        audit_log.append(self.db, agreement_id, user_id, audit_log.ACTION_COMPLETED, {"completed_at": signed_at})
        self._commit()
        logger.info("Agreement %s completed", agreement_id)

        notice = build_notice(updated)
        self._notify("send_agreement_completed", notice, PartyRole.landlord.value)
        self._notify("send_agreement_completed", notice, PartyRole.tenant.value)
        return updated

    def cancel(self, agreement_id: str, user_id: str, reason: Any) -> RentalAgreement:
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("Cancellation reason is required")
        reason = reason.strip()
        agreement = self.store.get(agreement_id)
        require_landlord(agreement, user_id, "Only the landlord can cancel the agreement")
        agreement = self.expire_if_due(agreement)
        self._ensure_not_terminal(agreement)

        previous = agreement.status
        cancelled_at = utcnow()
        updated = self.store.transition(
            agreement_id,
            previous,
            {"status": AgreementStatus.CANCELLED, "cancelled_at": cancelled_at, "cancel_reason": reason},
        )
        if updated is None:
            self.db.rollback()
            raise InvalidState("Agreement status changed, please reload and try again")
        audit_log.append(
            self.db,
            agreement_id,
            user_id,
            audit_log.ACTION_CANCELLED,
            {"reason": reason, "previous_status": previous},
        )
        self._commit()

        self._notify("send_agreement_cancelled", build_notice(updated), PartyRole.tenant.value)
        return updated

    def regenerate(self, agreement_id: str, user_id: str) -> RentalAgreement:
        """Rebuild the document for a draft (e.g. after lease terms changed) and bump its version."""
        agreement = self.store.get(agreement_id)
        require_landlord(agreement, user_id, "Only the landlord can regenerate the agreement")
        if agreement.status != AgreementStatus.DRAFT:
            raise InvalidState("Only draft agreements can be regenerated")

        version = agreement.current_version + 1
        doc = build_lease_agreement(agreement.lease, version=version)
        updated = self.store.transition(
            agreement_id,
            AgreementStatus.DRAFT,
            {"document_hash": doc.document_hash, "current_version": version, "generated_at": utcnow()},
            expected_version=agreement.current_version,
        )
        if updated is None:
            self.db.rollback()
            raise InvalidState("Agreement changed while regenerating, please reload and try again")
        audit_log.append(
            self.db,
            agreement_id,
            user_id,
            audit_log.ACTION_REGENERATED,
            {"version": version, "document_hash": doc.document_hash},
        )
        self._commit()
        return updated

    def remind(self, agreement_id: str, actor_user_id: str | None = None) -> PartyRole:
        """Email the party whose signature is outstanding. Returns that party's role."""
        agreement = self.expire_if_due(self.store.get(agreement_id))
        if agreement.status == AgreementStatus.PENDING_LANDLORD:
            role = PartyRole.landlord
        elif agreement.status == AgreementStatus.PENDING_TENANT:
            role = PartyRole.tenant
        else:
            raise InvalidState("Reminders can only be sent for agreements awaiting a signature")
        audit_log.append(self.db, agreement_id, actor_user_id, audit_log.ACTION_REMINDER_SENT, {"role": role})
        self._commit()
        self._notify("send_signing_reminder", build_notice(agreement), role.value)
        return role
