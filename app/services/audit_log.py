"""Append-only agreement audit log. Never update or delete - immutable audit trail."""
from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from app.models.audit_log import AgreementAuditLog

ACTION_CREATED = "created"
ACTION_REGENERATED = "regenerated"
ACTION_INITIATED = "initiated"
ACTION_LANDLORD_SIGNED = "landlord_signed"
ACTION_TENANT_SIGNED = "tenant_signed"
ACTION_COMPLETED = "completed"
ACTION_CANCELLED = "cancelled"
ACTION_EXPIRED = "expired"
ACTION_SIGN_REJECTED = "sign_rejected"
ACTION_REMINDER_SENT = "reminder_sent"

# Column limits (match model)
_ACTION_LEN = 64
_IP_LEN = 64
_USER_AGENT_LEN = 500


def _sanitize_meta_value(v: Any) -> Any:
    """Convert to JSON-serializable value so meta never raises on INSERT."""
    if v is None:
        return None
    if isinstance(v, (str, int, float, bool)):
        return v
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, enum.Enum):
        return getattr(v, "value", str(v))
    if isinstance(v, Decimal):
        return str(v)
    if isinstance(v, dict):
        return {str(k): _sanitize_meta_value(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_sanitize_meta_value(x) for x in v]
    return str(v)


def _sanitize_meta(meta: dict[str, Any] | None) -> dict[str, Any] | None:
    if meta is None:
        return None
    return {str(k): _sanitize_meta_value(v) for k, v in meta.items()}


def append(
    db: Session,
    agreement_id: str,
    actor_user_id: str | None,
    action: str,
    meta: dict[str, Any] | None = None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AgreementAuditLog:
    """Append one immutable audit entry. Timestamps are UTC (server_default).
    Commit remains with the caller so the entry lands in the same transaction as the change it records."""
    act = (action or "")[:_ACTION_LEN].strip()
    if not act:
        raise ValueError("audit action is required")
    entry = AgreementAuditLog(
        agreement_id=agreement_id,
        actor_user_id=actor_user_id,
        action=act,
        meta=_sanitize_meta(meta),
        ip_address=(ip_address[:_IP_LEN] if ip_address else None) or None,
        user_agent=(str(user_agent)[:_USER_AGENT_LEN] if user_agent else None) or None,
    )
    db.add(entry)
    db.flush()
    return entry


def list_entries(db: Session, agreement_id: str) -> list[AgreementAuditLog]:
    """All entries for one agreement in insertion order."""
    return (
        db.query(AgreementAuditLog)
        .filter(AgreementAuditLog.agreement_id == agreement_id)
        .order_by(AgreementAuditLog.id.asc())
        .all()
    )
