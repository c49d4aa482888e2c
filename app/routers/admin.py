"""Admin agreement dashboard: listing, statistics, detail with audit trail, manual reminders."""
from fastapi import APIRouter, Depends, Query

from app.dependencies import get_workflow, require_admin
from app.errors import ValidationError
from app.models.agreement import AgreementStatus
from app.models.user import User
from app.schemas.agreements import AgreementResponse, AuditEntryResponse
from app.schemas.common import ok
from app.services import audit_log
from app.services.signing import SigningWorkflow

router = APIRouter(prefix="/api/admin/agreements", tags=["admin"])


def _parse_status(value: str | None) -> AgreementStatus | None:
    raw = (value or "").strip().upper()
    if not raw or raw == "ALL":
        return None
    try:
        return AgreementStatus(raw)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}")


@router.get("")
def list_agreements(
    status: str | None = Query(None),
    search: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    page: int = Query(1, ge=1),
    _admin: User = Depends(require_admin),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    items, total = workflow.store.search(
        status=_parse_status(status),
        search=search,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return ok({
        "agreements": [AgreementResponse.model_validate(a).model_dump(mode="json", by_alias=True) for a in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    })


@router.get("/statistics")
def agreement_statistics(
    _admin: User = Depends(require_admin),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    counts = workflow.store.count_by_status()
    total = sum(counts.values())
    completed = counts[AgreementStatus.COMPLETED]
    pending = counts[AgreementStatus.PENDING_LANDLORD] + counts[AgreementStatus.PENDING_TENANT]
    return ok({
        "total": total,
        "byStatus": {status.value: count for status, count in counts.items()},
        "pending": pending,
        "completed": completed,
        "completionRate": round(completed / total * 100, 1) if total else 0.0,
    })


@router.get("/{agreement_id}")
def get_agreement_detail(
    agreement_id: str,
    _admin: User = Depends(require_admin),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    agreement = workflow.expire_if_due(workflow.store.get(agreement_id))
    entries = audit_log.list_entries(workflow.db, agreement_id)
    return ok({
        "agreement": AgreementResponse.model_validate(agreement).model_dump(mode="json", by_alias=True),
        "auditTrail": [AuditEntryResponse.model_validate(e).model_dump(mode="json", by_alias=True) for e in entries],
    })


@router.post("/{agreement_id}/remind")
def send_reminder(
    agreement_id: str,
    admin: User = Depends(require_admin),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    role = workflow.remind(agreement_id, actor_user_id=admin.id)
    return ok({"recipientRole": role.value}, message=f"Reminder sent to {role.value}")
