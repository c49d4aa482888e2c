"""Digital rental agreement endpoints: access-checked reads, signing workflow, audit and public verification."""
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import Response

from app.dependencies import client_ip, client_user_agent, get_current_user, get_workflow
from app.models.agreement import AgreementStatus
from app.models.user import User
from app.schemas.agreements import (
    AgreementResponse,
    AgreementWithAccess,
    AuditEntryResponse,
    CancelAgreementRequest,
    CancelResponse,
    InitiateSigningRequest,
    LandlordSignResponse,
    SignAgreementRequest,
    TenantSignResponse,
)
from app.schemas.common import ok
from app.services.access import resolve_role
from app.services.documents import agreement_content_to_pdf, build_lease_agreement, fill_signature_in_content
from app.services.signing import AgreementView, SigningWorkflow

router = APIRouter(prefix="/api/agreements", tags=["agreements"])


def _view(view: AgreementView) -> AgreementWithAccess:
    return AgreementWithAccess(
        agreement=AgreementResponse.model_validate(view.agreement),
        user_role=view.role.value,
        can_sign=view.can_sign,
    )


@router.get("/my-agreements")
def list_my_agreements(
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    """Agreements where the caller is landlord or tenant, newest first."""
    views = workflow.list_for_user(current_user.id)
    return ok([_view(v) for v in views])


@router.get("/lease/{lease_id}")
def get_agreement_by_lease(
    lease_id: str,
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    return ok(_view(workflow.get_by_lease_with_access(lease_id, current_user.id)))


@router.get("/{agreement_id}")
def get_agreement(
    agreement_id: str,
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    return ok(_view(workflow.get_with_access(agreement_id, current_user.id)))


@router.post("/{agreement_id}/initiate")
def initiate_signing(
    agreement_id: str,
    data: InitiateSigningRequest | None = Body(None),
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    days = data.expires_in_days if data else None
    agreement = workflow.initiate(agreement_id, current_user.id, expires_in_days=days)
    return ok(AgreementResponse.model_validate(agreement), message="Signing workflow initiated")


@router.post("/{agreement_id}/sign/landlord")
def sign_as_landlord(
    agreement_id: str,
    request: Request,
    body: Any = Body(None),
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    data = SignAgreementRequest.from_body(body)
    agreement = workflow.sign_as_landlord(
        agreement_id,
        current_user.id,
        signature=data.signature,
        confirmed=data.confirmed,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    return ok(LandlordSignResponse.model_validate(agreement), message="Landlord signature recorded successfully")


@router.post("/{agreement_id}/sign/tenant")
def sign_as_tenant(
    agreement_id: str,
    request: Request,
    body: Any = Body(None),
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    data = SignAgreementRequest.from_body(body)
    agreement = workflow.sign_as_tenant(
        agreement_id,
        current_user.id,
        signature=data.signature,
        confirmed=data.confirmed,
        ip_address=client_ip(request),
        user_agent=client_user_agent(request),
    )
    return ok(TenantSignResponse.model_validate(agreement), message="Agreement signed successfully! Both parties have signed.")


@router.get("/{agreement_id}/verify")
def verify_agreement(
    agreement_id: str,
    workflow: SigningWorkflow = Depends(get_workflow),
):
    """Public integrity check; no authentication."""
    return ok(workflow.verification_summary(agreement_id))


@router.post("/{agreement_id}/cancel")
def cancel_agreement(
    agreement_id: str,
    data: CancelAgreementRequest | None = Body(None),
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    reason = data.reason if data else None
    agreement = workflow.cancel(agreement_id, current_user.id, reason)
    return ok(CancelResponse.model_validate(agreement), message="Agreement cancelled")


@router.post("/{agreement_id}/regenerate")
def regenerate_agreement(
    agreement_id: str,
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    agreement = workflow.regenerate(agreement_id, current_user.id)
    return ok(AgreementResponse.model_validate(agreement), message="Agreement document regenerated")


@router.get("/{agreement_id}/audit")
def get_audit_trail(
    agreement_id: str,
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    entries = workflow.audit_trail(agreement_id, current_user.id)
    return ok([AuditEntryResponse.model_validate(e) for e in entries])


@router.get("/{agreement_id}/pdf")
def get_agreement_pdf(
    agreement_id: str,
    current_user: User = Depends(get_current_user),
    workflow: SigningWorkflow = Depends(get_workflow),
):
    """Render the agreement with any recorded signatures filled in."""
    agreement = workflow.store.get(agreement_id)
    resolve_role(agreement, current_user.id)
    lease = agreement.lease
    doc = build_lease_agreement(lease, version=agreement.current_version)
    content = doc.content
    if agreement.landlord_signed and agreement.landlord_signed_at:
        content = fill_signature_in_content(
            content, "Landlord", lease.landlord.name, agreement.landlord_signed_at.strftime("%Y-%m-%d")
        )
    if agreement.tenant_signed and agreement.tenant_signed_at:
        content = fill_signature_in_content(
            content, "Tenant", lease.tenant.name, agreement.tenant_signed_at.strftime("%Y-%m-%d")
        )
    pdf_bytes = agreement_content_to_pdf(doc.title, content)
    disposition = "attachment" if agreement.status == AgreementStatus.COMPLETED else "inline"
    filename = f"RentVerse-Agreement-{agreement.id}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )
