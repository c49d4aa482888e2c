"""Bookings: a tenant requests a lease, the landlord confirms it and the draft agreement is created."""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.dependencies import get_current_user, get_notifier
from app.errors import AccessDenied, InvalidState, NotFound, ValidationError
from app.models.lease import Lease, LeaseStatus
from app.models.property import Property
from app.models.user import User
from app.schemas.agreements import LeaseSummary
from app.schemas.bookings import BookingConfirmResponse, BookingCreate
from app.schemas.common import ok
from app.services import audit_log
from app.services.agreement_store import AgreementStore
from app.services.documents import build_lease_agreement
from app.services.notifications import AgreementNotifier, BookingNotice, Party, dispatch_safely

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bookings", tags=["bookings"])


@router.post("")
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    prop = db.query(Property).filter(Property.id == data.property_id).first()
    if not prop:
        raise NotFound("Property not found")
    if prop.owner_id == current_user.id:
        raise ValidationError("You cannot book your own property")
    lease = Lease(
        property_id=prop.id,
        landlord_id=prop.owner_id,
        tenant_id=current_user.id,
        start_date=data.start_date,
        end_date=data.end_date,
        rent_amount=data.rent_amount,
        currency_code=data.currency_code.upper(),
        status=LeaseStatus.PENDING,
    )
    db.add(lease)
    db.commit()
    db.refresh(lease)
    return ok(LeaseSummary.model_validate(lease), message="Booking requested")


@router.post("/{lease_id}/confirm")
def confirm_booking(
    lease_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: AgreementNotifier = Depends(get_notifier),
):
    lease = db.query(Lease).filter(Lease.id == lease_id).first()
    if not lease:
        raise NotFound("Booking not found")
    if lease.landlord_id != current_user.id:
        raise AccessDenied("Only the landlord can confirm this booking")
    if lease.status != LeaseStatus.PENDING:
        raise InvalidState(f"Booking is already {lease.status.value.lower()}")

    doc = build_lease_agreement(lease)
    store = AgreementStore(db)
    lease.status = LeaseStatus.APPROVED
    agreement = store.create(lease.id, doc.document_hash)
    agreement.pdf_url = f"{get_settings().public_base_url.rstrip('/')}/api/agreements/{agreement.id}/pdf"
    audit_log.append(
        db,
        agreement.id,
        current_user.id,
        audit_log.ACTION_CREATED,
        {"lease_id": lease.id, "document_hash": doc.document_hash, "version": 1},
    )
    db.commit()
    db.refresh(lease)
    log.info("Booking %s confirmed, agreement %s created", lease.id, agreement.id)

    notice = BookingNotice(
        lease_id=lease.id,
        agreement_id=agreement.id,
        property_title=lease.property.title,
        property_address=", ".join(p for p in [lease.property.address, lease.property.city] if p),
        start_date=lease.start_date,
        end_date=lease.end_date,
        rent=f"{lease.currency_code} {lease.rent_amount:,.2f}",
        landlord=Party(name=lease.landlord.name, email=lease.landlord.email),
        tenant=Party(name=lease.tenant.name, email=lease.tenant.email),
    )
    background_tasks.add_task(dispatch_safely, notifier.send_booking_confirmation, notice)

    return ok(
        BookingConfirmResponse(lease=LeaseSummary.model_validate(lease), agreement_id=agreement.id),
        message="Booking confirmed",
    )
