"""Persistence for rental agreements. Every query is scoped by primary key or lease id;
status changes go through transition(), a conditional UPDATE that only one writer can win."""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, joinedload

from app.database import execute_with_retry
from app.errors import InvalidState, NotFound
from app.models.agreement import AgreementStatus, RentalAgreement
from app.models.lease import Lease
from app.models.property import Property
from app.models.user import User
from app.services.clock import utcnow


def _with_parties(query):
    return query.options(
        joinedload(RentalAgreement.lease).joinedload(Lease.property),
        joinedload(RentalAgreement.lease).joinedload(Lease.landlord),
        joinedload(RentalAgreement.lease).joinedload(Lease.tenant),
    )


class AgreementStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, agreement_id: str) -> RentalAgreement:
        agreement = execute_with_retry(
            self.db,
            lambda: _with_parties(self.db.query(RentalAgreement)).filter(RentalAgreement.id == agreement_id).first(),
            "Load agreement",
        )
        if not agreement:
            raise NotFound("Agreement not found")
        return agreement

    def get_by_lease(self, lease_id: str) -> RentalAgreement:
        agreement = execute_with_retry(
            self.db,
            lambda: _with_parties(self.db.query(RentalAgreement)).filter(RentalAgreement.lease_id == lease_id).first(),
            "Load agreement by lease",
        )
        if not agreement:
            raise NotFound("Agreement not found for this lease")
        return agreement

    def create(self, lease_id: str, document_hash: str, pdf_url: str | None = None) -> RentalAgreement:
        existing = self.db.query(RentalAgreement.id).filter(RentalAgreement.lease_id == lease_id).first()
        if existing:
            raise InvalidState("An agreement already exists for this lease")
        agreement = RentalAgreement(
            lease_id=lease_id,
            status=AgreementStatus.DRAFT,
            document_hash=document_hash,
            current_version=1,
            pdf_url=pdf_url,
            generated_at=utcnow(),
        )
        self.db.add(agreement)
        try:
            self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent create for the same lease
            self.db.rollback()
            raise InvalidState("An agreement already exists for this lease")
        return agreement

    def update(self, agreement_id: str, patch: dict[str, Any]) -> RentalAgreement:
        agreement = self.get(agreement_id)
        for key, value in patch.items():
            setattr(agreement, key, value)
        agreement.updated_at = utcnow()
        self.db.flush()
        return agreement

    def transition(
        self,
        agreement_id: str,
        expected_status: AgreementStatus,
        patch: dict[str, Any],
        expected_version: int | None = None,
    ) -> RentalAgreement | None:
        """Apply patch only if the row is still in expected_status (and expected_version, if given).

        Returns the refreshed agreement, or None when another writer moved the
        row first (or it does not exist). Commit remains with the caller.
        """
        values = dict(patch)
        values.setdefault("updated_at", utcnow())
        query = self.db.query(RentalAgreement).filter(
            RentalAgreement.id == agreement_id,
            RentalAgreement.status == expected_status,
        )
        if expected_version is not None:
            query = query.filter(RentalAgreement.current_version == expected_version)
        updated = query.update(values, synchronize_session=False)
        if updated != 1:
            return None
        return (
            _with_parties(self.db.query(RentalAgreement))
            .populate_existing()
            .filter(RentalAgreement.id == agreement_id)
            .first()
        )

    def list_for_user(self, user_id: str) -> list[RentalAgreement]:
        return execute_with_retry(
            self.db,
            lambda: _with_parties(self.db.query(RentalAgreement))
            .join(Lease, RentalAgreement.lease_id == Lease.id)
            .filter(or_(Lease.landlord_id == user_id, Lease.tenant_id == user_id))
            .order_by(RentalAgreement.generated_at.desc())
            .all(),
            "List agreements for user",
        )

    def search(
        self,
        status: AgreementStatus | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[RentalAgreement], int]:
        landlord = aliased(User)
        tenant = aliased(User)
        query = (
            self.db.query(RentalAgreement)
            .join(Lease, RentalAgreement.lease_id == Lease.id)
            .join(Property, Lease.property_id == Property.id)
            .join(landlord, Lease.landlord_id == landlord.id)
            .join(tenant, Lease.tenant_id == tenant.id)
        )
        if status is not None:
            query = query.filter(RentalAgreement.status == status)
        term = (search or "").strip()
        if term:
            like = f"%{term}%"
            query = query.filter(
                or_(
                    Property.title.ilike(like),
                    Property.address.ilike(like),
                    landlord.name.ilike(like),
                    landlord.email.ilike(like),
                    tenant.name.ilike(like),
                    tenant.email.ilike(like),
                )
            )
        total = query.count()
        items = (
            _with_parties(query)
            .order_by(RentalAgreement.generated_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def count_by_status(self) -> dict[AgreementStatus, int]:
        rows = (
            self.db.query(RentalAgreement.status, func.count(RentalAgreement.id))
            .group_by(RentalAgreement.status)
            .all()
        )
        counts = {status: 0 for status in AgreementStatus}
        for status, count in rows:
            counts[status] = count
        return counts
