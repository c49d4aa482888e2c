"""Pytest configuration and shared fixtures."""
import os

# Must be set before app modules create the engine and read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["MAILGUN_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""

import uuid
from datetime import date, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base, get_db
from app.dependencies import get_email_service
from app.main import app
from app.models.agreement import AgreementStatus
from app.models.lease import Lease, LeaseStatus
from app.models.property import Property
from app.models.user import User, UserRole
from app.services.agreement_store import AgreementStore
from app.services.auth import create_access_token
from app.services.documents import build_lease_agreement
from app.services.notifications import AgreementNotifier
from app.services.signing import SigningWorkflow


class FakeEmailService:
    """Records outgoing mail instead of sending it."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    def send(self, to_email, subject, html_content, text_content=None):
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True

    def recipients(self) -> list[str]:
        return [m["to"] for m in self.sent]


@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'rentverse_test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def email() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def notifier(email) -> AgreementNotifier:
    return AgreementNotifier(email, frontend_url="http://frontend.test")


@pytest.fixture
def workflow(db, notifier) -> SigningWorkflow:
    return SigningWorkflow(db, notifier=notifier)


def make_user(db, name: str, role: UserRole = UserRole.user) -> User:
    user = User(
        email=f"{name.lower()}-{uuid.uuid4().hex[:6]}@rentverse.io",
        name=name,
        role=role,
        hashed_password="not-a-bcrypt-hash",
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def parties(db):
    """Landlord, tenant, an unrelated user, an admin and an approved lease between the first two."""
    landlord = make_user(db, "Landlord")
    tenant = make_user(db, "Tenant")
    stranger = make_user(db, "Stranger")
    admin = make_user(db, "Admin", role=UserRole.admin)
    prop = Property(owner_id=landlord.id, title="Sunny Loft", address="1 Jalan Bukit", city="Penang")
    db.add(prop)
    db.flush()
    lease = Lease(
        property_id=prop.id,
        landlord_id=landlord.id,
        tenant_id=tenant.id,
        start_date=date(2026, 11, 1),
        end_date=date(2027, 10, 31),
        rent_amount=Decimal("2500.00"),
        currency_code="MYR",
        status=LeaseStatus.APPROVED,
    )
    db.add(lease)
    db.commit()
    return SimpleNamespace(landlord=landlord, tenant=tenant, stranger=stranger, admin=admin, property=prop, lease=lease)


@pytest.fixture
def make_agreement(db, parties):
    """Create an agreement for the shared lease and drive it to the requested status."""

    def _make(status: AgreementStatus = AgreementStatus.DRAFT, expires_in_days: int = 7) -> str:
        doc = build_lease_agreement(parties.lease)
        agreement = AgreementStore(db).create(parties.lease.id, doc.document_hash)
        db.commit()
        agreement_id = agreement.id
        wf = SigningWorkflow(db)
        if status == AgreementStatus.DRAFT:
            return agreement_id
        if status == AgreementStatus.CANCELLED:
            wf.cancel(agreement_id, parties.landlord.id, "Changed plans")
            return agreement_id
        wf.initiate(agreement_id, parties.landlord.id, expires_in_days=expires_in_days)
        if status == AgreementStatus.PENDING_LANDLORD:
            return agreement_id
        wf.sign_as_landlord(agreement_id, parties.landlord.id, "landlord-sig", True, ip_address="10.0.0.1")
        if status == AgreementStatus.PENDING_TENANT:
            return agreement_id
        wf.sign_as_tenant(agreement_id, parties.tenant.id, "tenant-sig", True, ip_address="10.0.0.2")
        return agreement_id

    return _make


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, user.role)}"}


@pytest.fixture
def client(session_factory, email):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_email_service] = lambda: email
    yield TestClient(app)
    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    """Bearer headers for a user, signed like a login response."""
    return _auth_headers
