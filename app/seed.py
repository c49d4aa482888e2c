"""Demo data: a landlord with one property, a tenant with a pending booking, and an admin."""
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models.lease import Lease, LeaseStatus
from app.models.property import Property
from app.models.user import User, UserRole
from app.services.auth import get_password_hash

DEMO_PASSWORD = "Password123!"
LANDLORD_EMAIL = "landlord@rentverse.demo"
TENANT_EMAIL = "tenant@rentverse.demo"
ADMIN_EMAIL = "admin@rentverse.demo"


def _get_or_create_user(db: Session, email: str, name: str, role: UserRole, password: str) -> User:
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(email=email, name=name, role=role, hashed_password=get_password_hash(password))
    db.add(user)
    db.flush()
    return user


def seed_demo_data(db: Session, password: str = DEMO_PASSWORD) -> dict[str, str]:
    """Idempotent. Returns the ids of the seeded records."""
    landlord = _get_or_create_user(db, LANDLORD_EMAIL, "Demo Landlord", UserRole.user, password)
    tenant = _get_or_create_user(db, TENANT_EMAIL, "Demo Tenant", UserRole.user, password)
    admin = _get_or_create_user(db, ADMIN_EMAIL, "Demo Admin", UserRole.admin, password)

    prop = db.query(Property).filter(Property.owner_id == landlord.id).first()
    if not prop:
        prop = Property(
            owner_id=landlord.id,
            title="Cozy Studio near KLCC",
            address="12 Jalan Ampang",
            city="Kuala Lumpur",
        )
        db.add(prop)
        db.flush()

    lease = db.query(Lease).filter(Lease.property_id == prop.id, Lease.tenant_id == tenant.id).first()
    if not lease:
        start = date.today() + timedelta(days=14)
        lease = Lease(
            property_id=prop.id,
            landlord_id=landlord.id,
            tenant_id=tenant.id,
            start_date=start,
            end_date=start + timedelta(days=365),
            rent_amount=Decimal("1800.00"),
            currency_code="MYR",
            status=LeaseStatus.PENDING,
        )
        db.add(lease)
        db.flush()

    db.commit()
    return {
        "landlord_id": landlord.id,
        "tenant_id": tenant.id,
        "admin_id": admin.id,
        "property_id": prop.id,
        "lease_id": lease.id,
    }
