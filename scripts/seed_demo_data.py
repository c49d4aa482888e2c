"""
Create demo users (landlord, tenant, admin), a property and a pending booking.
Use to try the agreement flow locally without the frontend.

Run from project root:
  python scripts/seed_demo_data.py

Credentials are printed at the end. Confirm the booking as the landlord
(POST /api/bookings/{lease_id}/confirm) to create the draft agreement.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.database import Base, SessionLocal, engine
from app.models import User, Property, Lease, RentalAgreement, AgreementAuditLog  # noqa: F401
from app.seed import ADMIN_EMAIL, DEMO_PASSWORD, LANDLORD_EMAIL, TENANT_EMAIL, seed_demo_data


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ids = seed_demo_data(db)
    finally:
        db.close()

    print("Demo data ready.")
    print(f"  Landlord: {LANDLORD_EMAIL} / {DEMO_PASSWORD}")
    print(f"  Tenant:   {TENANT_EMAIL} / {DEMO_PASSWORD}")
    print(f"  Admin:    {ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"  Pending booking (lease) id: {ids['lease_id']}")


if __name__ == "__main__":
    main()
