"""RentVerse API – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import Base, DatabaseKeepAlive, engine, ping_database
from app.exception_handlers import setup_exception_handlers
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from app.models import User, Property, Lease, RentalAgreement, AgreementAuditLog  # noqa: F401
from app.routers import admin, agreements, auth, bookings
from app.services.notifications import EmailService

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.frontend_url.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)

app.include_router(auth.router)
app.include_router(agreements.router)
app.include_router(bookings.router)
app.include_router(admin.router)


@app.on_event("startup")
def startup():
    app.state.email_service = EmailService(settings)
    app.state.email_service.start()

    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        log.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)

    app.state.db_keepalive = DatabaseKeepAlive(settings.db_keepalive_minutes)
    if settings.db_keepalive_enabled:
        app.state.db_keepalive.start()


@app.on_event("shutdown")
def shutdown():
    keepalive = getattr(app.state, "db_keepalive", None)
    if keepalive is not None:
        keepalive.stop()
    email_service = getattr(app.state, "email_service", None)
    if email_service is not None:
        email_service.stop()
    engine.dispose()


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    db_ok = ping_database()
    return {"status": "healthy" if db_ok else "degraded", "database": "up" if db_ok else "down"}
