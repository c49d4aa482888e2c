"""
Database connection, session and connection resilience.

Schema source of truth: app.models. On startup, Base.metadata.create_all(bind=engine)
creates all tables from the current models.

Transient connection failures (dropped connections, server restarts) are retried
with a linear backoff by execute_with_retry. Constraint and data errors are never
retried. DatabaseKeepAlive pings the server on a schedule so idle pooled
connections are not silently closed by the hosting provider.
"""
import logging
import time
from typing import Callable, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

settings = get_settings()


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    connect_args=_connect_args(settings.database_url),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_retryable(exc: Exception) -> bool:
    """Connection-class failures only; IntegrityError, DataError etc. are final."""
    if isinstance(exc, DisconnectionError):
        return True
    if isinstance(exc, OperationalError):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


def execute_with_retry(
    db: Session,
    operation: Callable[[], T],
    name: str = "Database operation",
    max_retries: int | None = None,
    delay_seconds: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run operation, retrying transient connection errors with a linear backoff.

    The session is rolled back between attempts so the next try starts on a fresh
    connection. Only use for idempotent work (reads, or a whole unit of work that
    has not been committed yet).
    """
    attempts = max_retries if max_retries is not None else settings.db_max_retries
    delay = delay_seconds if delay_seconds is not None else settings.db_retry_delay_seconds
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e) or attempt >= attempts:
                raise
            logger.warning(
                "[DB] %s failed (attempt %d/%d): %s. Retrying in %.1fs",
                name, attempt, attempts, type(e).__name__, delay * attempt,
            )
            db.rollback()
            sleep(delay * attempt)
            attempt += 1


def ping_database(bind=None) -> bool:
    """SELECT 1 against the pool; on failure dispose the pool so the next checkout reconnects."""
    bind = bind or engine
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.debug("[DB] Keep-alive ping ok")
        return True
    except Exception as e:
        logger.error("[DB] Keep-alive ping failed: %s", e)
        bind.dispose()
        return False


class DatabaseKeepAlive:
    """Periodic ping on a background scheduler. Construct once, start() on startup, stop() on shutdown."""

    JOB_ID = "db-keepalive"

    def __init__(self, interval_minutes: int, bind=None):
        self.interval_minutes = interval_minutes
        self.bind = bind
        self._scheduler = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        if self._scheduler is not None:
            return
        from apscheduler.schedulers.background import BackgroundScheduler

        scheduler = BackgroundScheduler()
        scheduler.add_job(
            ping_database,
            "interval",
            minutes=self.interval_minutes,
            id=self.JOB_ID,
            kwargs={"bind": self.bind},
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("[DB] Keep-alive started (every %d min)", self.interval_minutes)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[DB] Keep-alive stopped")
