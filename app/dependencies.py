"""Shared dependencies: DB session, current user, notifier, signing workflow."""
from fastapi import BackgroundTasks, Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.config import get_settings
from app.database import get_db
from app.models.user import User, UserRole
from app.services.auth import decode_token_with_error
from app.services.notifications import AgreementNotifier, EmailService, dispatch_safely
from app.services.signing import SigningWorkflow

security = HTTPBearer(auto_error=False)


def get_current_user(
    db: Session = Depends(get_db),
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    token_str = (credentials.credentials or "").strip()
    payload, _ = decode_token_with_error(token_str)
    if not payload or not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    user = db.query(User).filter(User.id == str(payload["sub"])).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != UserRole.admin:
        raise HTTPException(status_code=403, detail="Admin role required")
    return current_user


def get_email_service(request: Request) -> EmailService:
    """The EmailService started by the app; falls back to an unstarted one outside the lifespan."""
    service = getattr(request.app.state, "email_service", None)
    if service is None:
        service = EmailService(get_settings())
    return service


def get_notifier(email: EmailService = Depends(get_email_service)) -> AgreementNotifier:
    return AgreementNotifier(email, frontend_url=get_settings().frontend_url)


def get_workflow(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: AgreementNotifier = Depends(get_notifier),
) -> SigningWorkflow:
    """Workflow whose notifications run after the response is sent."""

    def dispatch(fn, *args):
        background_tasks.add_task(dispatch_safely, fn, *args)

    return SigningWorkflow(db, notifier=notifier, dispatch=dispatch)


def client_ip(request: Request) -> str | None:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    return request.client.host if request.client else None


def client_user_agent(request: Request) -> str | None:
    return (request.headers.get("user-agent") or "").strip() or None
