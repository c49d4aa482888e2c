"""Map domain errors, HTTP errors and unexpected failures onto the {success, error} envelope."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.errors import AgreementError

log = logging.getLogger("uvicorn.error")


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = first.get("msg") or "Invalid value"
    return f"{loc}: {msg}" if loc else msg


def setup_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AgreementError)
    async def agreement_error_handler(request: Request, exc: AgreementError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        # Detail stays in the server log only
        log.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")
