"""Domain errors raised by services and mapped to HTTP responses in app.exception_handlers."""


class AgreementError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AgreementError):
    """Missing or invalid input."""
    status_code = 400


class AccessDenied(AgreementError):
    """Caller is not a party, or not the party allowed to perform the action."""
    status_code = 403


class NotFound(AgreementError):
    status_code = 404


class InvalidState(AgreementError):
    """Operation is not valid for the agreement's current status."""
    status_code = 400
