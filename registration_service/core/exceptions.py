# registration_service/core/exceptions.py
"""
Domain errors raised by the crud and service layers.

Every error carries a stable ``code`` for clients, a human readable
``message`` naming the tracking number, ticket number or field involved,
and the HTTP status the API layer answers with.
"""
from typing import Any, Dict, Optional


class RegistrationServiceError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message, "code": self.code, "retryable": self.retryable}
        body.update(self.extra)
        return body


class NotFound(RegistrationServiceError):
    """Raised when a tracking number or ticket number does not exist."""

    code = "not_found"
    status_code = 404


class NotEligible(RegistrationServiceError):
    """Raised when ticket data is requested before payment is verified."""

    code = "processing"
    status_code = 409
    retryable = True


class NotVerified(RegistrationServiceError):
    """Raised when a ticket is scanned but its registration is not verified."""

    code = "not_verified"
    status_code = 409


class AlreadyCheckedIn(RegistrationServiceError):
    """Raised on every check-in attempt after the first successful one."""

    code = "already_checked_in"
    status_code = 409


class NotYetEligible(RegistrationServiceError):
    """Raised when a certificate is requested before the holder checked in."""

    code = "not_yet_eligible"
    status_code = 409


class ConstraintViolation(RegistrationServiceError):
    """Raised when submitted data breaks a registration rule."""

    code = "constraint_violation"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **extra: Any):
        super().__init__(message, field=field, **extra)
        self.field = field


class DuplicateRegistration(RegistrationServiceError):
    """Raised when a phone number already owns an individual registration."""

    code = "duplicate_registration"
    status_code = 409

    def __init__(self, message: str, tracking_number: str):
        super().__init__(message, tracking_number=tracking_number)
        self.tracking_number = tracking_number


class GatewayUnavailable(RegistrationServiceError):
    """Raised when no payment gateway is configured."""

    code = "gateway_unavailable"
    status_code = 503

    def __init__(self, message: str, **extra: Any):
        super().__init__(message, fallback="bank_transfer", **extra)


class GatewayTimeout(RegistrationServiceError):
    """Raised when the payment gateway does not answer in time."""

    code = "gateway_timeout"
    status_code = 504
    retryable = True


class GatewayError(RegistrationServiceError):
    """Raised when the payment gateway answers with an error."""

    code = "gateway_error"
    status_code = 502

    def __init__(self, message: str, retryable: bool = False, **extra: Any):
        super().__init__(message, **extra)
        self.retryable = retryable
