"""Error taxonomy shared by the gateway services.

Every error a client can observe derives from ServiceError and carries a
stable ``code`` and the HTTP status it maps to. Handlers branch on the
class, clients branch on the code, nobody branches on message text.
"""


class ServiceError(Exception):
    """Base exception for all client-visible gateway errors."""
    code = "SERVICE_ERROR"
    status_code = 500

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ChallengeExpired(ServiceError):
    """No live challenge exists for this wallet."""
    code = "CHALLENGE_EXPIRED"
    status_code = 401


class SignatureMismatch(ServiceError):
    """Signature was not produced by the claimed wallet."""
    code = "SIGNATURE_MISMATCH"
    status_code = 401


class TokenInvalid(ServiceError):
    """Token is malformed, tampered with, or of the wrong class."""
    code = "TOKEN_INVALID"
    status_code = 401


class TokenExpired(ServiceError):
    """Token has expired."""
    code = "TOKEN_EXPIRED"
    status_code = 401


class Unauthorized(ServiceError):
    """Authentication required."""
    code = "UNAUTHORIZED"
    status_code = 401


class MissingProfile(ServiceError):
    """displayName and role are required for first-time signup."""
    code = "MISSING_PROFILE"
    status_code = 400


class ValidationError(ServiceError):
    """Malformed input."""
    code = "VALIDATION_ERROR"
    status_code = 400


class Forbidden(ServiceError):
    """Caller is not allowed to perform this action."""
    code = "FORBIDDEN"
    status_code = 403


class NotFound(ServiceError):
    """Resource not found."""
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransition(ServiceError):
    """Requested state transition is not legal from the current state."""
    code = "INVALID_TRANSITION"
    status_code = 409


__all__ = [
    'ServiceError',
    'ChallengeExpired',
    'SignatureMismatch',
    'TokenInvalid',
    'TokenExpired',
    'Unauthorized',
    'MissingProfile',
    'ValidationError',
    'Forbidden',
    'NotFound',
    'InvalidTransition',
]
