"""Service layer — workflow rules and authorization."""

SERVER_ERROR_MSG = (
    "The server encountered an internal error and was unable to complete "
    "your request. Please try again later"
)


class ServiceError(Exception):
    """Base service exception."""


class NotFoundError(ServiceError):
    """Resource not found, or hidden from the caller (-> HTTP 404)."""


class ConflictError(ServiceError):
    """Business rule conflict (-> HTTP 409)."""


class DuplicateResourceError(ConflictError):
    """Uniqueness or membership duplication (-> HTTP 409)."""


class StateConflictError(ConflictError):
    """Action invalid for the current phase or state (-> HTTP 409)."""


class ValidationError(ServiceError):
    """Malformed or out-of-range input (-> HTTP 400)."""


class UnsupportedFileError(ServiceError):
    """Uploaded document is not an accepted format (-> HTTP 415)."""


class AccessDeniedError(ServiceError):
    """Caller may see the resource but not act on it (-> HTTP 403)."""


class AuthenticationError(ServiceError):
    """Authentication failure (-> HTTP 401)."""


class ServerError(ServiceError):
    """Collaborator failure (-> HTTP 500). Never carries internal detail."""

    def __init__(self, message: str = SERVER_ERROR_MSG) -> None:
        super().__init__(message)
