"""
Call Request Exceptions

Custom exceptions for call request errors. Each carries the HTTP status
and the categorical code returned to the client.
"""


class CallRequestError(Exception):
    """Base exception for call request errors"""
    status_code = 500
    code = "server_error"


class UnauthorizedError(CallRequestError):
    """Raised when there is no authenticated caller"""
    status_code = 401
    code = "unauthorized"


class ForbiddenError(CallRequestError):
    """Raised when the caller may not act on this match or request"""
    status_code = 403
    code = "forbidden"


class NotFoundError(CallRequestError):
    """Raised when the referenced match or request does not exist"""
    status_code = 404
    code = "not_found"


class InvalidArgumentError(CallRequestError):
    """Raised when a required field is missing or malformed"""
    status_code = 400
    code = "invalid"


class BlockedError(CallRequestError):
    """Raised when the other participant has blocked the caller's requests"""
    status_code = 403
    code = "blocked"


class ConflictError(CallRequestError):
    """Raised when a request was already answered"""
    status_code = 409
    code = "conflict"
