"""
Call Request Module

Re-exports the coordinator service, its exceptions and the expiry reaper.
"""
from .service import CallRequestService
from .exceptions import (
    CallRequestError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    InvalidArgumentError,
    BlockedError,
    ConflictError,
)
from .lifecycle import expire_stale_requests, CallRequestReaper, call_request_reaper

# Singleton instance
call_request_service = CallRequestService()

__all__ = [
    "CallRequestService",
    "call_request_service",
    "CallRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "InvalidArgumentError",
    "BlockedError",
    "ConflictError",
    "expire_stale_requests",
    "CallRequestReaper",
    "call_request_reaper",
]
