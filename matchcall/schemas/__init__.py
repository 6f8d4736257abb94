"""
Schemas Package

Pydantic models for the call-request API.
"""

from matchcall.schemas.call_request import (
    CallRequestAction,
    CreateCallRequest,
    RespondCallRequest,
    PermissionsRequest,
    CallRequestInfo,
    CallBlockInfo,
)

__all__ = [
    "CallRequestAction",
    "CreateCallRequest",
    "RespondCallRequest",
    "PermissionsRequest",
    "CallRequestInfo",
    "CallBlockInfo",
]
