"""
Call Request Validators

Validation methods for call request operations:
- Payload validation
- Match participancy
- Block detection
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.config.constants import CALL_REQUEST_ACTIONS, CALL_TYPES, RESPONSE_STATUSES
from matchcall.models.match import Match
from matchcall.services.core.repositories import get_call_repository
from .exceptions import ForbiddenError, InvalidArgumentError, BlockedError


def require(value: Optional[str], field: str) -> str:
    """Return value or raise InvalidArgumentError naming the missing field."""
    if not value:
        raise InvalidArgumentError(f"Missing parameter: {field}")
    return value


def validate_action(action: Optional[str]) -> str:
    if action not in CALL_REQUEST_ACTIONS:
        raise InvalidArgumentError(f"Invalid action: {action}")
    return action


def validate_call_type(call_type: Optional[str]) -> str:
    call_type = require(call_type, "type")
    if call_type not in CALL_TYPES:
        raise InvalidArgumentError(f"Unsupported call type: {call_type}")
    return call_type


def validate_response_status(status: Optional[str]) -> str:
    status = require(status, "status")
    if status not in RESPONSE_STATUSES:
        raise InvalidArgumentError(f"Unsupported response status: {status}")
    return status


async def validate_participant(
    db: AsyncSession,
    match_id: str,
    user_id: str
) -> Match:
    """
    Validate that user is one of the two participants of the match.

    Returns:
        The Match

    Raises:
        ForbiddenError if the match does not exist or user is not in it
    """
    match = await get_call_repository().get_match(db, match_id)

    # A missing match is reported as Forbidden, like a non-participant
    if not match or not match.has_participant(user_id):
        raise ForbiddenError("Forbidden")

    return match


async def validate_not_blocked(
    db: AsyncSession,
    match_id: str,
    user_id: str
) -> bool:
    """
    Validate that user is not blocked from requesting calls on this match.

    Raises:
        BlockedError if an active block exists
    """
    if await get_call_repository().is_blocked(db, match_id, user_id):
        raise BlockedError("The other player has blocked your call requests.")
    return True
