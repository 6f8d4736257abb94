from typing import Optional
from fastapi import WebSocket, Header, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from matchcall.config.constants import WS_POLICY_VIOLATION
from matchcall.models.database import get_db
from matchcall.models.profile import Profile
from matchcall.services.auth_service import decode_token, parse_bearer
from matchcall.services.call_request import CallRequestError
from matchcall.services.call_request.validators import validate_participant

logger = logging.getLogger(__name__)


async def _profile_from_token(db: AsyncSession, token: Optional[str]) -> Optional[Profile]:
    if not token:
        return None
    payload = decode_token(token)
    if not payload or not payload.get("sub"):
        return None
    result = await db.execute(select(Profile).where(Profile.id == payload["sub"]))
    return result.scalar_one_or_none()


async def get_current_profile(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db)
) -> Optional[Profile]:
    """
    Resolve the caller from a Bearer token.

    Returns None instead of raising so that the call-request routes can
    answer with their own {"error", "code"} body.
    """
    return await _profile_from_token(db, parse_bearer(authorization))


async def authenticate_match_socket(
    websocket: WebSocket,
    match_id: str,
    token: Optional[str],
    db: AsyncSession
) -> Optional[Profile]:
    """
    Authenticate a match WebSocket via its ?token= query parameter.

    Closes the connection with code 1008 and returns None when the token is
    missing or invalid or the user is not a participant of the match.
    """
    if not token:
        logger.warning(f"[WebSocket] Missing token for match {match_id}")
        await websocket.close(code=WS_POLICY_VIOLATION, reason="Missing token")
        return None

    profile = await _profile_from_token(db, token)
    if profile is None:
        logger.warning(f"[WebSocket] Invalid token for match {match_id}")
        await websocket.close(code=WS_POLICY_VIOLATION, reason="Invalid token")
        return None

    try:
        await validate_participant(db, match_id, profile.id)
    except CallRequestError as e:
        logger.warning(f"[WebSocket] {profile.id} rejected from match {match_id}: {e}")
        await websocket.close(code=WS_POLICY_VIOLATION, reason="Forbidden")
        return None

    return profile
