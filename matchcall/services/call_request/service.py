"""
Call Request Service - Call Request Coordinator

Authoritative lifecycle of call requests and call blocks:
- create: upsert a pending request for (match, requester)
- respond: accept/reject the other participant's request
- list: pending/accepted requests of a match
- unblock: lift blocks the caller holds on a match

Stateless per invocation. Cross-request consistency relies on the
(match_id, requester_id) and (match_id, blocked_user_id) unique keys and on
the conditional pending -> decided update.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.config.settings import settings
from matchcall.config.constants import LISTED_STATUSES
from matchcall.models.call_request import CallRequest, CallRequestStatus
from matchcall.models.call_block import CallBlock
from matchcall.models.match_permission import MatchPermission
from matchcall.services.core.repositories import get_call_repository
from matchcall.services.call_events import publish_call_event

from .exceptions import (
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
)
from .validators import (
    require,
    validate_action,
    validate_call_type,
    validate_response_status,
    validate_participant,
    validate_not_blocked,
)

logger = logging.getLogger(__name__)


def _require_caller(caller_id: Optional[str]) -> str:
    if not caller_id:
        raise UnauthorizedError("Unauthorized")
    return caller_id


class CallRequestService:
    """Service for managing call requests and call blocks."""

    REQUEST_TTL = timedelta(minutes=settings.CALL_REQUEST_TTL_MINUTES)

    # === Queries ===

    @classmethod
    async def list_requests(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        match_id: Optional[str]
    ) -> List[CallRequest]:
        """
        Return pending and accepted requests of the match.

        Participancy is checked by the action dispatcher before this runs.
        """
        _require_caller(caller_id)
        match_id = require(match_id, "matchId")
        return await get_call_repository().list_call_requests(db, match_id, LISTED_STATUSES)

    @classmethod
    async def list_blocks(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        match_id: str
    ) -> List[CallBlock]:
        caller_id = _require_caller(caller_id)
        await validate_participant(db, match_id, caller_id)
        return await get_call_repository().list_blocks(db, match_id)

    # === Commands ===

    @classmethod
    async def create_request(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        match_id: Optional[str],
        call_type: Optional[str],
        now: Optional[datetime] = None
    ) -> CallRequest:
        """
        Create or refresh the caller's pending request on a match.

        Raises:
            InvalidArgumentError: missing matchId/type or unknown type
            ForbiddenError: caller is not a participant
            BlockedError: the other participant blocked the caller
        """
        caller_id = _require_caller(caller_id)
        match_id = require(match_id, "matchId")
        call_type = validate_call_type(call_type)

        await validate_participant(db, match_id, caller_id)
        await validate_not_blocked(db, match_id, caller_id)

        now = now or datetime.utcnow()
        repo = get_call_repository()
        existing = await repo.get_call_request_for(db, match_id, caller_id)
        old = existing.to_dict() if existing else None

        request = await repo.upsert_pending_request(
            db,
            match_id=match_id,
            requester_id=caller_id,
            call_type=call_type,
            expires_at=now + cls.REQUEST_TTL,
            now=now,
        )
        await db.commit()

        logger.info(f"[CallRequest] {caller_id} requested a {call_type} call on match {match_id} (request {request.id})")
        await publish_call_event(
            match_id, "call_requests", "UPDATE" if old else "INSERT", request.to_dict(), old
        )
        return request

    @classmethod
    async def _resolve_request(
        cls,
        db: AsyncSession,
        caller_id: str,
        request_id: Optional[str],
        match_id: Optional[str]
    ) -> Optional[CallRequest]:
        repo = get_call_repository()
        request = None
        if request_id:
            request = await repo.get_call_request(db, request_id)
        if request is None and match_id:
            request = await repo.find_latest_pending_from_other(db, match_id, caller_id)
        return request

    @classmethod
    async def respond(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        status: Optional[str],
        request_id: Optional[str] = None,
        match_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CallRequest:
        """
        Accept or reject a request addressed to the caller.

        The request is looked up by id first, then as the most recent pending
        request on match_id made by the other participant. Rejecting blocks
        the requester on this match until the caller unblocks.

        Raises:
            InvalidArgumentError: status missing or not accepted/rejected
            NotFoundError: no request resolves
            ForbiddenError: caller is not the addressed participant
            ConflictError: the request was already answered
        """
        caller_id = _require_caller(caller_id)
        status = validate_response_status(status)

        request = await cls._resolve_request(db, caller_id, request_id, match_id)
        if request is None:
            raise NotFoundError("Call request not found")

        repo = get_call_repository()
        match = await repo.get_match(db, request.match_id)
        target_id = match.other_participant(request.requester_id) if match else None
        if target_id is None or target_id != caller_id:
            raise ForbiddenError("Forbidden")

        now = now or datetime.utcnow()
        old = request.to_dict()
        if not await repo.transition_from_pending(db, request.id, status, now):
            current = await repo.get_call_request(db, request.id)
            current_status = current.status if current else "gone"
            logger.warning(f"[CallRequest] Request {request.id} already answered ({current_status})")
            raise ConflictError(f"Call request already {current_status}")

        block = None
        if status == CallRequestStatus.REJECTED.value:
            previous_block = await repo.is_blocked(db, request.match_id, request.requester_id)
            block = await repo.upsert_block(
                db,
                match_id=request.match_id,
                blocker_id=caller_id,
                blocked_user_id=request.requester_id,
            )
        await db.commit()

        updated = await repo.get_call_request(db, request.id)
        logger.info(f"[CallRequest] {caller_id} {status} request {request.id} on match {request.match_id}")

        await publish_call_event(request.match_id, "call_requests", "UPDATE", updated.to_dict(), old)
        if block is not None:
            await publish_call_event(
                request.match_id, "call_blocks", "UPDATE" if previous_block else "INSERT", block.to_dict()
            )
            logger.info(f"[CallRequest] {caller_id} blocked calls from {request.requester_id} on match {request.match_id}")
        return updated

    @classmethod
    async def unblock(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        match_id: Optional[str]
    ) -> int:
        """
        Remove the blocks the caller holds on the match.

        Succeeds even when there is nothing to remove.

        Returns:
            Number of blocks removed
        """
        caller_id = _require_caller(caller_id)
        match_id = require(match_id, "matchId")

        removed = await get_call_repository().delete_blocks_by_blocker(db, match_id, caller_id)
        await db.commit()

        for block in removed:
            await publish_call_event(match_id, "call_blocks", "DELETE", None, block.to_dict())
        if removed:
            logger.info(f"[CallRequest] {caller_id} lifted {len(removed)} block(s) on match {match_id}")
        return len(removed)

    @classmethod
    async def set_permissions(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        match_id: Optional[str],
        allow_voice: bool,
        allow_video: bool
    ) -> MatchPermission:
        caller_id = _require_caller(caller_id)
        match_id = require(match_id, "matchId")
        await validate_participant(db, match_id, caller_id)

        permission = await get_call_repository().upsert_permission(
            db, match_id, caller_id, bool(allow_voice), bool(allow_video), datetime.utcnow()
        )
        await db.commit()
        return permission

    # === Action dispatch ===

    @classmethod
    async def handle_action(
        cls,
        db: AsyncSession,
        caller_id: Optional[str],
        action: Optional[str],
        match_id: Optional[str] = None,
        call_type: Optional[str] = None,
        request_id: Optional[str] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Run one action of the call-request endpoint and build its response body.

        Any action carrying a match_id is first checked for participancy.
        """
        caller_id = _require_caller(caller_id)
        action = validate_action(action)
        if match_id:
            await validate_participant(db, match_id, caller_id)

        if action == "list":
            calls = await cls.list_requests(db, caller_id, match_id)
            return {"calls": [c.to_dict() for c in calls]}

        if action == "create":
            request = await cls.create_request(db, caller_id, match_id, call_type)
            return {"success": True, "request": request.to_dict()}

        if action == "respond":
            request = await cls.respond(db, caller_id, status, request_id=request_id, match_id=match_id)
            return {"success": True, "request": request.to_dict()}

        await cls.unblock(db, caller_id, match_id)
        return {"success": True}
