"""
Call Requests API - Endpoints for the Call Request Coordinator

Implements:
- Action endpoint used by the chat page (create/respond/unblock/list)
- RESTful aliases of the same operations
- Call block listing and call permissions

Failures are returned as {"error": <message>, "code": <code>}.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.api.deps import get_current_profile
from matchcall.models.database import get_db
from matchcall.models.profile import Profile
from matchcall.services.call_request import call_request_service, CallRequestError
from matchcall.schemas.call_request import (
    CallRequestAction,
    CreateCallRequest,
    RespondCallRequest,
    PermissionsRequest,
    CallListResponse,
    CallRequestResponse,
    SuccessResponse,
    CallBlockListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_response(e: CallRequestError) -> JSONResponse:
    return JSONResponse(status_code=e.status_code, content={"error": str(e), "code": e.code})


def _server_error() -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": "Internal server error", "code": "server_error"})


def _caller_id(profile: Optional[Profile]) -> Optional[str]:
    return profile.id if profile else None


@router.post("/matches/call-request")
async def call_request_action(
    req: CallRequestAction,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    """
    Run one call-request action.

    Actions:
        create   matchId, type       -> {"success": true, "request": {...}}
        respond  requestId|matchId,
                 status              -> {"success": true, "request": {...}}
        unblock  matchId             -> {"success": true}
        list     matchId             -> {"calls": [...]}
    """
    try:
        return await call_request_service.handle_action(
            db,
            _caller_id(current_profile),
            req.action,
            match_id=req.match_id,
            call_type=req.type,
            request_id=req.request_id,
            status=req.status,
        )
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Action {req.action} failed")
        return _server_error()


@router.get("/matches/{match_id}/call-requests", response_model=CallListResponse)
async def list_call_requests(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    try:
        return await call_request_service.handle_action(
            db, _caller_id(current_profile), "list", match_id=match_id
        )
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Listing requests of match {match_id} failed")
        return _server_error()


@router.post("/matches/{match_id}/call-requests", response_model=CallRequestResponse)
async def create_call_request(
    match_id: str,
    req: CreateCallRequest,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    try:
        return await call_request_service.handle_action(
            db, _caller_id(current_profile), "create", match_id=match_id, call_type=req.type
        )
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Creating request on match {match_id} failed")
        return _server_error()


@router.post("/call-requests/{request_id}/respond", response_model=CallRequestResponse)
async def respond_to_call_request(
    request_id: str,
    req: RespondCallRequest,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    try:
        request = await call_request_service.respond(
            db, _caller_id(current_profile), req.status, request_id=request_id
        )
        return {"success": True, "request": request.to_dict()}
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Responding to request {request_id} failed")
        return _server_error()


@router.delete("/matches/{match_id}/call-blocks", response_model=SuccessResponse)
async def unblock_calls(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    try:
        return await call_request_service.handle_action(
            db, _caller_id(current_profile), "unblock", match_id=match_id
        )
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Unblocking on match {match_id} failed")
        return _server_error()


@router.get("/matches/{match_id}/call-blocks", response_model=CallBlockListResponse)
async def list_call_blocks(
    match_id: str,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    """Block rows of the match; the chat page derives blocked_by_other / i_am_blocker from them."""
    try:
        blocks = await call_request_service.list_blocks(db, _caller_id(current_profile), match_id)
        return {"blocks": [b.to_dict() for b in blocks]}
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception(f"[CallRequest] Listing blocks of match {match_id} failed")
        return _server_error()


@router.post("/matches/permissions")
async def set_call_permissions(
    req: PermissionsRequest,
    db: AsyncSession = Depends(get_db),
    current_profile: Optional[Profile] = Depends(get_current_profile)
):
    """Store which call kinds the caller accepts on a match."""
    try:
        permission = await call_request_service.set_permissions(
            db,
            _caller_id(current_profile),
            req.match_id,
            req.allow_voice,
            req.allow_video,
        )
        return {"success": True, "permission": permission.to_dict()}
    except CallRequestError as e:
        return _error_response(e)
    except Exception:
        logger.exception("[CallRequest] Saving call permissions failed")
        return _server_error()
