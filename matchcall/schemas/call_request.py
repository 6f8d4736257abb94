from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CallRequestAction(BaseModel):
    """Body of POST /api/matches/call-request (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    match_id: Optional[str] = Field(None, alias="matchId")
    type: Optional[str] = None
    request_id: Optional[str] = Field(None, alias="requestId")
    status: Optional[str] = None


class CreateCallRequest(BaseModel):
    type: Optional[str] = None


class RespondCallRequest(BaseModel):
    status: Optional[str] = None


class PermissionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_id: Optional[str] = Field(None, alias="matchId")
    allow_voice: bool = Field(False, alias="allowVoice")
    allow_video: bool = Field(False, alias="allowVideo")


class CallRequestInfo(BaseModel):
    id: str
    match_id: str
    requester_id: str
    type: str
    status: str
    created_at: Optional[str]
    updated_at: Optional[str]
    expires_at: Optional[str]


class CallListResponse(BaseModel):
    calls: List[CallRequestInfo]


class CallRequestResponse(BaseModel):
    success: bool = True
    request: CallRequestInfo


class SuccessResponse(BaseModel):
    success: bool = True


class CallBlockInfo(BaseModel):
    id: str
    match_id: str
    blocker_id: str
    blocked_user_id: str
    blocked: bool
    created_at: Optional[str]


class CallBlockListResponse(BaseModel):
    blocks: List[CallBlockInfo]
