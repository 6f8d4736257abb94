"""
Signaling Messages

Every message on a match's signaling topic names its sender and intended
recipient, so both participants can share one topic and ignore what is
not addressed to them.
"""
import json
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import SignalingFailed

SignalingType = Literal["offer", "answer", "ice-candidate", "call-end"]


class SignalingMessage(BaseModel):
    """Envelope exchanged over the signaling channel."""
    model_config = ConfigDict(populate_by_name=True)

    type: SignalingType
    data: Any = None
    sender: str = Field(..., alias="from")
    to: str

    def is_for(self, user_id: str) -> bool:
        return self.to == user_id

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


def parse_signaling_message(raw: Union[str, bytes, dict]) -> Optional[SignalingMessage]:
    """
    Parse a raw pub/sub payload.

    Returns:
        The message, or None when the payload is not a valid envelope.
    """
    try:
        if isinstance(raw, (str, bytes)):
            raw = json.loads(raw)
        return SignalingMessage.model_validate(raw)
    except (ValueError, ValidationError):
        return None


def require_signaling_message(raw: Union[str, bytes, dict]) -> SignalingMessage:
    message = parse_signaling_message(raw)
    if message is None:
        raise SignalingFailed("Malformed signaling message")
    return message
