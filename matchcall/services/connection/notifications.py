"""
Connection Notifications

Turns call-request change events into messages for the participants
watching a match:
- every change is forwarded as a "call_event"
- every INSERT or UPDATE that leaves a request pending also produces an
  "incoming_call_request" for the participant being called, including a
  requester re-ringing with the same call type (the callee sees the prompt
  again, as the expiry was pushed back)
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional, TYPE_CHECKING
import logging

if TYPE_CHECKING:
    from .models import MatchConnection

logger = logging.getLogger(__name__)


def parse_call_event(raw: Any) -> Optional[Dict[str, Any]]:
    """Decode a pub/sub payload; None if it is not a call event."""
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except ValueError:
        return None
    if not isinstance(data, dict) or not data.get("match_id") or not data.get("table"):
        return None
    return data


def _incoming_request_target(event: Dict[str, Any]) -> Optional[str]:
    """Requester of a pending request written by this event, if any."""
    if event.get("table") != "call_requests" or event.get("event") not in ("INSERT", "UPDATE"):
        return None
    new = event.get("new") or {}
    if new.get("status") != "pending":
        return None
    return new.get("requester_id")


async def broadcast_call_event(
    matches: Dict[str, Dict[str, "MatchConnection"]],
    event: Dict[str, Any]
) -> int:
    """
    Forward a change event to everyone watching its match.

    Args:
        matches: match_id -> {user_id: MatchConnection}
        event: Decoded call event

    Returns:
        Number of messages delivered
    """
    match_id = event.get("match_id")
    connections = list(matches.get(match_id, {}).values())
    if not connections:
        return 0

    timestamp = datetime.utcnow().isoformat()
    requester_id = _incoming_request_target(event)

    delivered = 0
    for conn in connections:
        if await conn.send_json({"type": "call_event", **event, "timestamp": timestamp}):
            delivered += 1

        if requester_id and conn.user_id != requester_id:
            request = event["new"]
            notification = {
                "type": "incoming_call_request",
                "match_id": match_id,
                "request_id": request.get("id"),
                "requester_id": requester_id,
                "call_type": request.get("type"),
                "timestamp": timestamp,
            }
            if await conn.send_json(notification):
                delivered += 1
                logger.info(f"Notified {conn.user_id} of incoming {request.get('type')} call on match {match_id}")

    return delivered
