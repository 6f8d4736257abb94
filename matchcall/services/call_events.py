"""
Call Events - Row change notifications for call requests and blocks.

Every committed coordinator write is published to Redis pub/sub so that
clients can react to a peer's request, answer or unblock without polling.
Event shape mirrors a database change feed:

    {"table": "call_requests", "event": "UPDATE", "match_id": "...",
     "new": {...row...}, "old": null}
"""
import json
import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from matchcall.config.redis import get_redis
from matchcall.config.constants import CALL_EVENTS_CHANNEL

logger = logging.getLogger(__name__)


def build_call_event(
    match_id: str,
    table: str,
    event: str,
    new: Optional[Dict[str, Any]] = None,
    old: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return {
        "table": table,
        "event": event,
        "match_id": match_id,
        "new": new,
        "old": old,
    }


async def publish_call_event(
    match_id: str,
    table: str,
    event: str,
    new: Optional[Dict[str, Any]] = None,
    old: Optional[Dict[str, Any]] = None
) -> int:
    """
    Publish a change event for the match.

    Returns:
        Number of subscribers that received it (0 on failure). Failures are
        logged and swallowed: the write is already committed and clients
        can fall back to polling.
    """
    payload = build_call_event(match_id, table, event, new, old)
    channel = CALL_EVENTS_CHANNEL.format(match_id=match_id)
    try:
        r = await get_redis()
        receivers = await r.publish(channel, json.dumps(payload))
        logger.debug(f"[CallEvents] {table} {event} on {channel} -> {receivers} subscriber(s)")
        return receivers
    except (RedisError, OSError) as e:
        logger.error(f"[CallEvents] Failed to publish {table} {event} for match {match_id}: {e}")
        return 0
