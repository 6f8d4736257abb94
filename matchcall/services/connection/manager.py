"""
Connection Manager

WebSocket connection management for match event streams:
- Connection/disconnection handling
- Per-match tracking
- Change event fan-out
"""
import asyncio
from typing import Dict, Optional, Any
import logging

from fastapi import WebSocket

from .models import MatchConnection
from .notifications import broadcast_call_event as _broadcast_call_event

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages the WebSockets watching each match.

    A participant has at most one event connection per match; a new one
    replaces the previous.
    """

    def __init__(self):
        # match_id -> {user_id: MatchConnection}
        self._matches: Dict[str, Dict[str, MatchConnection]] = {}
        self._lock = asyncio.Lock()

    # === Core Connection Methods ===

    async def connect(self, websocket: WebSocket, match_id: str, user_id: str) -> MatchConnection:
        """Register an accepted WebSocket for the match."""
        async with self._lock:
            conn = MatchConnection(websocket=websocket, user_id=user_id, match_id=match_id)
            self._matches.setdefault(match_id, {})[user_id] = conn

        logger.info(f"User {user_id} watching match {match_id}")
        return conn

    async def disconnect(self, match_id: str, user_id: str, websocket: Optional[WebSocket] = None) -> bool:
        """
        Remove a user's connection from the match.

        When websocket is given, only that socket is removed, so a stale
        socket closing cannot drop its replacement.
        """
        async with self._lock:
            connections = self._matches.get(match_id)
            if not connections or user_id not in connections:
                return False
            if websocket is not None and connections[user_id].websocket is not websocket:
                return False

            del connections[user_id]
            if not connections:
                del self._matches[match_id]

        logger.info(f"User {user_id} stopped watching match {match_id}")
        return True

    # === Broadcast Methods ===

    async def broadcast_to_match(
        self,
        match_id: str,
        message: Dict[str, Any],
        exclude_user: Optional[str] = None
    ) -> int:
        """Send a JSON message to every watcher of a match."""
        sent_count = 0
        for conn in list(self._matches.get(match_id, {}).values()):
            if exclude_user and conn.user_id == exclude_user:
                continue
            if await conn.send_json(message):
                sent_count += 1
        return sent_count

    async def send_to_user(self, match_id: str, user_id: str, message: Dict[str, Any]) -> bool:
        conn = self._matches.get(match_id, {}).get(user_id)
        if not conn:
            return False
        return await conn.send_json(message)

    async def broadcast_call_event(self, event: Dict[str, Any]) -> int:
        return await _broadcast_call_event(self._matches, event)

    # === Query Methods ===

    def is_watching(self, match_id: str, user_id: str) -> bool:
        return user_id in self._matches.get(match_id, {})

    def get_active_match_count(self) -> int:
        return len(self._matches)

    def get_total_connections(self) -> int:
        return sum(len(c) for c in self._matches.values())
