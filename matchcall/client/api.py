"""
Call Request Client - what the chat page talks to.

Wraps POST /api/matches/call-request for one authenticated player. The
chat page polls `refresh()` to learn about requests when it is not
subscribed to the match event stream.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

CALL_REQUEST_PATH = "/api/matches/call-request"


class CallRequestClientError(Exception):
    """Raised when the coordinator answers with an error body."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code


class CallRequestClient:
    """
    Async client for the call-request endpoint.

    Usage:
        async with CallRequestClient(base_url, token, user_id) as client:
            await client.create(match_id, "video")
            incoming, outgoing = await client.refresh(match_id)
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        user_id: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0
    ):
        self.user_id = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "CallRequestClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = {k: v for k, v in body.items() if v is not None}
        response = await self._client.post(CALL_REQUEST_PATH, json=payload)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            logger.warning(f"[CallRequestClient] {body.get('action')} failed: {response.status_code} {message}")
            raise CallRequestClientError(
                response.status_code,
                message or response.text or "Request failed",
                data.get("code") if isinstance(data, dict) else None,
            )
        return data

    async def create(self, match_id: str, call_type: str) -> Dict[str, Any]:
        data = await self._post({"action": "create", "matchId": match_id, "type": call_type})
        return data["request"]

    async def respond(
        self,
        status: str,
        request_id: Optional[str] = None,
        match_id: Optional[str] = None
    ) -> Dict[str, Any]:
        data = await self._post({
            "action": "respond",
            "requestId": request_id,
            "matchId": match_id,
            "status": status,
        })
        return data["request"]

    async def unblock(self, match_id: str) -> None:
        await self._post({"action": "unblock", "matchId": match_id})

    async def list(self, match_id: str) -> List[Dict[str, Any]]:
        data = await self._post({"action": "list", "matchId": match_id})
        return data.get("calls", [])

    async def refresh(self, match_id: str) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        """
        Fetch the match's requests and split the pending ones.

        Returns:
            (pending_incoming, pending_outgoing) relative to this client's user
        """
        calls = await self.list(match_id)
        pending = [c for c in calls if c.get("status") == "pending"]
        incoming = [c for c in pending if c.get("requester_id") != self.user_id]
        outgoing = [c for c in pending if c.get("requester_id") == self.user_id]
        return incoming, outgoing
