"""
Call Request Lifecycle - expiry of stale pending requests.

Requests carry expires_at = created + TTL, but nothing enforces it unless
the reaper runs. It is disabled by default (CALL_REQUEST_REAPER_ENABLED),
which keeps expired-but-pending requests respondable.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from matchcall.config.settings import settings
from matchcall.models.database import AsyncSessionLocal
from matchcall.services.core.repositories import get_call_repository
from matchcall.services.call_events import publish_call_event

logger = logging.getLogger(__name__)


async def expire_stale_requests(db: AsyncSession, now: Optional[datetime] = None) -> List[str]:
    """
    Mark every pending request past its expiry as expired.

    Returns:
        IDs of the requests that were expired.
    """
    now = now or datetime.utcnow()
    expired = await get_call_repository().expire_pending_before(db, now)
    await db.commit()

    for request in expired:
        await publish_call_event(request.match_id, "call_requests", "UPDATE", request.to_dict())

    if expired:
        logger.info(f"[Lifecycle] Expired {len(expired)} stale call request(s)")
    return [r.id for r in expired]


class CallRequestReaper:
    """Background task that periodically expires stale call requests."""

    def __init__(self, interval: float = settings.CALL_REQUEST_REAPER_INTERVAL):
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> List[str]:
        async with AsyncSessionLocal() as db:
            return await expire_stale_requests(db)

    async def _loop(self):
        logger.info(f"[Lifecycle] Call request reaper started (every {self.interval}s)")
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("[Lifecycle] Reaper pass failed, retrying next interval")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None


# Singleton instance
call_request_reaper = CallRequestReaper()
