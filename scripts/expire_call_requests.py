"""
Expire stale call requests.

Marks every pending request past its expires_at as expired, publishing the
change events. Useful when the in-process reaper is disabled
(CALL_REQUEST_REAPER_ENABLED=false) and stale requests should be cleared
by cron instead.

Usage:
    python scripts/expire_call_requests.py            # expire everything stale
    python scripts/expire_call_requests.py --dry-run  # only list them
"""
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import select, and_

from matchcall.config.redis import close_redis
from matchcall.models.database import AsyncSessionLocal
from matchcall.models.call_request import CallRequest, CallRequestStatus
from matchcall.services.call_request import expire_stale_requests


async def list_stale_requests(now: datetime):
    async with AsyncSessionLocal() as db:
        result = await db.execute(
            select(CallRequest).where(
                and_(
                    CallRequest.status == CallRequestStatus.PENDING.value,
                    CallRequest.expires_at <= now
                )
            )
        )
        requests = result.scalars().all()

    if not requests:
        print("✅ No stale call requests.")
        return

    print(f"📞 Found {len(requests)} stale request(s):")
    for request in requests:
        print(f"  - {request.id} match={request.match_id} requester={request.requester_id} "
              f"type={request.type} expired_at={request.expires_at}")


async def expire_requests(now: datetime):
    async with AsyncSessionLocal() as db:
        expired = await expire_stale_requests(db, now)
    await close_redis()
    print(f"✅ Expired {len(expired)} call request(s)")


async def main():
    now = datetime.utcnow()
    if "--dry-run" in sys.argv[1:]:
        await list_stale_requests(now)
    else:
        await expire_requests(now)


if __name__ == "__main__":
    print("🧹 Call Request Expiry")
    print("=" * 50)
    asyncio.run(main())
