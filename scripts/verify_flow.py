"""
End-to-end check of the call request flow against a running server.

Seeds two profiles and a match, then:
1. B watches the match event stream
2. A requests a video call
3. B receives incoming_call_request and accepts
4. A sees the request accepted

Usage:
    BASE_URL=http://localhost:8000 WS_URL=ws://localhost:8000 python scripts/verify_flow.py
"""
import asyncio
import json
import logging
import os
import sys
import uuid
from pathlib import Path

import websockets

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from matchcall.client import CallRequestClient, CallRequestClientError
from matchcall.models.database import AsyncSessionLocal, init_db
from matchcall.models.profile import Profile
from matchcall.models.match import Match
from matchcall.services.auth_service import create_access_token

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
WS_URL = os.getenv("WS_URL", "ws://localhost:8000")


async def seed_match():
    """Create two profiles and a match between them."""
    await init_db()
    suffix = uuid.uuid4().hex[:6]
    async with AsyncSessionLocal() as db:
        a = Profile(username=f"player_a_{suffix}")
        b = Profile(username=f"player_b_{suffix}")
        db.add_all([a, b])
        await db.flush()
        match = Match(user_id_1=a.id, user_id_2=b.id)
        db.add(match)
        await db.commit()
        return a.id, b.id, match.id


async def watch_events(match_id, token, event_queue):
    ws_url = f"{WS_URL}/ws/matches/{match_id}/events?token={token}"
    logger.info(f"Connecting to match events: {ws_url}")
    try:
        async with websockets.connect(ws_url) as ws:
            async for msg in ws:
                data = json.loads(msg)
                logger.info(f"WS Message: {data['type']}")
                await event_queue.put(data)
    except websockets.WebSocketException as e:
        logger.error(f"Event stream error: {e}")


async def run_scenario():
    id_a, id_b, match_id = await seed_match()
    token_a = create_access_token(id_a)
    token_b = create_access_token(id_b)
    logger.info(f"User A: {id_a}, User B: {id_b}, Match: {match_id}")

    # 1. B watches the match
    event_queue_b = asyncio.Queue()
    task_b = asyncio.create_task(watch_events(match_id, token_b, event_queue_b))
    await asyncio.sleep(1)

    async with CallRequestClient(BASE_URL, token_a, id_a) as client_a, \
            CallRequestClient(BASE_URL, token_b, id_b) as client_b:
        # 2. A requests a video call
        try:
            request = await client_a.create(match_id, "video")
        except CallRequestClientError as e:
            logger.error(f"Create failed: {e.status_code} {e.message}")
            return
        logger.info(f"Call request {request['id']} created")

        # 3. B waits for the notification and accepts
        try:
            while True:
                event = await asyncio.wait_for(event_queue_b.get(), timeout=5.0)
                if event['type'] == 'incoming_call_request':
                    logger.info("SUCCESS: B received incoming_call_request!")
                    await client_b.respond("accepted", request_id=event['request_id'])
                    logger.info("SUCCESS: Request accepted")
                    break
        except asyncio.TimeoutError:
            logger.warning("Timeout waiting for notification, falling back to polling")
            incoming, _ = await client_b.refresh(match_id)
            if not incoming:
                logger.error("FAILED: B has no incoming request")
                return
            await client_b.respond("accepted", request_id=incoming[0]['id'])

        # 4. A sees it accepted
        calls = await client_a.list(match_id)
        accepted = [c for c in calls if c['id'] == request['id'] and c['status'] == 'accepted']
        if accepted:
            logger.info("SUCCESS: A sees the call accepted")
        else:
            logger.error(f"FAILED: unexpected calls {calls}")

    task_b.cancel()


if __name__ == "__main__":
    asyncio.run(run_scenario())
