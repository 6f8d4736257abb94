"""
MatchCall Backend - Main Application

This is the entry point for the FastAPI application.
It handles:
- REST API endpoints for call requests, call blocks and permissions
- WebSocket connections for match events and WebRTC signaling
- Background tasks for change event fan-out and request expiry
"""
from contextlib import asynccontextmanager
import asyncio
import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from matchcall.api import router as api_router
from matchcall.api.websocket import router as ws_router
from matchcall.config.constants import CALL_EVENTS_PATTERN
from matchcall.config.redis import get_redis, close_redis
from matchcall.config.settings import settings
from matchcall.models.database import Base, engine
from matchcall.services.call_request import call_request_reaper
from matchcall.services.connection import connection_manager, parse_call_event

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def subscribe_to_call_events():
    """Background task relaying call events from Redis to watching sockets."""
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.psubscribe(CALL_EVENTS_PATTERN)

    logger.info("✅ Subscribed to call event channels")

    try:
        async for message in pubsub.listen():
            if message["type"] != "pmessage":
                continue
            event = parse_call_event(message["data"])
            if event is None:
                logger.warning(f"Dropping malformed call event on {message.get('channel')}")
                continue
            await connection_manager.broadcast_call_event(event)
    except (RedisError, OSError) as e:
        logger.error(f"Call event subscription error: {e}")
    finally:
        await pubsub.aclose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events using the modern FastAPI pattern.
    """
    # === STARTUP ===
    logger.info("🚀 Starting MatchCall Backend...")

    # Create database tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Database tables created")

    # Ensure redis connection is established
    await get_redis()
    logger.info("✅ Redis connected")

    # Start call event relay
    relay_task = asyncio.create_task(subscribe_to_call_events())
    logger.info("✅ Call event relay started")

    # Start expiry reaper (off by default: expired requests stay respondable)
    if settings.CALL_REQUEST_REAPER_ENABLED:
        call_request_reaper.start()
        logger.info("✅ Call request reaper started")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("🛑 Shutting down...")
    await call_request_reaper.stop()
    relay_task.cancel()
    try:
        await relay_task
    except asyncio.CancelledError:
        pass
    await close_redis()


app = FastAPI(
    title="MatchCall Backend",
    description="Call requests and peer-to-peer call signaling between matched players",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"http://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include REST API routes
app.include_router(api_router, prefix="/api")

# Include WebSocket routes
app.include_router(ws_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "MatchCall",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "watched_matches": connection_manager.get_active_match_count(),
        "total_connections": connection_manager.get_total_connections()
    }
