"""
Redis Signaling Channel

Both participants of a match publish to and subscribe on the same pub/sub
topic (webrtc:{match_id}); each handle only hands its owner the messages
addressed to it.
"""
import asyncio
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from matchcall.config.redis import get_redis
from matchcall.config.constants import SIGNALING_CHANNEL, SIGNALING_POLL_TIMEOUT_SEC

from .exceptions import SignalingFailed
from .messages import SignalingMessage, parse_signaling_message
from .protocols import LostHandler, MessageHandler

logger = logging.getLogger(__name__)


class RedisSignalingChannel:
    """Signaling channel handle for one (match, user) pair."""

    def __init__(self, match_id: str, user_id: str, client: Optional[redis.Redis] = None):
        self.match_id = match_id
        self.user_id = user_id
        self.topic = SIGNALING_CHANNEL.format(match_id=match_id)
        self._redis = client
        self._pubsub = None
        self._reader: Optional[asyncio.Task] = None
        self._handler: Optional[MessageHandler] = None
        self._on_lost: Optional[LostHandler] = None

    @property
    def is_open(self) -> bool:
        return self._reader is not None and not self._reader.done()

    async def _client(self) -> redis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def open(self, handler: MessageHandler, on_lost: Optional[LostHandler] = None) -> None:
        self._handler = handler
        self._on_lost = on_lost
        if self.is_open:
            return

        try:
            client = await self._client()
            self._pubsub = client.pubsub()
            await self._pubsub.subscribe(self.topic)
        except (RedisError, OSError) as e:
            raise SignalingFailed(f"Could not open signaling channel: {e}") from e

        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"[Signaling] {self.user_id} subscribed to {self.topic}")

    async def _read_loop(self):
        # close() clears _pubsub, including when a handler closes the channel
        while self._pubsub is not None:
            try:
                raw = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=SIGNALING_POLL_TIMEOUT_SEC
                )
            except (RedisError, OSError) as e:
                logger.error(f"[Signaling] Subscription to {self.topic} lost: {e}")
                await self._report_lost(e)
                return
            if raw is None:
                continue
            await self._deliver(raw["data"])

    async def _report_lost(self, error: Exception) -> None:
        on_lost = self._on_lost
        if on_lost is None:
            return
        try:
            await on_lost(SignalingFailed(f"Subscription to {self.topic} lost: {error}"))
        except Exception as e:
            logger.error(f"[Signaling] Lost-subscription callback failed: {e}")

    async def _deliver(self, payload) -> None:
        message = parse_signaling_message(payload)
        if message is None:
            logger.warning(f"[Signaling] Dropping malformed message on {self.topic}")
            return
        if not message.is_for(self.user_id):
            return
        if self._handler is None:
            return
        try:
            await self._handler(message)
        except Exception as e:
            logger.error(f"[Signaling] Handler failed for {message.type} from {message.sender}: {e}")

    async def send(self, message: SignalingMessage) -> None:
        try:
            client = await self._client()
            await client.publish(self.topic, message.to_json())
        except (RedisError, OSError) as e:
            raise SignalingFailed(f"Could not send {message.type}: {e}") from e

    async def close(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

        pubsub, self._pubsub = self._pubsub, None
        if pubsub is not None:
            try:
                await pubsub.unsubscribe(self.topic)
                await pubsub.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"[Signaling] Error closing {self.topic}: {e}")

        self._handler = None
        self._on_lost = None
        logger.info(f"[Signaling] {self.user_id} left {self.topic}")
