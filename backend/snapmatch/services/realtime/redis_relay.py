"""Redis pub/sub relay: forwards cross-process updates into the local event bus"""
import asyncio
import json
import logging
from typing import Optional

from snapmatch.db.redis import get_async_redis_client
from snapmatch.services.realtime.event_bus import EventBus

logger = logging.getLogger("realtime")

CHANNEL_PATTERN = "event:*"


class RedisEventRelay:
    """One pattern subscription per process, re-published on the local bus"""

    def __init__(self, bus: EventBus, redis_client=None):
        self.bus = bus
        self._redis_client = redis_client
        self.pubsub = None
        self.listen_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self.listen_task is not None:
            logger.warning("Redis relay already running")
            return

        client = self._redis_client or get_async_redis_client()
        self.pubsub = client.pubsub()
        await self.pubsub.psubscribe(CHANNEL_PATTERN)
        logger.info(f"Subscribed to Redis pattern: {CHANNEL_PATTERN}")
        self.listen_task = asyncio.create_task(self._listen_loop())

    async def stop(self) -> None:
        if self.listen_task is not None:
            self.listen_task.cancel()
            try:
                await self.listen_task
            except asyncio.CancelledError:
                pass
            self.listen_task = None

        if self.pubsub is not None:
            await self.pubsub.punsubscribe(CHANNEL_PATTERN)
            await self.pubsub.aclose()
            self.pubsub = None
        logger.info("Redis relay stopped")

    def handle_message(self, message) -> int:
        """Forward one pub/sub message; returns local deliveries"""
        if not isinstance(message, dict) or message.get("type") != "pmessage":
            return 0

        channel = message.get("channel")
        data = message.get("data")
        if not channel or not data:
            logger.warning(f"Incomplete pub/sub message: {message}")
            return 0

        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to parse realtime payload from {channel}: {e}")
            return 0

        if not isinstance(payload, dict) or not payload.get("type"):
            logger.warning(f"Invalid realtime payload from {channel}")
            return 0

        return self.bus.publish(channel, payload)

    async def _listen_loop(self) -> None:
        try:
            async for message in self.pubsub.listen():
                self.handle_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in Redis pub/sub listen loop: {e}", exc_info=True)
