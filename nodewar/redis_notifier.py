import logging
from typing import AsyncIterator

from redis.asyncio import Redis

from nodewar.models.dc_models import ChangeEventModel
from nodewar.notifier import ChangeNotifier

CHANGES_CHANNEL = "graph:changes"


class RedisChangeNotifier(ChangeNotifier):
    """Publish change events over Redis pub/sub so every API worker can stream them."""

    def __init__(self, redis: Redis, channel: str = CHANGES_CHANNEL):
        """Initialize RedisChangeNotifier with a Redis connection and channel name."""
        super().__init__()
        self.redis: Redis = redis
        self.channel: str = channel

    async def _deliver(self, event: ChangeEventModel) -> None:
        receivers = await self.redis.publish(self.channel, event.model_dump_json())
        logging.debug(f"Published {event.event_id} to {receivers} receivers on {self.channel}")

    async def subscribe(self) -> AsyncIterator[ChangeEventModel]:
        """Yield events published on the channel by any worker.

        Messages that do not parse as a ChangeEventModel are logged and skipped.
        """
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            while True:
                msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=None)
                if msg and msg["type"] == "message":
                    try:
                        event = ChangeEventModel.model_validate_json(msg["data"])
                    except ValueError as e:
                        logging.error(f"Discarding malformed change event: {e}")
                        continue
                    yield event
        finally:
            logging.info("Unsubscribing from channel")
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def close(self) -> None:
        await self.redis.aclose()
