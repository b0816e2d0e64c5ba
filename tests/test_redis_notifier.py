import asyncio
import json

from nodewar.converter import DataConverter
from nodewar.models.dc_models import ChangeEventModel
from nodewar.models.schema_models import EdgeSchema, NodeSchema
from nodewar.redis_notifier import CHANGES_CHANNEL, RedisChangeNotifier

data_converter = DataConverter()


class FakePubSub:
    def __init__(self, redis: "FakeRedis"):
        self.redis = redis
        self.messages: asyncio.Queue = asyncio.Queue()
        self.channels: set = set()
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)
        self.redis.pubsubs.append(self)

    async def unsubscribe(self, channel: str) -> None:
        self.channels.discard(channel)

    async def get_message(self, ignore_subscribe_messages: bool = False, timeout=None):
        return await self.messages.get()

    async def aclose(self) -> None:
        self.closed = True


class FakeRedis:
    """Just enough of redis.asyncio.Redis for pub/sub."""

    def __init__(self):
        self.published: list = []
        self.pubsubs: list = []
        self.closed = False

    async def publish(self, channel: str, data: str) -> int:
        self.published.append((channel, data))
        receivers = [p for p in self.pubsubs if channel in p.channels]
        for pubsub in receivers:
            pubsub.messages.put_nowait({"type": "message", "channel": channel, "data": data})
        return len(receivers)

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def aclose(self) -> None:
        self.closed = True


async def test_publish_sends_event_json_on_channel() -> None:
    redis = FakeRedis()
    notifier = RedisChangeNotifier(redis)
    event = data_converter.convert_node_to_upsert_event(NodeSchema(id="n1", owner_id="p1", fortify_lvl=1))

    assert await notifier.publish(event)

    channel, data = redis.published[0]
    assert channel == CHANGES_CHANNEL
    assert json.loads(data)["payload"]["owner_id"] == "p1"
    assert ChangeEventModel.model_validate_json(data) == event


async def test_subscribe_skips_malformed_messages_and_unsubscribes() -> None:
    redis = FakeRedis()
    notifier = RedisChangeNotifier(redis)
    stream = notifier.subscribe()
    pending = asyncio.ensure_future(stream.__anext__())
    await asyncio.sleep(0)
    pubsub = redis.pubsubs[0]

    await redis.publish(CHANGES_CHANNEL, "not an event")
    event = data_converter.convert_edge_to_delete_event(EdgeSchema(src_id="a", dst_id="b", owner_id="p1"))
    await notifier.publish(event)

    received = await pending
    await stream.aclose()

    assert received.event_id == event.event_id
    assert pubsub.channels == set()
    assert pubsub.closed


async def test_close_releases_connection() -> None:
    redis = FakeRedis()
    await RedisChangeNotifier(redis).close()
    assert redis.closed
