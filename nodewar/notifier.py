import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Dict, Set, Tuple

from nodewar.models.dc_models import ChangeEventModel, EntityModel, OperationModel


def order_key(event: ChangeEventModel) -> Tuple[int, ...]:
    """Monotonic position of an entity state.

    Nodes only move neutral -> owned and fortify_lvl only grows; an edge delete
    is terminal.
    """
    if event.entity == EntityModel.node:
        owned = 1 if event.payload.get("owner_id") else 0
        return (owned, int(event.payload.get("fortify_lvl", 0)))
    return (1,) if event.op == OperationModel.delete else (0,)


class ChangeNotifier(ABC):
    """Publishes committed node/edge mutations to subscribers.

    Events for the same entity are never delivered out of order: an event whose
    state is older than one already published for that entity is dropped.
    """

    def __init__(self):
        self._latest: Dict[str, Tuple[int, ...]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, event: ChangeEventModel) -> bool:
        """Deliver event unless it is stale for its entity.

        Returns:
            bool: True if the event was handed to the transport
        """
        key = order_key(event)
        async with self._lock:
            latest = self._latest.get(event.entity_key)
            if latest is not None and key < latest:
                logging.debug(f"Dropping stale {event.entity_key} event {event.event_id}")
                return False
            self._latest[event.entity_key] = key
            await self._deliver(event)
        logging.debug(f"Published {event.entity.value}/{event.op.value} for {event.entity_key}")
        return True

    @abstractmethod
    async def _deliver(self, event: ChangeEventModel) -> None:
        ...

    @abstractmethod
    def subscribe(self) -> AsyncIterator[ChangeEventModel]:
        ...

    async def close(self) -> None:
        pass


class InMemoryChangeNotifier(ChangeNotifier):
    """Fan-out to in-process subscribers, one queue each.

    Delivery never waits on a subscriber. When a bounded queue is full its
    subscriber is disconnected: the queue is drained and closed with ``None``,
    which ends that subscription.
    """

    def __init__(self, maxsize: int = 0):
        super().__init__()
        self.maxsize = maxsize
        self.subscribers: Set[asyncio.Queue] = set()

    async def _deliver(self, event: ChangeEventModel) -> None:
        for queue in list(self.subscribers):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logging.warning(f"Disconnecting change subscriber {queue.qsize()} events behind")
                self.disconnect_queue(queue)

    def open_queue(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.maxsize)
        self.subscribers.add(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue) -> None:
        self.subscribers.discard(queue)

    def disconnect_queue(self, queue: asyncio.Queue) -> None:
        self.close_queue(queue)
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(None)

    async def subscribe(self) -> AsyncIterator[ChangeEventModel]:
        queue = self.open_queue()
        try:
            while True:
                event = await queue.get()
                if event is None:
                    return
                yield event
        finally:
            self.close_queue(queue)
