"""
In-process publish/subscribe for WebSocket clients.

Rooms are plain strings (``user:<id>``, ``order:<id>``). Publishing is safe
from any thread: each subscriber owns an asyncio queue on its event loop and
messages are handed over with ``call_soon_threadsafe``. Delivery is
best-effort; a full queue or a closed loop drops the message.
"""
import asyncio
import logging
import threading
from collections import defaultdict
from typing import Dict, Set

logger = logging.getLogger(__name__)


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


def order_room(order_id: int) -> str:
    return f"order:{order_id}"


class Subscriber:
    def __init__(self, loop: asyncio.AbstractEventLoop = None, maxsize: int = 100):
        self.loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.rooms: Set[str] = set()

    def _put(self, message: dict):
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Subscriber queue full, dropping %s", message.get("event"))

    def deliver(self, message: dict):
        try:
            self.loop.call_soon_threadsafe(self._put, message)
        except RuntimeError:
            # loop already closed, the socket is gone
            logger.debug("Dropping message for closed subscriber")

    async def receive(self) -> dict:
        return await self.queue.get()


class ConnectionHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._rooms: Dict[str, Set[Subscriber]] = defaultdict(set)

    def subscribe(self, subscriber: Subscriber, room: str):
        with self._lock:
            self._rooms[room].add(subscriber)
            subscriber.rooms.add(room)

    def unsubscribe(self, subscriber: Subscriber, room: str = None):
        """Leave ``room``, or every room when none is given."""
        with self._lock:
            rooms = [room] if room else list(subscriber.rooms)
            for name in rooms:
                members = self._rooms.get(name)
                if members is not None:
                    members.discard(subscriber)
                    if not members:
                        del self._rooms[name]
                subscriber.rooms.discard(name)

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def publish(self, room: str, event: str, payload) -> int:
        with self._lock:
            members = list(self._rooms.get(room, ()))

        message = {"event": event, "data": payload}
        for subscriber in members:
            subscriber.deliver(message)

        logger.debug("Published %s to %s (%d subscribers)", event, room, len(members))
        return len(members)
