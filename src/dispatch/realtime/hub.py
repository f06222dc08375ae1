"""In-process realtime hub and the queue-backed subscriber used by /ws."""

import asyncio
import threading
from collections import defaultdict
from datetime import UTC, datetime

import structlog

from dispatch.realtime.port import RealtimePort, Subscriber

logger = structlog.get_logger(__name__)


class QueueSubscriber(Subscriber):
    """Buffers frames for one connection in a bounded asyncio queue.

    A full queue drops the new frame; slow readers lose updates instead of
    stalling publishers. Frames published from another thread are handed to
    the owning event loop.
    """

    def __init__(self, maxsize: int, loop: asyncio.AbstractEventLoop | None = None):
        self.loop = loop or asyncio.get_running_loop()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def deliver(self, frame: dict) -> bool:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            return self._put(frame)
        self.loop.call_soon_threadsafe(self._put, frame)
        return True

    def _put(self, frame: dict) -> bool:
        try:
            self.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Realtime frame dropped", event_name=frame.get("type"), dropped=self.dropped)
            return False

    async def next_frame(self) -> dict:
        return await self.queue.get()


class RealtimeHub(RealtimePort):
    """Group membership held in memory for a single process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._groups: dict[str, set[Subscriber]] = defaultdict(set)

    def subscribe(self, group, subscriber):
        with self._lock:
            self._groups[group].add(subscriber)

    def unsubscribe(self, group, subscriber):
        with self._lock:
            members = self._groups.get(group)
            if members is None:
                return
            members.discard(subscriber)
            if not members:
                del self._groups[group]

    def unsubscribe_all(self, subscriber):
        with self._lock:
            for group in [g for g, members in self._groups.items() if subscriber in members]:
                self._groups[group].discard(subscriber)
                if not self._groups[group]:
                    del self._groups[group]

    def members(self, group: str) -> int:
        with self._lock:
            return len(self._groups.get(group, ()))

    def publish(self, group, event_name, payload):
        frame = {"type": event_name, "payload": payload, "ts": datetime.now(UTC).isoformat()}
        with self._lock:
            recipients = list(self._groups.get(group, ()))

        delivered = 0
        for subscriber in recipients:
            try:
                if subscriber.deliver(frame):
                    delivered += 1
            except Exception as exc:
                logger.warning("Realtime delivery failed", group=group, event_name=event_name, error=str(exc))
        return delivered

    def close(self) -> None:
        with self._lock:
            self._groups.clear()
