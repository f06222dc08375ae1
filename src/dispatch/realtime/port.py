"""Realtime port — publish/subscribe over named subscriber groups.

Groups are ``admin`` and ``order:<order_id>``. Publishing is fire-and-forget:
it must not block on slow subscribers, must not raise into the caller, and
offers no replay to subscribers that join later.
"""

from abc import ABC, abstractmethod

ADMIN_GROUP = "admin"


def order_group(order_id) -> str:
    return f"order:{order_id}"


class Subscriber(ABC):
    """One receiving end, typically a WebSocket connection."""

    @abstractmethod
    def deliver(self, frame: dict) -> bool:
        """Hand over a frame without blocking. Returns False when it was dropped."""
        ...


class RealtimePort(ABC):
    """Abstract interface for realtime transports."""

    @abstractmethod
    def publish(self, group: str, event_name: str, payload: dict) -> int:
        """Send ``payload`` to every current member of ``group``.

        Returns:
            the number of subscribers the frame was delivered to
        """
        ...

    @abstractmethod
    def subscribe(self, group: str, subscriber: Subscriber) -> None: ...

    @abstractmethod
    def unsubscribe(self, group: str, subscriber: Subscriber) -> None: ...

    @abstractmethod
    def unsubscribe_all(self, subscriber: Subscriber) -> None:
        """Remove ``subscriber`` from every group it joined."""
        ...
