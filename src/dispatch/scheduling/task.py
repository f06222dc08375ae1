"""ScheduledTask aggregate — a deferred effect persisted with its due time.

Tasks outlive the request that created them and are executed at least once
by ``ProcessDueTasks``. Executors must therefore be idempotent.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from dispatch.domain import dispatch
from dispatch.errors import InvalidState


class TaskKind(Enum):
    SETTLE_UPI_PAYMENT = "settle_upi_payment"


class TaskStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Failed executions are retried until this many attempts have been made.
MAX_ATTEMPTS = 5


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


@dispatch.aggregate
class ScheduledTask:
    kind = String(required=True, choices=TaskKind)
    target_id = Identifier(required=True)
    payload = Text()  # JSON object handed to the executor
    due_at = DateTime(required=True)
    status = String(choices=TaskStatus, default=TaskStatus.PENDING.value)
    attempts = Integer(min_value=0, default=0)
    last_error = String(max_length=500)
    executed_at = DateTime()
    created_at = DateTime()

    @classmethod
    def schedule(cls, kind: TaskKind, target_id: str, delay_seconds: float, payload: dict | None = None):
        now = datetime.now(UTC)
        return cls(
            kind=kind.value,
            target_id=str(target_id),
            payload=json.dumps(payload or {}),
            due_at=now + timedelta(seconds=delay_seconds),
            created_at=now,
        )

    @property
    def data(self) -> dict:
        return json.loads(self.payload) if self.payload else {}

    def is_due(self, as_of: datetime) -> bool:
        return self.status == TaskStatus.PENDING.value and _aware(self.due_at) <= _aware(as_of)

    def mark_completed(self) -> None:
        self.status = TaskStatus.COMPLETED.value
        self.attempts = (self.attempts or 0) + 1
        self.executed_at = datetime.now(UTC)
        self.last_error = None

    def mark_failed(self, reason: str) -> None:
        """Record a failed attempt; gives up after ``MAX_ATTEMPTS``."""
        self.attempts = (self.attempts or 0) + 1
        self.last_error = reason[:500]
        if self.attempts >= MAX_ATTEMPTS:
            self.status = TaskStatus.FAILED.value

    def cancel(self) -> None:
        if self.status != TaskStatus.PENDING.value:
            raise InvalidState(f"Cannot cancel a task in {self.status} status")
        self.status = TaskStatus.CANCELLED.value
