"""ProcessDueTasks and CancelScheduledTask — commands and handler.

``ProcessDueTasks`` is issued periodically by the task runner. Each due task
is handed to the executor registered for its kind; a failing executor marks
the task failed for a later retry and never stops the rest of the batch.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from dispatch.domain import dispatch
from dispatch.order.payment import settle_order_payment
from dispatch.scheduling.task import ScheduledTask, TaskKind, TaskStatus

logger = structlog.get_logger(__name__)


def _settle_upi_payment(task: ScheduledTask) -> None:
    settle_order_payment(task.target_id, task.data.get("payment_reference"))


_EXECUTORS = {
    TaskKind.SETTLE_UPI_PAYMENT.value: _settle_upi_payment,
}


@dispatch.command(part_of="ScheduledTask")
class ProcessDueTasks:
    """Run every pending task whose due time has passed."""

    as_of = DateTime()  # defaults to now


@dispatch.command(part_of="ScheduledTask")
class CancelScheduledTask:
    task_id = Identifier(required=True)


@dispatch.command_handler(part_of=ScheduledTask)
class ScheduledTaskHandler:
    @handle(ProcessDueTasks)
    def process_due_tasks(self, command):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(ScheduledTask)
        pending = repo._dao.query.filter(status=TaskStatus.PENDING.value).order_by("due_at").all().items

        executed = 0
        for task in pending:
            if not task.is_due(as_of):
                continue

            try:
                _EXECUTORS[task.kind](task)
                task.mark_completed()
                executed += 1
            except Exception as exc:
                task.mark_failed(str(exc))
                logger.error(
                    "Scheduled task failed",
                    task_id=str(task.id),
                    kind=task.kind,
                    target_id=task.target_id,
                    attempts=task.attempts,
                    error=str(exc),
                )

            repo.add(task)

        if executed:
            logger.info("Scheduled tasks processed", executed=executed, as_of=str(as_of))
        return executed

    @handle(CancelScheduledTask)
    def cancel_task(self, command):
        repo = current_domain.repository_for(ScheduledTask)
        task = repo.get(command.task_id)
        task.cancel()
        repo.add(task)
