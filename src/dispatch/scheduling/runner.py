"""Background runner that issues ``ProcessDueTasks`` on a fixed interval.

Started by the FastAPI lifespan in ``app.py`` and by ``server.py``. Each tick
runs in a worker thread inside its own domain context so a slow executor does
not stall the event loop.
"""

import asyncio
import contextlib

import structlog
from protean.domain import Domain
from protean.utils.globals import current_domain

from dispatch.config import task_poll_interval_seconds
from dispatch.scheduling.processing import ProcessDueTasks

logger = structlog.get_logger(__name__)


class TaskRunner:
    def __init__(self, domain: Domain, interval: float | None = None):
        self.domain = domain
        self.interval = interval if interval is not None else task_poll_interval_seconds()
        self._task: asyncio.Task | None = None
        self._stopping = asyncio.Event()

    def run_once(self) -> int:
        """Process every due task now. Returns how many were executed."""
        with self.domain.domain_context():
            return current_domain.process(ProcessDueTasks(), asynchronous=False) or 0

    async def run(self) -> None:
        logger.info("Task runner started", interval=self.interval)
        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                logger.exception("Task runner tick failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
        logger.info("Task runner stopped")

    def start(self) -> asyncio.Task:
        self._stopping.clear()
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
