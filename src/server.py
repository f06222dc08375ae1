"""Protean Engine runner for the dispatch domain.

Starts the Engine workers that process events asynchronously, alongside the
scheduled-task runner:
- OutboxProcessor: polls outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes projectors and event handlers
- TaskRunner: executes due scheduled tasks (UPI settlement)

Usage:
    python src/server.py                 # Engine and task runner
    python src/server.py --no-tasks      # Engine only
"""

import argparse
import asyncio

from protean.server.engine import Engine

from dispatch.domain import dispatch
from dispatch.scheduling.runner import TaskRunner
from dispatch.utils.logging import configure_logging


async def run(with_tasks: bool):
    configure_logging()
    dispatch.init()

    workers = [Engine(dispatch).run()]
    if with_tasks:
        workers.append(TaskRunner(dispatch).run())

    await asyncio.gather(*workers)


def main():
    parser = argparse.ArgumentParser(description="Dispatch Engine runner")
    parser.add_argument(
        "--no-tasks",
        action="store_true",
        help="Do not run the scheduled-task runner in this process",
    )
    args = parser.parse_args()

    asyncio.run(run(with_tasks=not args.no_tasks))


if __name__ == "__main__":
    main()
