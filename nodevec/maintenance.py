"""
Periodic store maintenance.

Long-running hosts (the interactive shell) schedule :func:`run_cycle` with
:func:`startup` so drift between the span registry and the vector index is
repaired and the database stays compact. Cancel with :func:`shutdown`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from .store import VectorStore

logger = logging.getLogger(__name__)


async def run_cycle(store: VectorStore) -> None:
    """Reconcile the store, then compact it."""
    report = await store.reconcile()
    await store.compact()
    logger.info(
        "Maintenance cycle done (dangling_rows=%d, orphan_vectors=%d)",
        report.dangling_rows,
        report.orphan_vectors,
    )


async def startup(task_fn: Callable[[], Awaitable[None]], interval: float) -> asyncio.Task:
    """
    Schedule ``task_fn`` to run every ``interval`` seconds until cancelled.

    A failing cycle is logged and the schedule carries on.
    """

    async def _periodic() -> None:
        await asyncio.sleep(interval)   # first cycle after one interval
        while True:
            try:
                await task_fn()
            except Exception as exc:
                logger.error("Maintenance cycle failed: %s", exc)
            await asyncio.sleep(interval)

    return asyncio.create_task(_periodic())


async def shutdown(task: asyncio.Task | None) -> None:
    """Cancel a task started with :func:`startup` and wait for it to finish."""
    if not task:
        return

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
