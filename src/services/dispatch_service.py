"""Fire-and-forget dispatch of store writes, in issue order."""

import asyncio
from typing import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

# Module-level tracking across every dispatcher, drained on shutdown
_pending_tasks: set[asyncio.Task] = set()


async def await_pending_dispatches(timeout: float = 5.0) -> None:
    """Wait for all in-flight dispatches to finish.

    Called during application shutdown.

    Args:
        timeout: Maximum seconds to wait for pending tasks
    """
    if not _pending_tasks:
        return

    logger.info("draining_pending_dispatches", count=len(_pending_tasks))
    try:
        await asyncio.wait_for(
            asyncio.gather(*_pending_tasks, return_exceptions=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "pending_dispatches_timeout",
            remaining=len(_pending_tasks),
            timeout=timeout,
        )


class CommandDispatcher:
    """Schedules store writes in the background without awaiting them.

    Writes from one dispatcher run one at a time in the order they were
    dispatched (asyncio.Lock wakes waiters FIFO), so two commands on the
    same item reach the store in the order the visitor issued them.
    Once dispatched a write cannot be cancelled.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, write: Callable[[], Awaitable[object]], label: str) -> asyncio.Task:
        """Run ``write()`` in the background after earlier dispatches.

        Args:
            write: Zero-argument callable returning the awaitable to run
            label: Event name used when logging failures

        Returns:
            The created asyncio Task
        """
        task = asyncio.create_task(self._run(write, label))
        self._tasks.add(task)
        _pending_tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(_pending_tasks.discard)
        return task

    async def _run(self, write: Callable[[], Awaitable[object]], label: str) -> object:
        async with self._lock:
            try:
                return await write()
            except Exception as e:
                logger.warning(
                    "dispatch_failed",
                    command=label,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return None

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for this dispatcher's outstanding writes."""
        if not self._tasks:
            return
        # asyncio.wait leaves unfinished writes running on timeout
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_running:
            logger.warning("dispatch_drain_timeout", remaining=len(still_running))
