"""Fire-and-forget coroutine bookkeeping."""

import asyncio
import logging
import warnings
from typing import Awaitable, Set

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Spawns coroutines on the running loop and logs their failures.

    References are kept until each task finishes so the loop cannot drop
    them half way.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, description: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(description)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self):
        """Wait until every spawned task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self):
        for task in list(self._tasks):
            task.cancel()


def install_loop_policy(policy):
    """Make ``policy`` create the loops ``asyncio`` hands out.

    Python 3.14 deprecates the policy functions, but PyGObject still
    integrates with GLib through one, so the warning is silenced here.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", DeprecationWarning)
        asyncio.set_event_loop_policy(policy)
