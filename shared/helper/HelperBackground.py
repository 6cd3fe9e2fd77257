"""Fire-and-forget execution of best-effort writes."""

import asyncio
from typing import Any, Coroutine

from shared.exceptions import PersistenceWarning
from shared.helper.HelperConfig import HelperConfig


class BackgroundDispatcher:
    """Runs best-effort coroutines as background tasks.

    Failures are logged as PersistenceWarning and never reach the caller.
    References to pending tasks are kept so they are not garbage collected
    and can be drained on shutdown.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, coro: Coroutine[Any, Any, Any], target: str) -> asyncio.Task:
        """Schedule `coro` on the running loop and return immediately.

        Args:
            coro: The write to run.
            target (str): Name of the written resource, used in the failure log.

        Returns:
            asyncio.Task: The scheduled task.
        """
        task = asyncio.create_task(self._run(coro, target))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Coroutine[Any, Any, Any], target: str) -> None:
        try:
            await coro
        except Exception as e:
            warning = PersistenceWarning(target, e)
            self.logging.warning("%s", warning)

    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait until every dispatched task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
