"""
Deferred post-response work.

Tasks are queued while a request is handled and run by the host after the
response has been sent. Execution is best effort and may happen zero or
more times, so every task must re-check its own preconditions.
"""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class DeferredTasks:
    """Callback list drained after the response is finalized."""

    def __init__(self) -> None:
        self._tasks: list[tuple[str, Callable[[], None]]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def add(self, name: str, task: Callable[[], None]) -> None:
        self._tasks.append((name, task))

    def run_pending(self) -> int:
        """
        Run and forget every queued task.

        A task that raises is logged and does not stop the others.

        Returns:
            Number of tasks that completed without raising
        """
        tasks, self._tasks = self._tasks, []
        completed = 0
        for name, task in tasks:
            try:
                task()
            except Exception:
                logger.exception("Deferred task failed: %s", name)
            else:
                completed += 1
        return completed
