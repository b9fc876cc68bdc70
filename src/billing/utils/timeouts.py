"""Deadline-bounded calls to I/O collaborators."""

from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

import structlog

from billing.errors import CollaboratorTimeoutError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class DeadlineRunner:
    """Runs collaborator calls on a worker pool and abandons them after ``timeout`` seconds.

    The abandoned call keeps running on its worker; the caller gets a
    ``CollaboratorTimeoutError`` and may retry.
    """

    def __init__(self, timeout: float, executor: Executor | None = None, max_workers: int = 4) -> None:
        self.timeout = timeout
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="billing-io")

    def call(self, operation: str, fn: Callable[..., T], *args: Any, timeout: float | None = None, **kwargs: Any) -> T:
        deadline = self.timeout if timeout is None else timeout
        future = self._executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=deadline)
        except FutureTimeoutError as exc:
            if future.done():
                # The collaborator raised its own timeout
                raise
            future.cancel()
            logger.warning("collaborator_timeout", operation=operation, timeout=deadline)
            raise CollaboratorTimeoutError(operation, deadline) from exc

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
