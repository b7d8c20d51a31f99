from __future__ import annotations

import asyncio
from functools import partial
from typing import Callable, Coroutine, TypeVar

import anyio

from helpdesk.core.exceptions import OperationTimeoutError

T = TypeVar("T")


def run_async(coro: Coroutine[object, object, T], *, timeout: float | None = None) -> T:
    """
    Run an async coroutine from sync code without asyncio.run in request threads.

    - In FastAPI sync endpoints, uses anyio.from_thread.run to execute on the main loop.
    - Falls back to anyio.run when no AnyIO worker thread is available (e.g., CLI/tests).
    - Raises if called from an async context in the same thread (use await instead).
    - Raises OperationTimeoutError when ``timeout`` seconds elapse first.
    """

    async def _runner() -> T:
        if timeout is not None:
            with anyio.fail_after(timeout):
                return await coro
        return await coro

    try:
        try:
            return anyio.from_thread.run(_runner)
        except RuntimeError:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                return anyio.run(_runner)
            raise RuntimeError("run_async called from async context; use await instead")
    except TimeoutError as exc:
        raise OperationTimeoutError() from exc


def run_blocking(func: Callable[..., T], *args: object, timeout: float) -> T:
    """
    Run a blocking callable on a worker thread, giving up after ``timeout`` seconds.

    The worker is abandoned on timeout; callers get OperationTimeoutError
    instead of hanging.
    """
    return run_async(
        anyio.to_thread.run_sync(partial(func, *args), abandon_on_cancel=True),
        timeout=timeout,
    )
