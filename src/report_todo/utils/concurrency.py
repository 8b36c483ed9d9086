"""Bounded per-file parallelism with cooperative, between-files cancellation."""

from __future__ import annotations

import asyncio
import signal
import threading
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator, Sequence

T = TypeVar("T")
R = TypeVar("R")


class CancellationToken:
    """Stop signal observed before each unit of work starts.

    Work already running on a thread is never interrupted. ``cancel`` may be
    called from any thread or from a signal handler.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "cancelled") -> None:
        if self.reason is None:
            self.reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class BoundedSemaphore:
    """``asyncio.Semaphore`` that also reports how many permits are in use."""

    def __init__(self, limit: int) -> None:
        if limit <= 0:
            raise ValueError("limit must be > 0")
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self._in_use = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def peak(self) -> int:
        return self._peak

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_use += 1
        self._peak = max(self._peak, self._in_use)

    def release(self) -> None:
        if self._in_use <= 0:
            raise RuntimeError("release called more times than acquire")
        self._in_use -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()


@dataclass(slots=True)
class WorkerPool(Generic[T]):
    """Run blocking work on threads with at most ``max_concurrency`` items in flight."""

    max_concurrency: int
    cancel_token: CancellationToken | None = None
    _token: CancellationToken = field(init=False, repr=False)
    _semaphore: BoundedSemaphore = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self._token = self.cancel_token or CancellationToken()
        self._semaphore = BoundedSemaphore(self.max_concurrency)

    @property
    def peak_concurrency(self) -> int:
        return self._semaphore.peak

    async def map_threaded(self, func: Callable[[R], T], items: Sequence[R]) -> list[T | None]:
        """Apply blocking ``func`` to each item on worker threads, keeping input order.

        Items not started before the token is cancelled come back as ``None``.
        """

        async def call(item: R) -> T | None:
            async with self._semaphore.permit():
                if self._token.is_cancelled:
                    return None
                return await asyncio.to_thread(func, item)

        tasks = [asyncio.create_task(call(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            raise


@contextmanager
def cancel_on_interrupt(token: CancellationToken) -> Iterator[bool]:
    """Route SIGINT to ``token.cancel("interrupted")`` while the running loop is active.

    Yields whether the handler was installed. Event loops without signal
    support and loops outside the main thread leave SIGINT alone.
    """

    loop = asyncio.get_running_loop()
    installed = True
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted")
    except (NotImplementedError, RuntimeError, ValueError):
        installed = False
    try:
        yield installed
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


def run_threaded(
    func: Callable[[R], T],
    items: Sequence[R],
    *,
    workers: int,
    cancel_token: CancellationToken | None = None,
) -> list[T | None]:
    """Synchronous entrypoint: run ``func`` over ``items`` on a bounded thread pool.

    When ``cancel_token`` is given, Ctrl-C cancels it so files not yet started
    are skipped and the caller still gets the partial results.
    """

    async def _main() -> list[T | None]:
        pool: WorkerPool[T] = WorkerPool(workers, cancel_token)
        if cancel_token is None:
            return await pool.map_threaded(func, items)
        with cancel_on_interrupt(cancel_token):
            return await pool.map_threaded(func, items)

    return asyncio.run(_main())


__all__ = [
    "BoundedSemaphore",
    "CancellationToken",
    "WorkerPool",
    "cancel_on_interrupt",
    "run_threaded",
]
