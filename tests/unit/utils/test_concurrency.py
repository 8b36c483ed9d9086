"""Tests for bounded per-file parallelism and cooperative cancellation."""

from __future__ import annotations

import asyncio
import os
import signal
import sys
import threading
import time

import pytest

from report_todo.utils.concurrency import (
    BoundedSemaphore,
    CancellationToken,
    WorkerPool,
    cancel_on_interrupt,
    run_threaded,
)


@pytest.mark.unit
def test_run_threaded_preserves_input_order() -> None:
    def work(item: int) -> int:
        time.sleep(0.001 * (5 - item))
        return item * 10

    assert run_threaded(work, [1, 2, 3, 4], workers=2) == [10, 20, 30, 40]


@pytest.mark.unit
def test_run_threaded_respects_worker_bound() -> None:
    lock = threading.Lock()
    active = 0
    peak = 0

    def work(item: int) -> int:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.01)
        with lock:
            active -= 1
        return item

    run_threaded(work, list(range(12)), workers=3)

    assert 1 <= peak <= 3


@pytest.mark.unit
def test_worker_pool_tracks_peak_concurrency() -> None:
    def work(item: int) -> int:
        time.sleep(0.01)
        return item

    async def main() -> tuple[list[int | None], int]:
        pool: WorkerPool[int] = WorkerPool(2)
        results = await pool.map_threaded(work, list(range(5)))
        return results, pool.peak_concurrency

    results, peak = asyncio.run(main())

    assert results == [0, 1, 2, 3, 4]
    assert peak == 2


@pytest.mark.unit
def test_cancellation_skips_items_not_yet_started() -> None:
    token = CancellationToken()

    def work(item: int) -> int:
        if item == 0:
            token.cancel("stop requested")
        return item

    results = run_threaded(work, list(range(6)), workers=1, cancel_token=token)

    assert results[0] == 0
    assert results[1:] == [None] * 5
    assert token.reason == "stop requested"


@pytest.mark.unit
def test_first_cancel_reason_wins() -> None:
    token = CancellationToken()

    token.cancel("interrupted")
    token.cancel("later")

    assert token.is_cancelled
    assert token.reason == "interrupted"


@pytest.mark.unit
@pytest.mark.skipif(sys.platform == "win32", reason="asyncio signal handlers need a POSIX event loop")
def test_sigint_cancels_files_not_yet_started() -> None:
    before = signal.getsignal(signal.SIGINT)
    token = CancellationToken()

    def work(item: int) -> int:
        if item == 0:
            os.kill(os.getpid(), signal.SIGINT)
            time.sleep(0.2)
        return item

    results = run_threaded(work, list(range(4)), workers=1, cancel_token=token)

    assert results == [0, None, None, None]
    assert token.reason == "interrupted"
    assert signal.getsignal(signal.SIGINT) is before


@pytest.mark.unit
def test_cancel_on_interrupt_skips_install_outside_main_thread() -> None:
    installed: list[bool] = []

    async def main() -> None:
        with cancel_on_interrupt(CancellationToken()) as ok:
            installed.append(ok)

    worker = threading.Thread(target=lambda: asyncio.run(main()))
    worker.start()
    worker.join()

    assert installed == [False]


@pytest.mark.unit
def test_worker_errors_propagate_from_run_threaded() -> None:
    def work(item: int) -> int:
        if item == 2:
            raise ValueError("bad item")
        return item

    with pytest.raises(ValueError, match="bad item"):
        run_threaded(work, [1, 2, 3], workers=2)


@pytest.mark.unit
def test_bounded_semaphore_accounting() -> None:
    async def main() -> BoundedSemaphore:
        semaphore = BoundedSemaphore(2)
        async with semaphore.permit():
            async with semaphore.permit():
                assert semaphore.in_use == 2
        return semaphore

    semaphore = asyncio.run(main())

    assert semaphore.in_use == 0
    assert semaphore.peak == 2
    with pytest.raises(RuntimeError):
        semaphore.release()


@pytest.mark.unit
@pytest.mark.parametrize("limit", [0, -1])
def test_non_positive_limits_are_rejected(limit: int) -> None:
    with pytest.raises(ValueError):
        BoundedSemaphore(limit)
    with pytest.raises(ValueError):
        WorkerPool(limit)
