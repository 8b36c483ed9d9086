"""Shared helpers with no scanner-specific knowledge."""

from report_todo.utils.concurrency import (
    BoundedSemaphore,
    CancellationToken,
    WorkerPool,
    cancel_on_interrupt,
    run_threaded,
)

__all__ = ["BoundedSemaphore", "CancellationToken", "WorkerPool", "cancel_on_interrupt", "run_threaded"]
