"""Pluggable task execution for per-variable and per-fold work.

Treatment design is embarrassingly parallel: each variable (and, inside the
cross-frame builder, each fold) is an independent task producing an
independent result. The core only ever asks a runner to ``map_reduce`` a
function over a list of items and then merges the results on the calling
thread.

Runners
-------
- :class:`SequentialRunner` (default): plain in-process loop.
- :class:`ExecutorRunner`: wraps a caller-owned
  :class:`concurrent.futures.Executor` (thread or process pool). The runner
  never creates or shuts down the executor; its lifecycle belongs to the
  caller.

Notes
-----
With a ``ProcessPoolExecutor`` the mapped function and its items must be
picklable; the design functions in :mod:`variable_treatment.src.models` only
submit module-level functions bound with :func:`functools.partial`.
"""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


class TaskRunner(Protocol):
    """Anything that can map a function over items and return results in order."""

    def map_reduce(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        ...


class SequentialRunner:
    """Run tasks one after another on the calling thread."""

    def map_reduce(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        return [fn(item) for item in items]


class ExecutorRunner:
    """Dispatch tasks to a caller-supplied executor and join on all results.

    Parameters
    ----------
    executor:
        A :class:`concurrent.futures.Executor` owned by the caller.
    """

    def __init__(self, executor: Executor):
        self.executor = executor

    def map_reduce(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        futures = [self.executor.submit(fn, item) for item in items]
        # Join barrier: results are collected in submission order.
        return [future.result() for future in futures]


def resolve_runner(runner: Optional[TaskRunner]) -> TaskRunner:
    """Return ``runner`` or the sequential default."""
    if runner is None:
        return SequentialRunner()
    if not hasattr(runner, "map_reduce"):
        raise TypeError(
            f"runner must provide map_reduce(fn, items); got {type(runner).__name__}."
        )
    return runner


__all__ = ["TaskRunner", "SequentialRunner", "ExecutorRunner", "resolve_runner"]
