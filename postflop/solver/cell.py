"""Shared-state cells used by the solver's worker threads.

Both cells expose the same two views:

- ``exclusive()``: a writable view that no other worker touches while held
- ``shared()``: a read-only view

What makes a view race free differs between the two backings, and every
call site in the solver says which one it relies on:

- ``LockedCell`` serializes views through a lock. Use it when no static
  argument rules out overlapping access.
- ``PartitionedArray`` hands each worker its own row of a numpy array when
  the array is created. Workers never see each other's rows, so there is
  nothing to lock. ``shared()`` is only valid after every worker has
  finished (the pool barrier).
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Generic, Iterator, TypeVar

import numpy as np

T = TypeVar("T")


class SharedCell(ABC):
    """Interface for state handed out to concurrent workers."""

    @abstractmethod
    def exclusive(self, *args) -> Any:
        """Context manager yielding a writable view."""

    @abstractmethod
    def shared(self) -> Any:
        """Context manager yielding a read-only view."""


class LockedCell(SharedCell, Generic[T]):
    """Interior value guarded by a re-entrant lock."""

    def __init__(self, value: T):
        self._value = value
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[T]:
        with self._lock:
            yield self._value

    @contextmanager
    def shared(self) -> Iterator[T]:
        # No reader/writer split in the stdlib; readers take the same lock
        with self._lock:
            yield self._value

    def replace(self, value: T) -> T:
        """Swap in a new value, returning the old one."""
        with self._lock:
            old, self._value = self._value, value
            return old


class PartitionedArray(SharedCell):
    """
    A 2-D numpy array whose rows are owned one per worker.

    Row ownership is fixed at construction: worker ``i`` may only write row
    ``i``. No locking happens; the partition is what rules out races.
    """

    def __init__(self, num_parts: int, width: int, dtype=np.float64):
        if num_parts <= 0:
            raise ValueError(f"num_parts must be positive, got {num_parts}")
        self._data = np.zeros((num_parts, width), dtype=dtype)

    @property
    def num_parts(self) -> int:
        return self._data.shape[0]

    @contextmanager
    def exclusive(self, part: int) -> Iterator[np.ndarray]:
        if not 0 <= part < self.num_parts:
            raise IndexError(f"partition {part} out of range")
        yield self._data[part]

    @contextmanager
    def shared(self) -> Iterator[np.ndarray]:
        view = self._data.view()
        view.flags.writeable = False
        yield view

    def sum(self) -> np.ndarray:
        """Sum over partitions; call only after the worker barrier."""
        with self.shared() as view:
            return view.sum(axis=0)
