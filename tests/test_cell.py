"""Tests for the shared-state cells used by solver workers."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from postflop.solver.cell import LockedCell, PartitionedArray, SharedCell


class TestLockedCell:
    def test_is_shared_cell(self):
        assert isinstance(LockedCell(0), SharedCell)

    def test_exclusive_mutation(self):
        cell = LockedCell({"count": 0})

        def work(_):
            for _ in range(1000):
                with cell.exclusive() as state:
                    state["count"] += 1

        with ThreadPoolExecutor(4) as pool:
            list(pool.map(work, range(4)))

        with cell.shared() as state:
            assert state["count"] == 4000

    def test_reentrant(self):
        cell = LockedCell([])
        with cell.exclusive() as outer:
            with cell.shared() as inner:
                assert inner is outer

    def test_replace(self):
        cell = LockedCell([1])
        assert cell.replace([2]) == [1]
        with cell.shared() as value:
            assert value == [2]


class TestPartitionedArray:
    def test_rows_per_worker(self):
        array = PartitionedArray(4, 3)

        def work(part):
            with array.exclusive(part) as row:
                row[:] = part + 1

        with ThreadPoolExecutor(4) as pool:
            list(pool.map(work, range(4)))

        assert np.allclose(array.sum(), [10, 10, 10])

    def test_shared_view_is_read_only(self):
        array = PartitionedArray(2, 2)
        with array.shared() as view:
            with pytest.raises(ValueError):
                view[0, 0] = 1.0

    def test_out_of_range_partition(self):
        array = PartitionedArray(2, 2)
        with pytest.raises(IndexError):
            with array.exclusive(2):
                pass

    def test_requires_partitions(self):
        with pytest.raises(ValueError):
            PartitionedArray(0, 3)
