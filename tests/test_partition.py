from __future__ import annotations

import pytest

from codes_validation.exceptions import InvalidArgumentError
from codes_validation.partition import SliceAssigner, compute_slice


def _pool(n: int) -> list[str]:
    return [f"C{i}" for i in range(n)]


@pytest.mark.parametrize("size,workers", [(10, 1), (10, 3), (23, 5), (20, 20), (100, 7)])
def test_slices_cover_pool_exactly(size, workers):
    pool = _pool(size)
    joined = []
    for i in range(1, workers + 1):
        joined.extend(compute_slice(pool, workers, i))
    assert joined == pool


def test_slices_are_disjoint():
    pool = _pool(23)
    seen: set[str] = set()
    for i in range(1, 6):
        chunk = set(compute_slice(pool, 5, i))
        assert not (chunk & seen)
        seen |= chunk
    assert len(seen) == 23


def test_remainder_goes_to_last_worker():
    pool = _pool(23)
    lengths = [len(compute_slice(pool, 5, i)) for i in range(1, 6)]
    assert lengths == [4, 4, 4, 4, 7]


def test_more_workers_than_codes():
    pool = ["a", "b", "c"]
    slices = [compute_slice(pool, 10, i) for i in range(1, 11)]
    assert slices[:3] == [["a"], ["b"], ["c"]]
    assert all(s == [] for s in slices[3:])


def test_empty_pool_gives_empty_slices():
    assert compute_slice([], 3, 1) == []
    assert compute_slice([], 3, 3) == []


def test_single_worker_gets_everything():
    pool = _pool(9)
    assert compute_slice(pool, 1, 1) == pool


def test_duplicates_are_preserved():
    pool = ["x", "x", "y", "y"]
    assert compute_slice(pool, 2, 1) == ["x", "x"]
    assert compute_slice(pool, 2, 2) == ["y", "y"]


@pytest.mark.parametrize("workers,index", [(0, 1), (3, 0), (3, 4), (-1, 1)])
def test_contract_violations(workers, index):
    with pytest.raises(InvalidArgumentError):
        compute_slice(_pool(5), workers, index)


def test_assigner_hands_out_ordinals_in_order():
    assigner = SliceAssigner(_pool(7), 3)
    assert assigner.claim() == (1, ["C0", "C1"])
    assert assigner.claim() == (2, ["C2", "C3"])
    assert assigner.claim() == (3, ["C4", "C5", "C6"])
    with pytest.raises(InvalidArgumentError):
        assigner.claim()


def test_assigner_tracks_finished_workers():
    assigner = SliceAssigner(_pool(4), 2)
    first, _ = assigner.claim()
    second, _ = assigner.claim()
    assigner.finish(first)
    assigner.finish(first)
    assert not assigner.all_finished
    assigner.finish(second)
    assert assigner.all_finished


def test_assigner_pool_is_immutable_copy():
    source = _pool(3)
    assigner = SliceAssigner(source, 1)
    source.append("late")
    assert assigner.pool == ("C0", "C1", "C2")


def test_assigner_rejects_zero_workers():
    with pytest.raises(InvalidArgumentError):
        SliceAssigner(_pool(3), 0)
