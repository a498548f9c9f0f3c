"""
Deterministic partitioning of the code pool across virtual users.

Every worker gets a contiguous slice of the pool. Slices are equal-sized
except for the last worker, which also takes the remainder. When there are
more workers than codes, the first ``len(pool)`` workers get one code each
and the rest get nothing.
"""
from __future__ import annotations

import threading
from collections.abc import Sequence

import structlog

from codes_validation.exceptions import InvalidArgumentError

logger = structlog.get_logger(__name__)


def compute_slice(pool: Sequence[str], worker_count: int, worker_index: int) -> list[str]:
    """Return the codes assigned to the 1-based ``worker_index`` out of ``worker_count``."""
    if worker_count <= 0:
        raise InvalidArgumentError(f"worker_count must be >= 1, got {worker_count}")
    if not 1 <= worker_index <= worker_count:
        raise InvalidArgumentError(
            f"worker_index must be in [1, {worker_count}], got {worker_index}"
        )

    size = len(pool)
    chunk_size = size // worker_count

    # More workers than codes: one code each while they last.
    if chunk_size == 0:
        return [pool[worker_index - 1]] if worker_index - 1 < size else []

    start = (worker_index - 1) * chunk_size
    end = size if worker_index == worker_count else start + chunk_size
    if start >= size:
        return []
    return list(pool[start : min(end, size)])


class SliceAssigner:
    """
    Hands out worker ordinals and their slices in spawn order.

    The host framework creates users without a stable 1-based id, so the
    assigner numbers them as they claim work. It also counts finished
    workers so a load shape can stop the test once every slice is done.
    """

    def __init__(self, pool: Sequence[str], worker_count: int) -> None:
        if worker_count <= 0:
            raise InvalidArgumentError(f"worker_count must be >= 1, got {worker_count}")
        self._pool = tuple(pool)
        self._worker_count = worker_count
        self._claimed = 0
        self._finished: set[int] = set()
        self._lock = threading.Lock()

    @property
    def pool(self) -> tuple[str, ...]:
        return self._pool

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def all_finished(self) -> bool:
        with self._lock:
            return len(self._finished) >= self._worker_count

    def claim(self) -> tuple[int, list[str]]:
        """Reserve the next worker ordinal and return it with its slice."""
        with self._lock:
            self._claimed += 1
            worker_index = self._claimed
        codes = compute_slice(self._pool, self._worker_count, worker_index)
        logger.info(
            "worker_slice_claimed",
            worker_index=worker_index,
            worker_count=self._worker_count,
            codes=len(codes),
        )
        return worker_index, codes

    def finish(self, worker_index: int) -> None:
        """Mark ``worker_index`` as done with its slice. Repeated calls are ignored."""
        with self._lock:
            self._finished.add(worker_index)
