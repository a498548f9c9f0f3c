"""
Run-level state shared by the Locust users, and the decisions taken on it.

Kept free of Locust imports so the shape and exit-code rules can be
exercised with plain stand-ins for the Locust environment.
"""
from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console

from codes_validation.config import Settings
from codes_validation.partition import SliceAssigner
from codes_validation.thresholds import evaluate_thresholds, print_thresholds


@dataclass
class CodesValidationRun:
    """State shared by every user of one load run."""

    settings: Settings
    assigner: SliceAssigner


def get_run(environment) -> CodesValidationRun | None:
    return getattr(environment, "codes_run", None)


def next_shape_state(environment) -> tuple[int, int] | None:
    """All users at once (spawn rate == user count) until every slice is done."""
    run = get_run(environment)
    if run is None or run.assigner.all_finished:
        return None
    return run.assigner.worker_count, run.assigner.worker_count


def apply_thresholds(environment, console: Console | None = None) -> bool:
    """
    Check the global assertions against the run's total stats.

    Prints the result table and sets ``process_exit_code = 1`` on any
    failure. Returns whether every assertion passed.
    """
    run = get_run(environment)
    if run is None:
        return True
    total = environment.stats.total
    results = evaluate_thresholds(
        max_response_time_ms=total.max_response_time,
        num_failures=total.num_failures,
        limit_ms=run.settings.max_response_time_ms,
    )
    print_thresholds(results, console=console)
    passed = all(r.passed for r in results)
    if not passed:
        environment.process_exit_code = 1
    return passed
