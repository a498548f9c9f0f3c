"""Pass/fail criteria applied to a finished load run."""
from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.table import Table


@dataclass
class ThresholdResult:
    """Outcome of one global assertion."""

    name: str
    expected: str
    actual: str
    passed: bool


def evaluate_thresholds(
    max_response_time_ms: float,
    num_failures: int,
    limit_ms: int,
) -> list[ThresholdResult]:
    """Max response time must stay under ``limit_ms`` and no request may fail."""
    return [
        ThresholdResult(
            name="max response time",
            expected=f"< {limit_ms} ms",
            actual=f"{max_response_time_ms:.0f} ms",
            passed=max_response_time_ms < limit_ms,
        ),
        ThresholdResult(
            name="failed requests",
            expected="0",
            actual=str(num_failures),
            passed=num_failures == 0,
        ),
    ]


def print_thresholds(results: list[ThresholdResult], console: Console | None = None) -> None:
    """Print Rich summary table."""
    console = console or Console()
    table = Table(title="Load Run Assertions", show_lines=True)
    table.add_column("Assertion", style="cyan", no_wrap=True)
    table.add_column("Expected", style="white")
    table.add_column("Actual", style="white")
    table.add_column("Pass/Fail", justify="center")

    for r in results:
        status = "[green]✓ PASS[/green]" if r.passed else "[red]✗ FAIL[/red]"
        table.add_row(r.name, r.expected, r.actual, status)

    console.print(table)
