"""
Code pool runner.

Builds the code pool from the configured source ahead of a load run,
writes it to the pool file (results/codes.json by default) and prints a
Rich summary. A later run can then use ``LT_AC_CODE_SOURCE=file`` to replay
the same pool, which is how staging reuses a fixed set of codes.

Usage:
    python -m codes_validation.runner [output_path]
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import structlog
from rich.console import Console
from rich.table import Table

from codes_validation.code_sources import load_code_pool, write_code_pool
from codes_validation.config import CodeSource, Settings, load_settings
from codes_validation.exceptions import ConfigurationError, ProvisioningError

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ]
)

logger = structlog.get_logger(__name__)

console = Console()


def print_summary(settings: Settings, pool: list[str], path: Path) -> None:
    table = Table(title="Code Pool", show_lines=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key, value in settings.summary().items():
        table.add_row(key, str(value))
    table.add_row("codes", str(len(pool)))
    table.add_row("written to", str(path))
    console.print(table)


async def run(output_path: Path | None = None) -> int:
    """Provision, persist and summarise the pool. Returns the process exit code."""
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        return 1

    if settings.code_source is CodeSource.FILE:
        console.print("[yellow]Code source is 'file'; nothing to provision.[/yellow]")
        return 1

    path = output_path or settings.codes_file
    try:
        pool = await load_code_pool(settings)
    except ProvisioningError as exc:
        logger.error("pool_provisioning_failed", step=exc.step, order_index=exc.order_index)
        console.print(f"[red]Provisioning failed: {exc}[/red]")
        return 1

    write_code_pool(path, pool)
    print_summary(settings, pool, path)
    return 0


def main() -> None:
    output = Path(sys.argv[1]) if len(sys.argv) > 1 else None
    sys.exit(asyncio.run(run(output)))


if __name__ == "__main__":
    main()
