"""
Where the code pool comes from.

- database : reset and read the local plan codes table (local stack only)
- booking  : manufacture codes through the booking API
- file     : reuse a pool written earlier by ``codes_validation.runner``

Whatever the source, an empty pool is an error: the load run must never
start against zero codes.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import structlog
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from codes_validation.config import MAIN_PLAN_ID, CodeSource, Settings
from codes_validation.exceptions import ProvisioningError
from codes_validation.provisioning import CodeProvisioner
from codes_validation.schemas import CodePoolFile

logger = structlog.get_logger(__name__)

RESET_VALIDATION_SQL = text(
    "UPDATE core_plancodes SET extra = 'is_validated => \"False\"' "
    "WHERE main_plan_id = :plan_id"
)
SELECT_CODES_SQL = text("SELECT code FROM core_plancodes WHERE main_plan_id = :plan_id")
SELECT_CODES_LIMIT_SQL = text(
    "SELECT code FROM core_plancodes WHERE main_plan_id = :plan_id LIMIT :limit"
)


class DatabaseCodeSource:
    """Resets and reads the plan codes table through an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine, plan_id: int = MAIN_PLAN_ID) -> None:
        self._engine = engine
        self._plan_id = plan_id

    @classmethod
    def from_url(cls, database_url: str, plan_id: int = MAIN_PLAN_ID) -> DatabaseCodeSource:
        return cls(create_async_engine(database_url, pool_pre_ping=True, echo=False), plan_id)

    async def reset_validation_state(self) -> int:
        """Mark every code of the plan as not validated; return the rows touched."""
        logger.info("codes_reset_started", plan_id=self._plan_id)
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(RESET_VALIDATION_SQL, {"plan_id": self._plan_id})
                touched = result.rowcount
        except (SQLAlchemyError, OSError) as exc:
            raise ProvisioningError(f"could not reset validation state: {exc}", step="reset_codes") from exc
        logger.info("codes_reset_done", plan_id=self._plan_id, rows=touched)
        return touched

    async def fetch_codes(self, limit: int | None = None) -> list[str]:
        logger.info("codes_fetch_started", plan_id=self._plan_id, limit=limit or "all")
        params: dict[str, int] = {"plan_id": self._plan_id}
        statement = SELECT_CODES_SQL
        if limit is not None:
            statement = SELECT_CODES_LIMIT_SQL
            params["limit"] = limit
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(statement, params)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as exc:
            raise ProvisioningError(f"could not fetch codes: {exc}", step="fetch_codes") from exc
        return [str(code).strip() for code in rows if code and str(code).strip()]

    async def prepare_and_fetch(self, limit: int | None = None) -> list[str]:
        try:
            await self.reset_validation_state()
            return await self.fetch_codes(limit)
        finally:
            await self._engine.dispose()


def read_code_pool(path: Path) -> list[str]:
    """Load a pool written by ``write_code_pool``."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ProvisioningError(f"cannot read pool file {path}: {exc}", step="read_pool") from exc
    try:
        return CodePoolFile.model_validate_json(raw).codes
    except ValidationError as exc:
        raise ProvisioningError(f"malformed pool file {path}", step="read_pool") from exc


def write_code_pool(path: Path, pool: list[str]) -> Path:
    """Serialise ``pool`` to ``path`` as JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    document = CodePoolFile(generated_at=datetime.now(timezone.utc), codes=list(pool))
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(document.model_dump(mode="json"), fh, indent=2)
    return path


async def load_code_pool(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
    engine: AsyncEngine | None = None,
) -> list[str]:
    """
    Build the pool from the configured source.

    ``transport`` and ``engine`` replace the real network/database
    connections (tests pass fakes).
    """
    logger.info("pool_load_started", source=settings.code_source.value)

    if settings.code_source is CodeSource.DATABASE:
        source = (
            DatabaseCodeSource(engine, settings.main_plan_id)
            if engine is not None
            else DatabaseCodeSource.from_url(settings.database_url, settings.main_plan_id)
        )
        pool = await source.prepare_and_fetch(settings.codes_limit)

    elif settings.code_source is CodeSource.BOOKING:
        if settings.session_id is None:
            raise ProvisioningError("no booking session configured", step="load_pool")
        async with httpx.AsyncClient(
            base_url=settings.booking_url,
            headers=settings.headers(),
            timeout=settings.http_timeout,
            transport=transport,
        ) as client:
            provisioner = CodeProvisioner(client, settings.partner_id)
            pool = await provisioner.provision(
                settings.session_id,
                settings.orders,
                settings.tickets_per_order,
                concurrency=settings.provision_concurrency,
            )

    else:
        pool = read_code_pool(settings.codes_file)

    if not pool:
        raise ProvisioningError(
            f"no codes available from the {settings.code_source.value} source; aborting load run",
            step="load_pool",
        )

    logger.info("pool_loaded", source=settings.code_source.value, codes=len(pool))
    return pool
