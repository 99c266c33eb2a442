from __future__ import annotations

import pytest
from sqlalchemy import text

import app.db.models  # noqa: F401
from app.core.integration_db_safety import assert_safe_integration_db
from app.db.models.base import Base
from app.db.session import engine
from app.db.triggers import (
    DROP_TOKEN_TRANSACTIONS_APPEND_ONLY,
    TOKEN_TRANSACTIONS_APPEND_ONLY_FUNCTION,
    TOKEN_TRANSACTIONS_APPEND_ONLY_TRIGGER,
)

TRUNCATE_TABLES = (
    "token_transactions",
    "token_ledgers",
    "conversations",
    "missions",
    "outbox_events",
    "users",
)

TRUNCATE_SQL = f"TRUNCATE TABLE {', '.join(TRUNCATE_TABLES)} RESTART IDENTITY CASCADE"

_schema_ready = False


@pytest.fixture(scope="session", autouse=True)
def guard_integration_db_target() -> None:
    assert_safe_integration_db(str(engine.url))


async def _ensure_schema() -> None:
    global _schema_ready
    if _schema_ready:
        return
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text(TOKEN_TRANSACTIONS_APPEND_ONLY_FUNCTION))
        await conn.execute(text(DROP_TOKEN_TRANSACTIONS_APPEND_ONLY[0]))
        await conn.execute(text(TOKEN_TRANSACTIONS_APPEND_ONLY_TRIGGER))
    _schema_ready = True


@pytest.fixture(autouse=True)
async def cleanup_db() -> None:
    # Dispose pooled connections between tests to avoid cross-event-loop asyncpg reuse.
    await engine.dispose()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:  # pragma: no cover - environment-dependent
        pytest.skip(f"Postgres is required for integration tests: {exc}")

    await _ensure_schema()
    async with engine.begin() as conn:
        await conn.execute(text(TRUNCATE_SQL))

    yield

    await engine.dispose()
