from __future__ import annotations

import asyncio
from typing import Any

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.db.session import SessionLocal

router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)

APPEND_ONLY_TRIGGER_NAME = "trg_token_transactions_append_only"

CheckResult = dict[str, Any]


def _check_result(error: str | None = None) -> CheckResult:
    if error is None:
        return {"status": "ok"}
    return {"status": "failed", "error": error}


async def _check_database() -> CheckResult:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        # Driver messages can carry the DSN; keep them in logs only.
        logger.exception("health_database_check_failed")
        return _check_result("database_unavailable")
    return _check_result()


async def _check_ledger_guard() -> CheckResult:
    """The ledger is only trustworthy while UPDATE/DELETE on its log are blocked."""
    try:
        async with SessionLocal() as session:
            installed = await session.scalar(
                text("SELECT count(*) FROM pg_trigger WHERE tgname = :name AND NOT tgisinternal"),
                {"name": APPEND_ONLY_TRIGGER_NAME},
            )
    except Exception:
        logger.exception("health_ledger_guard_check_failed")
        return _check_result("ledger_guard_unavailable")
    if not installed:
        logger.error("health_ledger_guard_missing", trigger=APPEND_ONLY_TRIGGER_NAME)
        return _check_result("append_only_trigger_missing")
    return _check_result()


async def _collect_checks() -> dict[str, CheckResult]:
    database, ledger_guard = await asyncio.gather(_check_database(), _check_ledger_guard())
    return {"database": database, "ledger_guard": ledger_guard}


def _checks_response(checks: dict[str, CheckResult], *, passing: str, failing: str) -> JSONResponse:
    passed = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if passed else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": passing if passed else failing, "checks": checks},
    )


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health() -> JSONResponse:
    return _checks_response(await _collect_checks(), passing="ok", failing="degraded")


@router.get("/ready")
async def ready() -> JSONResponse:
    return _checks_response(await _collect_checks(), passing="ready", failing="not_ready")
