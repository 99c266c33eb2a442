from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
DB_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
ALLOWED_LOCAL_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "mission_market_postgres",
    }
)


@dataclass(frozen=True, slots=True)
class IntegrationDbSafetyResult:
    is_safe: bool
    reason: str
    database_name: str
    host: str


def _db_name(url: URL) -> str:
    return (url.database or "").strip()


def _host(url: URL) -> str:
    return (url.host or "").strip().lower()


# Evaluated in order; the first failing rule decides the reason.
_SAFETY_RULES: tuple[tuple[Callable[[URL], bool], str], ...] = (
    (
        lambda url: url.get_backend_name() == "postgresql",
        "Integration tests support only PostgreSQL test databases.",
    ),
    (lambda url: bool(_db_name(url)), "Database name is empty."),
    (
        lambda url: TEST_DB_NAME_RE.search(_db_name(url)) is not None,
        "Database name must clearly indicate a test database (contain 'test').",
    ),
    (
        lambda url: DB_IDENTIFIER_RE.fullmatch(_db_name(url)) is not None,
        "Only [A-Za-z0-9_] database identifiers are supported.",
    ),
    (
        lambda url: _host(url) in ALLOWED_LOCAL_HOSTS,
        "Host is not in allowed local integration-test hosts.",
    ),
)


def assess_integration_db_safety(database_url: str) -> IntegrationDbSafetyResult:
    url = make_url(database_url)
    for rule, reason in _SAFETY_RULES:
        if not rule(url):
            return IntegrationDbSafetyResult(
                is_safe=False,
                reason=reason,
                database_name=_db_name(url),
                host=_host(url),
            )
    return IntegrationDbSafetyResult(
        is_safe=True,
        reason="ok",
        database_name=_db_name(url),
        host=_host(url),
    )


def assert_safe_integration_db(database_url: str) -> IntegrationDbSafetyResult:
    """Raise unless ``database_url`` points at a disposable local test database."""
    result = assess_integration_db_safety(database_url)
    if result.is_safe:
        return result

    raise RuntimeError(
        "Refusing to run integration tests with destructive TRUNCATE.\n"
        f"Reason: {result.reason}\n"
        f"Resolved DB: name='{result.database_name}' host='{result.host}'\n"
        "Required: use a dedicated local PostgreSQL test DB, e.g. 'mission_market_test'."
    )
