from __future__ import annotations

from typing import Any


class DummySavepoint:
    def __init__(self, session: DummySession) -> None:
        self._session = session

    async def __aenter__(self) -> DummySavepoint:
        self._session.savepoints += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self._session.savepoint_rollbacks += 1
        return False


class DummySession:
    def __init__(self) -> None:
        self.added: list[Any] = []
        self.savepoints = 0
        self.savepoint_rollbacks = 0

    def add(self, obj: Any) -> None:
        self.added.append(obj)

    async def flush(self) -> None:
        return None

    def begin_nested(self) -> DummySavepoint:
        return DummySavepoint(self)


class DummySessionBegin:
    def __init__(self, session: DummySession) -> None:
        self._session = session

    async def __aenter__(self) -> DummySession:
        return self._session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class DummySessionLocal:
    """Stands in for ``SessionLocal`` in both ``begin()`` and plain-context form."""

    def __init__(self) -> None:
        self.session = DummySession()
        self.begin_calls = 0

    def __call__(self) -> DummySessionBegin:
        return DummySessionBegin(self.session)

    def begin(self) -> DummySessionBegin:
        self.begin_calls += 1
        return DummySessionBegin(self.session)
