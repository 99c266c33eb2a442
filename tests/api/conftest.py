from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from app.economy.entitlements.types import AccountContext
from app.main import app
from app.services.identity import get_current_account


@pytest.fixture
def as_account() -> Iterator[Callable[[AccountContext], None]]:
    def _override(account: AccountContext) -> None:
        app.dependency_overrides[get_current_account] = lambda: account

    yield _override
    app.dependency_overrides.pop(get_current_account, None)
