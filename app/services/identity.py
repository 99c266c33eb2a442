from __future__ import annotations

from fastapi import HTTPException, Request

from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.economy.entitlements.types import AccountContext

ACCOUNT_ID_HEADER = "X-Account-Id"


def parse_account_id(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    candidate = raw_value.strip()
    if not candidate.isdigit():
        return None
    account_id = int(candidate)
    return account_id if account_id > 0 else None


async def load_account_context(account_id: int) -> AccountContext | None:
    async with SessionLocal() as session:
        user = await UsersRepo.get_by_id(session, account_id)
    if user is None:
        return None
    return AccountContext(
        user_id=user.id,
        role=user.role,
        subscription_plan=user.subscription_plan,
        subscription_starts_at=user.subscription_starts_at,
        subscription_ends_at=user.subscription_ends_at,
    )


async def get_current_account(request: Request) -> AccountContext:
    """FastAPI dependency for the account an upstream gateway already authenticated."""
    account_id = parse_account_id(request.headers.get(ACCOUNT_ID_HEADER))
    if account_id is None:
        raise HTTPException(status_code=401, detail={"code": "E_UNAUTHENTICATED"})

    account = await load_account_context(account_id)
    if account is None:
        raise HTTPException(status_code=401, detail={"code": "E_UNAUTHENTICATED"})
    return account
