from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import SessionLocal
from app.economy.entitlements.errors import EntitlementUnavailableError, RoleNotPermittedError
from app.economy.entitlements.gate import EntitlementGate
from app.economy.entitlements.types import AccountContext
from app.economy.quotas.types import GuardedAction
from app.marketplace.missions import MissionService
from app.marketplace.types import MissionDraft
from app.services.identity import get_current_account

from .entitlement_responses import (
    denial_response,
    entitlement_unavailable_response,
    persistence_unavailable_response,
    role_not_permitted_response,
)
from .marketplace_helpers import (
    _as_mission_response,
    _as_settlement_response,
    _assert_company,
    _build_usage_response,
)
from .marketplace_models import (
    CanCreateResponse,
    MissionCreateRequest,
    MissionCreateResponse,
    UsageResponse,
)

router = APIRouter(tags=["missions"])
logger = structlog.get_logger(__name__)


@router.post("/missions", response_model=MissionCreateResponse, status_code=201)
async def create_mission(
    payload: MissionCreateRequest,
    account: AccountContext = Depends(get_current_account),
) -> MissionCreateResponse | JSONResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        result = await MissionService.create_mission(
            account=account,
            draft=MissionDraft(
                title=payload.title,
                description=payload.description,
                city=payload.city,
                featured_listing=payload.featured_listing,
            ),
            now_utc=now_utc,
        )
    except RoleNotPermittedError as exc:
        return role_not_permitted_response(exc)
    except EntitlementUnavailableError:
        return entitlement_unavailable_response()
    except SQLAlchemyError:
        logger.exception("mission_create_failed", user_id=account.user_id)
        return persistence_unavailable_response()

    if result.mission is None:
        return denial_response(result.decision)

    return MissionCreateResponse(
        success=True,
        mission=_as_mission_response(result.mission),
        entitlement=result.decision.details,
        settlement=_as_settlement_response(result.settlement),
    )


@router.get("/missions/usage/current", response_model=UsageResponse)
async def get_current_mission_usage(
    account: AccountContext = Depends(get_current_account),
) -> UsageResponse:
    _assert_company(account)
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal() as session:
        return await _build_usage_response(
            session,
            account=account,
            action=GuardedAction.MISSION_CREATE,
            now_utc=now_utc,
        )


@router.get("/missions/usage/can-create", response_model=CanCreateResponse)
async def can_create_mission(
    featured_listing: bool = Query(default=False),
    account: AccountContext = Depends(get_current_account),
) -> CanCreateResponse | JSONResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            decision = await EntitlementGate.evaluate(
                session,
                account=account,
                action=GuardedAction.MISSION_CREATE,
                now_utc=now_utc,
                featured_listing=featured_listing,
            )
    except RoleNotPermittedError as exc:
        return CanCreateResponse(
            can_create=False,
            role=exc.role,
            action=exc.action,
            reason="ROLE_NOT_PERMITTED",
            code="E_ROLE_NOT_PERMITTED",
            details={},
        )
    except (EntitlementUnavailableError, SQLAlchemyError):
        logger.exception("mission_can_create_unavailable", user_id=account.user_id)
        return entitlement_unavailable_response()

    return CanCreateResponse(
        can_create=decision.allowed,
        role=account.role,
        action=decision.action,
        policy=decision.policy.value,
        reason=decision.reason.value if decision.reason is not None else None,
        code=decision.code,
        details=decision.details,
    )
