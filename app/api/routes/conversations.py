from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import SessionLocal
from app.economy.entitlements.errors import EntitlementUnavailableError, RoleNotPermittedError
from app.economy.entitlements.types import AccountContext
from app.economy.quotas.types import GuardedAction
from app.marketplace.conversations import ConversationService
from app.marketplace.errors import (
    MissionNotFoundError,
    ParticipantNotFoundError,
    SelfConversationError,
)
from app.services.identity import get_current_account

from .entitlement_responses import (
    denial_response,
    entitlement_unavailable_response,
    persistence_unavailable_response,
    role_not_permitted_response,
)
from .marketplace_helpers import (
    _as_conversation_response,
    _as_settlement_response,
    _assert_company,
    _build_usage_response,
)
from .marketplace_models import (
    ConversationCreateRequest,
    ConversationCreateResponse,
    UsageResponse,
)

router = APIRouter(tags=["conversations"])
logger = structlog.get_logger(__name__)


@router.post("/conversations", response_model=ConversationCreateResponse)
async def create_conversation(
    payload: ConversationCreateRequest,
    account: AccountContext = Depends(get_current_account),
) -> ConversationCreateResponse | JSONResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        result = await ConversationService.start_conversation(
            account=account,
            participant_user_id=payload.participant_user_id,
            mission_id=payload.mission_id,
            now_utc=now_utc,
        )
    except SelfConversationError as exc:
        raise HTTPException(status_code=422, detail={"code": "E_SELF_CONVERSATION"}) from exc
    except ParticipantNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_PARTICIPANT_NOT_FOUND"}) from exc
    except MissionNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_MISSION_NOT_FOUND"}) from exc
    except RoleNotPermittedError as exc:
        return role_not_permitted_response(exc)
    except EntitlementUnavailableError:
        return entitlement_unavailable_response()
    except SQLAlchemyError:
        logger.exception("conversation_create_failed", user_id=account.user_id)
        return persistence_unavailable_response()

    if result.denied and result.decision is not None:
        return denial_response(result.decision)
    if result.conversation is None:
        raise HTTPException(status_code=500, detail={"code": "E_CONVERSATION_NOT_CREATED"})

    return ConversationCreateResponse(
        success=True,
        created=result.created,
        conversation=_as_conversation_response(result.conversation),
        entitlement=result.decision.details if result.decision is not None else None,
        settlement=_as_settlement_response(result.settlement),
    )


@router.get("/conversations/usage/current", response_model=UsageResponse)
async def get_current_contact_usage(
    account: AccountContext = Depends(get_current_account),
) -> UsageResponse:
    _assert_company(account)
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal() as session:
        return await _build_usage_response(
            session,
            account=account,
            action=GuardedAction.CONTACT_CREATE,
            now_utc=now_utc,
        )
