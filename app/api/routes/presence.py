from __future__ import annotations

from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel

from app.economy.entitlements.types import AccountContext
from app.services.identity import ACCOUNT_ID_HEADER, get_current_account, load_account_context, parse_account_id
from app.services.presence import PresenceRegistry

router = APIRouter(tags=["presence"])
logger = structlog.get_logger(__name__)

PRESENCE_UNAUTHENTICATED_CLOSE_CODE = 4401


class OnlineUsersResponse(BaseModel):
    user_ids: list[int]
    count: int


@router.websocket("/ws/presence")
async def presence_socket(websocket: WebSocket) -> None:
    account_id = parse_account_id(websocket.headers.get(ACCOUNT_ID_HEADER))
    account = await load_account_context(account_id) if account_id is not None else None
    if account is None:
        await websocket.close(code=PRESENCE_UNAUTHENTICATED_CLOSE_CODE)
        return

    registry: PresenceRegistry = websocket.app.state.presence
    connection_id = uuid4().hex
    await websocket.accept()
    if await registry.connect(account.user_id, connection_id):
        logger.info("presence_online", user_id=account.user_id)

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        if await registry.disconnect(account.user_id, connection_id):
            logger.info("presence_offline", user_id=account.user_id)


@router.get("/users/online", response_model=OnlineUsersResponse, status_code=status.HTTP_200_OK)
async def list_online_users(
    request: Request,
    account: AccountContext = Depends(get_current_account),
) -> OnlineUsersResponse:
    registry: PresenceRegistry = request.app.state.presence
    user_ids = await registry.online_user_ids()
    return OnlineUsersResponse(user_ids=user_ids, count=len(user_ids))


class UserPresenceResponse(BaseModel):
    user_id: int
    online: bool


@router.get("/users/{user_id}/online", response_model=UserPresenceResponse)
async def get_user_presence(
    user_id: int,
    request: Request,
    account: AccountContext = Depends(get_current_account),
) -> UserPresenceResponse:
    registry: PresenceRegistry = request.app.state.presence
    return UserPresenceResponse(user_id=user_id, online=await registry.is_online(user_id))
