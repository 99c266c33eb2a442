from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import structlog

from app.db.models.conversations import Conversation
from app.db.repo.conversations_repo import ConversationsRepo
from app.db.repo.missions_repo import MissionsRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.economy.entitlements.gate import EntitlementGate
from app.economy.entitlements.types import AccountContext
from app.economy.quotas.types import GuardedAction

from .errors import MissionNotFoundError, ParticipantNotFoundError, SelfConversationError
from .settlement import record_denial, settle_guarded_action
from .types import ConversationStartResult

logger = structlog.get_logger(__name__)


class ConversationService:
    @staticmethod
    async def start_conversation(
        *,
        account: AccountContext,
        participant_user_id: int,
        mission_id: UUID | None,
        now_utc: datetime,
    ) -> ConversationStartResult:
        """Open a conversation, or return the one that already links both accounts.

        Only a newly created conversation counts as a contact; reopening an
        existing thread is neither gated nor settled.
        """
        if participant_user_id == account.user_id:
            raise SelfConversationError

        action = GuardedAction.CONTACT_CREATE

        async with SessionLocal.begin() as session:
            participant = await UsersRepo.get_by_id(session, participant_user_id)
            if participant is None:
                raise ParticipantNotFoundError
            if mission_id is not None and await MissionsRepo.get_by_id(session, mission_id) is None:
                raise MissionNotFoundError

            existing = await ConversationsRepo.get_between(
                session,
                user_id=account.user_id,
                other_user_id=participant_user_id,
                mission_id=mission_id,
            )
            if existing is not None:
                return ConversationStartResult(conversation=existing, created=False)

            decision = await EntitlementGate.evaluate(
                session,
                account=account,
                action=action,
                now_utc=now_utc,
            )
            if not decision.allowed:
                await record_denial(
                    session,
                    user_id=account.user_id,
                    decision=decision,
                    now_utc=now_utc,
                )
                return ConversationStartResult(conversation=None, created=False, decision=decision)

            conversation = await ConversationsRepo.create(
                session,
                conversation=Conversation(
                    id=uuid4(),
                    initiated_by_user_id=account.user_id,
                    participant_user_id=participant_user_id,
                    mission_id=mission_id,
                    created_at=now_utc,
                ),
            )
            settlement = await settle_guarded_action(
                session,
                user_id=account.user_id,
                decision=decision,
                action=action,
                record_id=conversation.id,
                now_utc=now_utc,
            )

        logger.info(
            "conversation_created",
            user_id=account.user_id,
            conversation_id=str(conversation.id),
            participant_user_id=participant_user_id,
            settlement=settlement.status.value,
        )
        return ConversationStartResult(
            conversation=conversation,
            created=True,
            decision=decision,
            settlement=settlement,
        )
