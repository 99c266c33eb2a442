from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.token_ledgers_repo import TokenLedgersRepo
from app.economy.entitlements.errors import EntitlementUnavailableError, RoleNotPermittedError
from app.economy.entitlements.rules import decide_subscription_quota, decide_token_balance
from app.economy.entitlements.types import AccountContext, AccountRole, EntitlementDecision
from app.economy.quotas.rules import effective_plan, is_unsubscribed
from app.economy.quotas.types import GuardedAction
from app.economy.tokens.rules import contact_token_cost, mission_token_cost
from app.economy.usage.service import UsageService

logger = structlog.get_logger(__name__)


class EntitlementGate:
    @staticmethod
    def assert_role_permitted(account: AccountContext, action: GuardedAction) -> AccountRole:
        try:
            role = AccountRole(account.role)
        except ValueError as exc:
            raise RoleNotPermittedError(role=str(account.role), action=action.value) from exc
        if role == AccountRole.WORKER:
            raise RoleNotPermittedError(role=role.value, action=action.value)
        return role

    @staticmethod
    async def evaluate(
        session: AsyncSession,
        *,
        account: AccountContext,
        action: GuardedAction,
        now_utc: datetime,
        featured_listing: bool = False,
    ) -> EntitlementDecision:
        """Decide whether ``account`` may perform ``action`` now.

        On the balance path the ledger row stays locked until ``session``'s
        transaction ends, so a caller that writes the action and settles it in
        that same transaction cannot be overtaken by a concurrent admission.
        """
        role = EntitlementGate.assert_role_permitted(account, action)

        try:
            if role == AccountRole.COMPANY:
                decision = await EntitlementGate._evaluate_subscription_quota(
                    session,
                    account=account,
                    action=action,
                    now_utc=now_utc,
                )
            else:
                decision = await EntitlementGate._evaluate_token_balance(
                    session,
                    account=account,
                    action=action,
                    now_utc=now_utc,
                    featured_listing=featured_listing,
                )
        except SQLAlchemyError as exc:
            logger.exception("entitlement_unavailable", user_id=account.user_id, action=action.value)
            raise EntitlementUnavailableError(action=action.value) from exc

        if decision.allowed:
            logger.info(
                "entitlement_allowed",
                user_id=account.user_id,
                action=action.value,
                policy=decision.policy.value,
                details=decision.details,
            )
        else:
            logger.info(
                "entitlement_denied",
                user_id=account.user_id,
                action=action.value,
                policy=decision.policy.value,
                reason=decision.reason.value if decision.reason is not None else None,
                details=decision.details,
            )
        return decision

    @staticmethod
    async def _evaluate_subscription_quota(
        session: AsyncSession,
        *,
        account: AccountContext,
        action: GuardedAction,
        now_utc: datetime,
    ) -> EntitlementDecision:
        plan = effective_plan(
            account.subscription_plan,
            subscription_starts_at=account.subscription_starts_at,
            subscription_ends_at=account.subscription_ends_at,
            now_utc=now_utc,
        )
        if is_unsubscribed(plan):
            return decide_subscription_quota(action=action, plan=plan, used=None)

        used = await UsageService.count_usage(
            session,
            user_id=account.user_id,
            action=action,
            now_utc=now_utc,
        )
        return decide_subscription_quota(action=action, plan=plan, used=used)

    @staticmethod
    async def _evaluate_token_balance(
        session: AsyncSession,
        *,
        account: AccountContext,
        action: GuardedAction,
        now_utc: datetime,
        featured_listing: bool,
    ) -> EntitlementDecision:
        if action == GuardedAction.MISSION_CREATE:
            cost = mission_token_cost(featured_listing=featured_listing)
        else:
            cost = contact_token_cost()

        ledger = await TokenLedgersRepo.get_or_create_for_update(
            session,
            user_id=account.user_id,
            now_utc=now_utc,
        )
        return decide_token_balance(action=action, cost=cost, balance=ledger.balance)
