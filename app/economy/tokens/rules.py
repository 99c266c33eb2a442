from __future__ import annotations

from collections.abc import Iterable

from app.economy.tokens.constants import (
    CONTACT_TOKEN_COST,
    FEATURED_LISTING_TOKEN_COST,
    MISSION_BASE_TOKEN_COST,
    TOKEN_KIND_EXPIRED,
    TOKEN_KIND_PURCHASE,
    TOKEN_KIND_REFUND,
    TOKEN_KIND_USED,
)
from app.economy.tokens.errors import InsufficientTokenBalanceError, TokenAmountValidationError
from app.economy.tokens.types import LedgerSnapshot, ReplayEntry, TokenCost


def mission_token_cost(*, featured_listing: bool) -> TokenCost:
    return TokenCost(
        base=MISSION_BASE_TOKEN_COST,
        featured=FEATURED_LISTING_TOKEN_COST if featured_listing else 0,
    )


def contact_token_cost() -> TokenCost:
    return TokenCost(base=CONTACT_TOKEN_COST)


def validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise TokenAmountValidationError("amount must be a positive integer")


def apply_transaction(snapshot: LedgerSnapshot, *, kind: str, amount: int) -> LedgerSnapshot:
    """Return the ledger state after one transaction.

    Debits never clamp: a debit larger than the balance raises
    ``InsufficientTokenBalanceError`` and leaves the caller's state untouched.
    """
    validate_amount(amount)

    if kind == TOKEN_KIND_PURCHASE:
        return LedgerSnapshot(
            balance=snapshot.balance + amount,
            total_purchased=snapshot.total_purchased + amount,
            total_refunded=snapshot.total_refunded,
            total_used=snapshot.total_used,
            total_expired=snapshot.total_expired,
        )
    if kind == TOKEN_KIND_REFUND:
        return LedgerSnapshot(
            balance=snapshot.balance + amount,
            total_purchased=snapshot.total_purchased,
            total_refunded=snapshot.total_refunded + amount,
            total_used=snapshot.total_used,
            total_expired=snapshot.total_expired,
        )
    if kind not in {TOKEN_KIND_USED, TOKEN_KIND_EXPIRED}:
        raise ValueError(f"unsupported token transaction kind: {kind}")

    if amount > snapshot.balance:
        raise InsufficientTokenBalanceError(required=amount, available=snapshot.balance)

    return LedgerSnapshot(
        balance=snapshot.balance - amount,
        total_purchased=snapshot.total_purchased,
        total_refunded=snapshot.total_refunded,
        total_used=snapshot.total_used + (amount if kind == TOKEN_KIND_USED else 0),
        total_expired=snapshot.total_expired + (amount if kind == TOKEN_KIND_EXPIRED else 0),
    )


def replay_transactions(
    entries: Iterable[ReplayEntry],
) -> tuple[LedgerSnapshot, list[int]]:
    """Fold a transaction log from an empty ledger.

    Returns the folded state and the ids of entries whose stored
    balance-before/after does not match the running total.
    """
    snapshot = LedgerSnapshot()
    broken_ids: list[int] = []
    for entry in entries:
        expected_before = snapshot.balance
        try:
            snapshot = apply_transaction(snapshot, kind=entry.kind, amount=entry.amount)
        except InsufficientTokenBalanceError:
            broken_ids.append(entry.transaction_id)
            continue
        if entry.balance_before != expected_before or entry.balance_after != snapshot.balance:
            broken_ids.append(entry.transaction_id)
    return snapshot, broken_ids
