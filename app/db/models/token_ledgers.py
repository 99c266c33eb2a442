from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class TokenLedger(Base):
    __tablename__ = "token_ledgers"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_token_ledgers_balance_non_negative"),
        CheckConstraint(
            "total_purchased >= 0 AND total_refunded >= 0 AND total_used >= 0 AND total_expired >= 0",
            name="ck_token_ledgers_totals_non_negative",
        ),
        CheckConstraint(
            "balance = total_purchased + total_refunded - total_used - total_expired",
            name="ck_token_ledgers_balance_matches_totals",
        ),
    )

    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_purchased: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_refunded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_expired: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_purchase_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_usage_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
