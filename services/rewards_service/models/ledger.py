"""Credit ledger models: append-only entries plus the mutable account row."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from services.rewards_service.models.enums import LedgerRefType, enum_values
from sqlalchemy import BigInteger, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class CreditAccount(Base):
    """Special-credit balance per user. Only changed alongside a ledger entry."""

    __tablename__ = "credit_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    balance_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Accrual remainder in thousandths of a micro-credit
    carry_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Tier used by the last accrual run; carry is only valid for this tier
    tier: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("balance_micro >= 0", name="ck_credit_account_balance_non_negative"),
        CheckConstraint("carry_micro >= 0", name="ck_credit_account_carry_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CreditAccount {self.user_id} balance={self.balance_micro}>"


class CreditLedgerEntry(Base):
    """Immutable record of every credit balance change. Never updated or deleted."""

    __tablename__ = "credit_ledger_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    amount_micro: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after_micro: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    ref_type: Mapped[LedgerRefType] = mapped_column(
        SAEnum(
            LedgerRefType,
            name="ledger_ref_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    ref_id: Mapped[str] = mapped_column(String, nullable=False)
    week_key: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("ref_type", "ref_id", name="uq_credit_ledger_ref"),
        CheckConstraint("amount_micro <> 0", name="ck_credit_ledger_amount_nonzero"),
        Index("ix_credit_ledger_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CreditLedgerEntry {self.ref_type.value}:{self.ref_id} {self.amount_micro}>"
