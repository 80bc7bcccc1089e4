"""Daily on-chain balance snapshots used for audit and tier-change detection."""

import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from sqlalchemy import BigInteger, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class WalletBalanceSnapshot(Base):
    __tablename__ = "wallet_balance_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    wallet_address: Mapped[str] = mapped_column(String, index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    date_key: Mapped[str] = mapped_column(String(10), nullable=False)
    # Raw on-chain token units (9 decimals)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("wallet_address", "date_key", name="uq_wallet_snapshot_wallet_date"),
    )

    def __repr__(self) -> str:
        return f"<WalletBalanceSnapshot {self.wallet_address} {self.date_key} tier={self.tier}>"
