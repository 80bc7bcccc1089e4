"""Weekly credit raffle: raffles, tickets, winners and the match budget."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from services.rewards_service.models.enums import (
    RaffleStatus,
    RaffleType,
    WinnerStatus,
    enum_values,
)
from sqlalchemy import BigInteger, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, SmallInteger, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Raffle(Base):
    __tablename__ = "raffles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    week_key: Mapped[str] = mapped_column(String(10), nullable=False)
    type: Mapped[RaffleType] = mapped_column(
        SAEnum(
            RaffleType,
            name="raffle_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RaffleType.CREDITS,
        nullable=False,
    )
    status: Mapped[RaffleStatus] = mapped_column(
        SAEnum(
            RaffleStatus,
            name="raffle_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RaffleStatus.OPEN,
        nullable=False,
    )
    user_pool_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    match_pool_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    rollover_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    opens_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    closes_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    drawn_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    winners: Mapped[list["RaffleWinner"]] = relationship(
        back_populates="raffle", order_by="RaffleWinner.place"
    )

    __table_args__ = (
        UniqueConstraint("week_key", "type", name="uq_raffles_week_type"),
    )

    @property
    def total_pool_micro(self) -> int:
        return self.user_pool_micro + self.match_pool_micro + self.rollover_micro

    def __repr__(self) -> str:
        return f"<Raffle {self.week_key} {self.status.value}>"


class RaffleTicket(Base):
    __tablename__ = "raffle_tickets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    raffle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("raffles.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    # Purchase idempotency key; matches the debit's ledger ref_id
    purchase_ref: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_raffle_ticket_quantity_positive"),
        Index("ix_raffle_tickets_raffle_user", "raffle_id", "user_id"),
    )


class RaffleWinner(Base):
    __tablename__ = "raffle_winners"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    raffle_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("raffles.id"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    place: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    prize_micro: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[WinnerStatus] = mapped_column(
        SAEnum(
            WinnerStatus,
            name="raffle_winner_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=WinnerStatus.PENDING,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    raffle: Mapped["Raffle"] = relationship(back_populates="winners")

    __table_args__ = (
        UniqueConstraint("raffle_id", "place", name="uq_raffle_winners_place"),
        UniqueConstraint("raffle_id", "user_id", name="uq_raffle_winners_user"),
        CheckConstraint("place BETWEEN 1 AND 3", name="ck_raffle_winner_place"),
        CheckConstraint("prize_micro >= 0", name="ck_raffle_winner_prize_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<RaffleWinner {self.raffle_id} #{self.place} {self.user_id} {self.status.value}>"


class RaffleMatchBudget(Base):
    """Per-week match cap and how much of it has been consumed."""

    __tablename__ = "raffle_match_budgets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    week_key: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    # 0 means uncapped
    match_cap_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    matched_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )
