"""Weekly reward batches, their per-pool events and the admin pool config."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from services.rewards_service.models.enums import (
    RewardEventStatus,
    RewardPoolType,
    enum_values,
)
from sqlalchemy import JSON, BigInteger, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship


class RewardBatch(Base):
    __tablename__ = "reward_batches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # One batch per week; the unique constraint rejects a second run
    week_key: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    week_index: Mapped[int] = mapped_column(Integer, nullable=False)
    merkle_root: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    events: Mapped[list["RewardEvent"]] = relationship(back_populates="batch")

    def __repr__(self) -> str:
        return f"<RewardBatch {self.week_key} users={self.total_users} total={self.total_amount}>"


class RewardEvent(Base):
    """One claimable contribution per (user, pool) in a batch."""

    __tablename__ = "reward_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("reward_batches.id"), index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    wallet_address: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[RewardPoolType] = mapped_column(
        SAEnum(
            RewardPoolType,
            name="reward_pool_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ref_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    # Index and proof belong to the user's aggregated leaf
    merkle_index: Mapped[int] = mapped_column(Integer, nullable=False)
    merkle_proof: Mapped[list] = mapped_column(JSON, nullable=False)
    status: Mapped[RewardEventStatus] = mapped_column(
        SAEnum(
            RewardEventStatus,
            name="reward_event_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RewardEventStatus.PENDING,
        nullable=False,
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    batch: Mapped["RewardBatch"] = relationship(back_populates="events")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_reward_event_amount_positive"),
        Index("ix_reward_events_batch_user", "batch_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<RewardEvent {self.ref_id} {self.amount}>"


class RewardsConfig(Base):
    """Admin-editable pool settings. A single row; settings defaults apply when absent."""

    __tablename__ = "rewards_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    all_time_likes_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    voter_likes_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    min_weekly_score: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    min_all_time_score: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    min_mvm_points: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    raffle_match_cap_micro: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    weekly_emission_override_micro: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "all_time_likes_bps >= 0 AND voter_likes_bps >= 0 "
            "AND all_time_likes_bps + voter_likes_bps <= 10000",
            name="ck_rewards_config_likes_bps",
        ),
    )
