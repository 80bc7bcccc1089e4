"""Aggregate counters feeding the weekly reward pools. Written best-effort."""

import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from sqlalchemy import Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class WeeklyUserStat(Base):
    __tablename__ = "weekly_user_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    week_key: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    score_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    likes_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    comments_posted: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("week_key", "user_id", name="uq_weekly_user_stats_week_user"),
    )


class AllTimeUserStat(Base):
    __tablename__ = "all_time_user_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    score_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )


class MonthlyUserStat(Base):
    __tablename__ = "monthly_user_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    month_key: Mapped[str] = mapped_column(String(7), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    mvm_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("month_key", "user_id", name="uq_monthly_user_stats_month_user"),
    )


class WeeklyVoterStat(Base):
    __tablename__ = "weekly_voter_stats"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    week_key: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    votes_cast: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("week_key", "user_id", name="uq_weekly_voter_stats_week_user"),
    )


class LikeReceivedEntry(Base):
    """One row per (week, author, comment, voter) like; re-delivery is a no-op."""

    __tablename__ = "like_received_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    ref_id: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    week_key: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    author_id: Mapped[str] = mapped_column(String, nullable=False)
    comment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    voter_id: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )
