"""Members, comments and the two comment vote tables."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base, UTCDateTime
from services.rewards_service.models.enums import (
    MemberRole,
    SubscriptionStatus,
    SubscriptionTier,
    enum_values,
)
from sqlalchemy import CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, SmallInteger, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, declared_attr, mapped_column


class Member(Base):
    """Linked account view: wallet, role and subscription standing."""

    __tablename__ = "reward_members"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    wallet_address: Mapped[Optional[str]] = mapped_column(
        String, unique=True, nullable=True
    )
    role: Mapped[MemberRole] = mapped_column(
        SAEnum(
            MemberRole,
            name="member_role_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=MemberRole.MEMBER,
        nullable=False,
    )
    subscription_tier: Mapped[SubscriptionTier] = mapped_column(
        SAEnum(
            SubscriptionTier,
            name="subscription_tier_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=SubscriptionTier.FREE,
        nullable=False,
    )
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        SAEnum(
            SubscriptionStatus,
            name="subscription_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
    )
    subscription_expires_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime(), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Member {self.user_id} {self.role.value}>"


class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    body: Mapped[str] = mapped_column(Text, default="", nullable=False)
    score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    member_likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    member_dislikes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mod_likes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    mod_dislikes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Comment {self.id} score={self.score}>"


class _CommentVoteColumns:
    """Columns shared by the member and moderator vote tables."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    @declared_attr
    def comment_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid, ForeignKey("comments.id", ondelete="CASCADE"), index=True, nullable=False
        )

    voter_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    value: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    flip_count: Mapped[int] = mapped_column(SmallInteger, default=0, nullable=False)
    # First-vote timestamp; never changes after insert
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )
    last_changed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utc_now, nullable=False
    )

    @declared_attr.directive
    def __table_args__(cls):
        prefix = cls.__tablename__
        return (
            UniqueConstraint("comment_id", "voter_id", name=f"uq_{prefix}_comment_voter"),
            CheckConstraint("value IN (-1, 1)", name=f"ck_{prefix}_value"),
            CheckConstraint("flip_count IN (0, 1)", name=f"ck_{prefix}_flip_count"),
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.comment_id}:{self.voter_id} {self.value:+d}>"


class CommentMemberVote(_CommentVoteColumns, Base):
    __tablename__ = "comment_member_votes"


class CommentModVote(_CommentVoteColumns, Base):
    __tablename__ = "comment_mod_votes"
