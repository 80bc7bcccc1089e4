"""Member and comment records synced in from the members and community services."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.rewards_service.models import (
    Comment,
    Member,
    MemberRole,
    SubscriptionStatus,
    SubscriptionTier,
)
from services.rewards_service.services.stats import best_effort, record_comment_posted
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def get_member(db: AsyncSession, user_id: str) -> Optional[Member]:
    result = await db.execute(select(Member).where(Member.user_id == user_id))
    return result.scalar_one_or_none()


async def upsert_member(
    db: AsyncSession,
    *,
    user_id: str,
    wallet_address: Optional[str] = None,
    role: MemberRole = MemberRole.MEMBER,
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE,
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    subscription_expires_at: Optional[datetime] = None,
) -> Member:
    """Replace the stored snapshot of a member's wallet, role and subscription."""
    member = await get_member(db, user_id)
    if member is None:
        member = Member(user_id=user_id)
        db.add(member)
        logger.info("Registered member %s", user_id)

    member.wallet_address = wallet_address
    member.role = role
    member.subscription_tier = subscription_tier
    member.subscription_status = subscription_status
    member.subscription_expires_at = subscription_expires_at
    await db.commit()
    await db.refresh(member)
    return member


async def register_comment(
    db: AsyncSession,
    *,
    author_id: str,
    body: str = "",
    comment_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> Comment:
    """Record a new comment and count it toward the author's weekly activity.

    Re-registering an existing comment id returns it without counting again.
    """
    now = now or utc_now()
    if comment_id is not None:
        result = await db.execute(select(Comment).where(Comment.id == comment_id))
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing

    comment = Comment(author_id=author_id, body=body, created_at=now)
    if comment_id is not None:
        comment.id = comment_id
    db.add(comment)
    await db.commit()
    await db.refresh(comment)

    counted = await best_effort(
        db,
        f"comments_posted for {author_id}",
        record_comment_posted(db, author_id=author_id, now=now),
    )
    if not counted:
        # The rollback expired the instance
        await db.refresh(comment)
    return comment
