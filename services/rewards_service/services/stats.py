"""Secondary stat counters consumed by the weekly reward pools.

These writes run after the core write has committed and are best-effort:
callers wrap them in :func:`best_effort`, which logs and rolls back on
failure instead of propagating.
"""

import uuid
from datetime import datetime
from typing import Any, Awaitable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.rewards_service.models import (
    AllTimeUserStat,
    LikeReceivedEntry,
    MonthlyUserStat,
    WeeklyUserStat,
    WeeklyVoterStat,
)
from services.rewards_service.services.week_keys import month_key, week_key
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def best_effort(db: AsyncSession, description: str, operation: Awaitable[Any]) -> bool:
    """Await a secondary write; on failure log it, roll back, and carry on."""
    try:
        await operation
        return True
    except Exception:
        logger.exception("Best-effort %s failed", description)
        await db.rollback()
        return False


async def _increment(db: AsyncSession, model, keys: dict, **increments: int) -> None:
    """Atomic ``col = col + n`` on the keyed row, inserting it on first touch."""
    stmt = (
        update(model)
        .where(*[getattr(model, name) == value for name, value in keys.items()])
        .values({name: getattr(model, name) + amount for name, amount in increments.items()})
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount:
        await db.commit()
        return

    db.add(model(**keys, **increments))
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first touch; the row exists now
        await db.rollback()
        await db.execute(stmt)
        await db.commit()


# ---------------------------------------------------------------------------
# Vote-driven stats
# ---------------------------------------------------------------------------


async def record_score_received(
    db: AsyncSession, *, author_id: str, delta: int, week: str
) -> None:
    if delta == 0:
        return
    await _increment(
        db, WeeklyUserStat, {"week_key": week, "user_id": author_id}, score_received=delta
    )
    await _increment(db, AllTimeUserStat, {"user_id": author_id}, score_received=delta)


async def record_vote_cast(db: AsyncSession, *, voter_id: str, week: str) -> None:
    await _increment(
        db, WeeklyVoterStat, {"week_key": week, "user_id": voter_id}, votes_cast=1
    )


async def record_like_received(
    db: AsyncSession,
    *,
    author_id: str,
    comment_id: uuid.UUID,
    voter_id: str,
    week: str,
) -> bool:
    """Insert the flat like-received entry; count it only if it is new."""
    ref_id = f"like_rcvd:{week}:{author_id}:{comment_id}:{voter_id}"
    result = await db.execute(
        select(LikeReceivedEntry.id).where(LikeReceivedEntry.ref_id == ref_id)
    )
    if result.scalar_one_or_none() is not None:
        return False

    db.add(
        LikeReceivedEntry(
            ref_id=ref_id,
            week_key=week,
            author_id=author_id,
            comment_id=comment_id,
            voter_id=voter_id,
        )
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False

    await _increment(
        db, WeeklyUserStat, {"week_key": week, "user_id": author_id}, likes_received=1
    )
    return True


# ---------------------------------------------------------------------------
# Activity feeds from other services
# ---------------------------------------------------------------------------


async def record_comment_posted(
    db: AsyncSession, *, author_id: str, now: Optional[datetime] = None
) -> None:
    await _increment(
        db,
        WeeklyUserStat,
        {"week_key": week_key(now or utc_now()), "user_id": author_id},
        comments_posted=1,
    )


async def award_mvm_points(
    db: AsyncSession, *, user_id: str, points: int, now: Optional[datetime] = None
) -> None:
    if points == 0:
        return
    await _increment(
        db,
        MonthlyUserStat,
        {"month_key": month_key(now or utc_now()), "user_id": user_id},
        mvm_points=points,
    )
    logger.info("Awarded %d MVM points to %s", points, user_id)
