"""Claim-side reads and state transitions for weekly reward batches."""

from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.rewards_service.errors import RewardNotFound
from services.rewards_service.models import RewardBatch, RewardEvent, RewardEventStatus
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class RewardProof:
    week_key: str
    user_id: str
    wallet_address: str
    merkle_index: int
    amount: int
    merkle_root: str
    proof: list[str]
    events: list[RewardEvent]


async def get_batch(db: AsyncSession, week_key: str) -> Optional[RewardBatch]:
    result = await db.execute(select(RewardBatch).where(RewardBatch.week_key == week_key))
    return result.scalar_one_or_none()


async def _user_events(db: AsyncSession, batch: RewardBatch, user_id: str) -> list[RewardEvent]:
    result = await db.execute(
        select(RewardEvent)
        .where(RewardEvent.batch_id == batch.id, RewardEvent.user_id == user_id)
        .order_by(RewardEvent.ref_id)
    )
    return list(result.scalars())


async def get_reward_proof(db: AsyncSession, *, week_key: str, user_id: str) -> RewardProof:
    """The user's aggregated leaf and inclusion proof for a week.

    Raises RewardNotFound if the week has no batch or the user has no events in it.
    """
    batch = await get_batch(db, week_key)
    if batch is None or batch.merkle_root is None:
        raise RewardNotFound(f"No reward batch for week {week_key}")
    events = await _user_events(db, batch, user_id)
    if not events:
        raise RewardNotFound(f"No rewards for this user in week {week_key}")

    first = events[0]
    return RewardProof(
        week_key=week_key,
        user_id=user_id,
        wallet_address=first.wallet_address,
        merkle_index=first.merkle_index,
        amount=sum(event.amount for event in events),
        merkle_root=batch.merkle_root,
        proof=list(first.merkle_proof),
        events=events,
    )


async def mark_rewards_claimed(db: AsyncSession, *, week_key: str, user_id: str) -> int:
    """Move the user's PENDING/PAID events for the week to CLAIMED.

    Returns the number of events moved; 0 on a repeat call.
    """
    batch = await get_batch(db, week_key)
    if batch is None:
        raise RewardNotFound(f"No reward batch for week {week_key}")
    if not await _user_events(db, batch, user_id):
        raise RewardNotFound(f"No rewards for this user in week {week_key}")

    result = await db.execute(
        update(RewardEvent)
        .where(
            RewardEvent.batch_id == batch.id,
            RewardEvent.user_id == user_id,
            RewardEvent.status.in_([RewardEventStatus.PENDING, RewardEventStatus.PAID]),
        )
        .values(status=RewardEventStatus.CLAIMED, claimed_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    if result.rowcount:
        logger.info("User %s claimed %d reward events for %s", user_id, result.rowcount, week_key)
    return result.rowcount


async def mark_rewards_paid(db: AsyncSession, *, week_key: str) -> int:
    """Move every PENDING event of the week's batch to PAID."""
    batch = await get_batch(db, week_key)
    if batch is None:
        raise RewardNotFound(f"No reward batch for week {week_key}")

    result = await db.execute(
        update(RewardEvent)
        .where(
            RewardEvent.batch_id == batch.id,
            RewardEvent.status == RewardEventStatus.PENDING,
        )
        .values(status=RewardEventStatus.PAID)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Marked %d reward events paid for %s", result.rowcount, week_key)
    return result.rowcount
