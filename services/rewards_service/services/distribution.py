"""Weekly token reward distribution.

Computes the five reward pools for a week, sums each user's contributions
into one Merkle leaf, and persists the batch with one claimable event per
(user, pool). A week is processed exactly once.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from libs.common.config import Settings
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.rewards_service.errors import BatchAlreadyProcessed
from services.rewards_service.models import (
    AllTimeUserStat,
    Member,
    MonthlyUserStat,
    RewardBatch,
    RewardEvent,
    RewardEventStatus,
    RewardPoolType,
    RewardsConfig,
    SubscriptionStatus,
    SubscriptionTier,
    WeeklyUserStat,
    WeeklyVoterStat,
)
from services.rewards_service.services import merkle
from services.rewards_service.services.fixed_point import TOKEN_MICRO, format_micro
from services.rewards_service.services.reward_pools import (
    PoolSplit,
    proportional_payouts,
    rank_top,
    ranked_payouts,
    split_emission,
)
from services.rewards_service.services.tiers import EmissionSchedule
from services.rewards_service.services.week_keys import month_key_for_week
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Persisted order of pool contributions per user
POOL_ORDER: tuple[RewardPoolType, ...] = (
    RewardPoolType.WEEKLY_SCORE,
    RewardPoolType.ALLTIME_SCORE,
    RewardPoolType.VOTER,
    RewardPoolType.MVM,
    RewardPoolType.COMMENTS,
)


@dataclass(frozen=True)
class DistributionConfig:
    all_time_bps: int
    voter_bps: int
    min_weekly_score: int = 1
    min_all_time_score: int = 1
    min_mvm_points: int = 1
    emission_override_micro: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "DistributionConfig":
        return cls(
            all_time_bps=settings.REWARDS_ALL_TIME_LIKES_BPS,
            voter_bps=settings.REWARDS_VOTER_LIKES_BPS,
            min_weekly_score=settings.REWARDS_MIN_WEEKLY_SCORE,
            min_all_time_score=settings.REWARDS_MIN_ALL_TIME_SCORE,
            min_mvm_points=settings.REWARDS_MIN_MVM_POINTS,
        )


async def load_rewards_config(db: AsyncSession) -> Optional[RewardsConfig]:
    result = await db.execute(select(RewardsConfig).order_by(RewardsConfig.id).limit(1))
    return result.scalar_one_or_none()


async def load_distribution_config(db: AsyncSession, settings: Settings) -> DistributionConfig:
    """Admin config row when present, settings defaults otherwise."""
    row = await load_rewards_config(db)
    if row is None:
        return DistributionConfig.from_settings(settings)
    return DistributionConfig(
        all_time_bps=row.all_time_likes_bps,
        voter_bps=row.voter_likes_bps,
        min_weekly_score=row.min_weekly_score,
        min_all_time_score=row.min_all_time_score,
        min_mvm_points=row.min_mvm_points,
        emission_override_micro=row.weekly_emission_override_micro,
    )


@dataclass
class UserPayout:
    user_id: str
    wallet: str
    amounts: dict[RewardPoolType, int] = field(default_factory=dict)
    index: int = 0
    proof: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(self.amounts.values())


@dataclass
class DistributionReport:
    week_key: str
    week_index: int
    emission: int
    pools: dict[str, dict[str, int]]
    total_users: int = 0
    total_amount: int = 0
    merkle_root: Optional[str] = None
    payouts: list[UserPayout] = field(default_factory=list)

    def summary(self, include_details: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "week_key": self.week_key,
            "week_index": self.week_index,
            "emission": self.emission,
            "pools": self.pools,
            "total_users": self.total_users,
            "total_amount": self.total_amount,
            "merkle_root": self.merkle_root,
        }
        if include_details:
            data["details"] = [
                {
                    "user_id": p.user_id,
                    "wallet": p.wallet,
                    "index": p.index,
                    "amount": p.total,
                    "pools": {pool.value: amount for pool, amount in p.amounts.items()},
                    "proof": p.proof,
                }
                for p in self.payouts
            ]
        return data


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolInputs:
    weekly_scores: dict[str, int]
    all_time_scores: dict[str, int]
    mvm_points: dict[str, int]
    votes_cast: dict[str, int]
    comments_posted: dict[str, int]
    wallets: dict[str, str]
    premium: frozenset[str]


def _is_premium(member: Member, now: datetime) -> bool:
    return (
        member.subscription_tier == SubscriptionTier.PREMIUM
        and member.subscription_status == SubscriptionStatus.ACTIVE
        and (
            member.subscription_expires_at is None
            or ensure_utc(member.subscription_expires_at) > now
        )
    )


async def _metric_map(db: AsyncSession, stmt) -> dict[str, int]:
    result = await db.execute(stmt)
    return {user_id: int(value) for user_id, value in result if value}


async def load_pool_inputs(db: AsyncSession, *, week_key: str, now: datetime) -> PoolInputs:
    result = await db.execute(select(Member).where(Member.wallet_address.is_not(None)))
    members = list(result.scalars())
    wallets = {m.user_id: m.wallet_address for m in members}
    premium = frozenset(m.user_id for m in members if _is_premium(m, now))

    return PoolInputs(
        weekly_scores=await _metric_map(
            db,
            select(WeeklyUserStat.user_id, WeeklyUserStat.score_received).where(
                WeeklyUserStat.week_key == week_key
            ),
        ),
        all_time_scores=await _metric_map(
            db, select(AllTimeUserStat.user_id, AllTimeUserStat.score_received)
        ),
        mvm_points=await _metric_map(
            db,
            select(MonthlyUserStat.user_id, MonthlyUserStat.mvm_points).where(
                MonthlyUserStat.month_key == month_key_for_week(week_key)
            ),
        ),
        votes_cast=await _metric_map(
            db,
            select(WeeklyVoterStat.user_id, WeeklyVoterStat.votes_cast).where(
                WeeklyVoterStat.week_key == week_key
            ),
        ),
        comments_posted=await _metric_map(
            db,
            select(WeeklyUserStat.user_id, WeeklyUserStat.comments_posted).where(
                WeeklyUserStat.week_key == week_key
            ),
        ),
        wallets=wallets,
        premium=premium,
    )


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


def compute_pool_payouts(
    split: PoolSplit, inputs: PoolInputs, config: DistributionConfig
) -> dict[RewardPoolType, dict[str, int]]:
    """Per-pool payouts for one week. Every result is a subset of its pool."""
    # Tier-gated pools need a premium subscription and a wallet; voters only a wallet
    gated = inputs.premium & inputs.wallets.keys()
    with_wallet = inputs.wallets.keys()

    payouts = {
        RewardPoolType.WEEKLY_SCORE: ranked_payouts(
            split.weekly_score,
            rank_top(inputs.weekly_scores, min_metric=config.min_weekly_score, eligible=gated),
        ),
        RewardPoolType.ALLTIME_SCORE: ranked_payouts(
            split.all_time_score,
            rank_top(
                inputs.all_time_scores, min_metric=config.min_all_time_score, eligible=gated
            ),
        ),
        RewardPoolType.VOTER: proportional_payouts(
            split.voter, inputs.votes_cast, eligible=with_wallet
        ),
        RewardPoolType.COMMENTS: proportional_payouts(
            split.comments, inputs.comments_posted, eligible=gated
        ),
    }

    if sum(inputs.mvm_points.values()) <= 0:
        payouts[RewardPoolType.MVM] = {}
    else:
        payouts[RewardPoolType.MVM] = ranked_payouts(
            split.mvm,
            rank_top(inputs.mvm_points, min_metric=config.min_mvm_points, eligible=gated),
        )
    return payouts


def aggregate_payouts(
    pool_payouts: dict[RewardPoolType, dict[str, int]], wallets: dict[str, str]
) -> tuple[Optional[str], list[UserPayout]]:
    """Sum per user, index by user id, and attach Merkle proofs.

    Returns ``(root_hex, payouts)``; the root is None when nobody is paid.
    """
    users: dict[str, UserPayout] = {}
    for pool in POOL_ORDER:
        for user_id, amount in pool_payouts.get(pool, {}).items():
            if amount <= 0:
                continue
            payout = users.setdefault(user_id, UserPayout(user_id=user_id, wallet=wallets[user_id]))
            payout.amounts[pool] = amount

    ordered = [users[user_id] for user_id in sorted(users)]
    if not ordered:
        return None, []

    for index, payout in enumerate(ordered):
        payout.index = index
    tree = merkle.build_tree(
        [merkle.leaf_hash(p.index, p.wallet, p.total) for p in ordered]
    )
    for payout in ordered:
        payout.proof = [merkle.to_hex(node) for node in tree.proof(payout.index)]
    return merkle.to_hex(tree.root), ordered


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


async def _batch_exists(db: AsyncSession, week_key: str) -> bool:
    result = await db.execute(select(RewardBatch.id).where(RewardBatch.week_key == week_key))
    return result.scalar_one_or_none() is not None


async def distribute_week(
    db: AsyncSession,
    *,
    week_key: str,
    week_index: int,
    schedule: EmissionSchedule,
    config: DistributionConfig,
    now: Optional[datetime] = None,
) -> DistributionReport:
    """Compute and persist the reward batch for ``week_key``.

    Raises BatchAlreadyProcessed if the week already has a batch, including
    when a concurrent run commits first.
    """
    now = ensure_utc(now or utc_now())
    if await _batch_exists(db, week_key):
        raise BatchAlreadyProcessed(week_key)

    emission = (
        config.emission_override_micro
        if config.emission_override_micro is not None
        else schedule.emission_for_week(week_index)
    )
    split = split_emission(emission, all_time_bps=config.all_time_bps, voter_bps=config.voter_bps)
    inputs = await load_pool_inputs(db, week_key=week_key, now=now)

    pool_payouts = compute_pool_payouts(split, inputs, config)
    root, payouts = aggregate_payouts(pool_payouts, inputs.wallets)

    allocated = {
        RewardPoolType.WEEKLY_SCORE: split.weekly_score,
        RewardPoolType.ALLTIME_SCORE: split.all_time_score,
        RewardPoolType.VOTER: split.voter,
        RewardPoolType.MVM: split.mvm,
        RewardPoolType.COMMENTS: split.comments,
    }
    report = DistributionReport(
        week_key=week_key,
        week_index=week_index,
        emission=emission,
        pools={
            pool.value: {
                "allocated": allocated[pool],
                "paid": sum(pool_payouts[pool].values()),
                "users": len(pool_payouts[pool]),
            }
            for pool in POOL_ORDER
        },
        total_users=len(payouts),
        total_amount=sum(p.total for p in payouts),
        merkle_root=root,
        payouts=payouts,
    )

    batch = RewardBatch(
        week_key=week_key,
        week_index=week_index,
        merkle_root=root,
        total_amount=report.total_amount,
        total_users=report.total_users,
    )
    db.add(batch)
    await db.flush()
    for payout in payouts:
        for pool in POOL_ORDER:
            amount = payout.amounts.get(pool)
            if not amount:
                continue
            db.add(
                RewardEvent(
                    batch_id=batch.id,
                    user_id=payout.user_id,
                    wallet_address=payout.wallet,
                    type=pool,
                    amount=amount,
                    ref_id=f"{week_key}:{payout.user_id}:{pool.value}",
                    merkle_index=payout.index,
                    merkle_proof=payout.proof,
                    status=RewardEventStatus.PENDING,
                )
            )

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise BatchAlreadyProcessed(week_key)

    logger.info(
        "Distributed week %s (index %d): %s tokens to %d users, root=%s",
        week_key,
        week_index,
        format_micro(report.total_amount, TOKEN_MICRO),
        report.total_users,
        root,
    )
    return report


async def pool_totals(db: AsyncSession, batch_id) -> dict[str, int]:
    """Sum of event amounts per pool type for a stored batch."""
    result = await db.execute(
        select(RewardEvent.type, func.sum(RewardEvent.amount))
        .where(RewardEvent.batch_id == batch_id)
        .group_by(RewardEvent.type)
    )
    return {pool.value: int(total) for pool, total in result}
