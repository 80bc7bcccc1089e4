"""Pure pool arithmetic for the weekly distribution.

Nothing here touches the database: inputs are metric maps keyed by user id,
outputs are integer payouts in TOKEN_MICRO units.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Container, Mapping, Optional

from services.rewards_service.services.fixed_point import BPS_BASE, mul_bps, pro_rata

TOP_N = 50
BASE_POOL_PERCENT = 80

# Rank shares of the ladder pool per 100_000: 20%, 12%, 8%, 7 × 5%, 40 × 0.625%
LADDER_DENOMINATOR = 100_000
LADDER_UNITS: tuple[int, ...] = (20_000, 12_000, 8_000) + (5_000,) * 7 + (625,) * 40

LIKES_POOL_BPS = 7_500
MVM_POOL_BPS = 2_000


@dataclass(frozen=True)
class PoolSplit:
    emission: int
    likes: int
    weekly_score: int
    all_time_score: int
    voter: int
    mvm: int
    comments: int


def split_emission(emission: int, *, all_time_bps: int, voter_bps: int) -> PoolSplit:
    """Split the weekly emission into the five disjoint pools.

    Likes/MVM/comments are 75/20/5; comments takes the remainder. Within the
    likes pool the weekly-score share is whatever the all-time and voter
    shares leave, so the three always sum to the full likes pool.
    """
    if all_time_bps + voter_bps > BPS_BASE:
        raise ValueError("all_time_bps + voter_bps cannot exceed 10000")
    likes = mul_bps(emission, LIKES_POOL_BPS)
    mvm = mul_bps(emission, MVM_POOL_BPS)
    comments = emission - likes - mvm
    all_time = mul_bps(likes, all_time_bps)
    voter = mul_bps(likes, voter_bps)
    return PoolSplit(
        emission=emission,
        likes=likes,
        weekly_score=likes - all_time - voter,
        all_time_score=all_time,
        voter=voter,
        mvm=mvm,
        comments=comments,
    )


def rank_top(
    metrics: Mapping[str, int],
    *,
    min_metric: int = 1,
    eligible: Optional[Container[str]] = None,
    limit: int = TOP_N,
) -> list[tuple[str, int]]:
    """Threshold, filter by eligibility, then order by metric desc (user id asc on ties)."""
    floor = max(min_metric, 1)
    candidates = [
        (user_id, metric)
        for user_id, metric in metrics.items()
        if metric >= floor and (eligible is None or user_id in eligible)
    ]
    candidates.sort(key=lambda item: (-item[1], item[0]))
    return candidates[:limit]


def ladder_payouts(pool: int, ranked: list[tuple[str, int]]) -> dict[str, int]:
    return {
        user_id: pool * LADDER_UNITS[rank] // LADDER_DENOMINATOR
        for rank, (user_id, _) in enumerate(ranked[: len(LADDER_UNITS)])
    }


def ranked_payouts(pool: int, ranked: list[tuple[str, int]]) -> dict[str, int]:
    """Base (80%, pro-rata by metric) plus ladder (20%, by rank) for a top-N list."""
    if pool <= 0 or not ranked:
        return {}
    base_pool = pool * BASE_POOL_PERCENT // 100
    ladder_pool = pool - base_pool

    payouts = pro_rata(base_pool, dict(ranked))
    for user_id, amount in ladder_payouts(ladder_pool, ranked).items():
        payouts[user_id] = payouts.get(user_id, 0) + amount
    return {user_id: amount for user_id, amount in payouts.items() if amount > 0}


def proportional_payouts(
    pool: int, metrics: Mapping[str, int], *, eligible: Optional[Container[str]] = None
) -> dict[str, int]:
    weights = {
        user_id: metric
        for user_id, metric in metrics.items()
        if metric > 0 and (eligible is None or user_id in eligible)
    }
    return {user_id: amount for user_id, amount in pro_rata(pool, weights).items() if amount > 0}
