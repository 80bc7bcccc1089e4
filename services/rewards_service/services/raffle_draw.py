"""Weighted sampling without replacement and the raffle prize split."""

from __future__ import annotations

import secrets
from typing import Callable, Mapping, Optional

from services.rewards_service.services.fixed_point import mul_bps

MAX_WINNERS = 3
# Places 1/2/3 take 50/30/20 of the total pool
PRIZE_SPLIT_BPS: tuple[int, ...] = (5_000, 3_000, 2_000)

RandBelow = Callable[[int], int]


def draw_winners(
    weights: Mapping[str, int],
    *,
    count: int = MAX_WINNERS,
    randbelow: Optional[RandBelow] = None,
) -> list[str]:
    """Draw up to ``count`` distinct users, each with probability ∝ remaining weight.

    ``randbelow(n)`` must return a uniform int in ``[0, n)``; it defaults to
    ``secrets.randbelow`` which handles arbitrarily large ``n``. Users with
    non-positive weight are never drawn.
    """
    randbelow = randbelow or secrets.randbelow
    # Sorted for reproducibility under an injected source
    pool = sorted((user_id, w) for user_id, w in weights.items() if w > 0)
    winners: list[str] = []

    while pool and len(winners) < count:
        total = sum(w for _, w in pool)
        target = randbelow(total)
        cumulative = 0
        for position, (user_id, w) in enumerate(pool):
            cumulative += w
            if target < cumulative:
                winners.append(user_id)
                del pool[position]
                break

    return winners


def split_prizes(total_pool_micro: int, winner_count: int) -> list[int]:
    """Prize per place for the places that have a winner.

    Places without a winner are not paid; their share stays unallocated.
    """
    return [mul_bps(total_pool_micro, bps) for bps in PRIZE_SPLIT_BPS[:winner_count]]

