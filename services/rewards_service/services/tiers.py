"""Holder tiers and the weekly emission schedule as explicit config values.

Both are frozen dataclasses passed into each engine call, so a run is fully
determined by its inputs.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass

from services.rewards_service.services.fixed_point import credits_to_micro, tokens_to_micro

# On-chain token amounts carry 9 decimals
TOKEN_DECIMALS = 9
_RAW_PER_TOKEN = 10**TOKEN_DECIMALS


@dataclass(frozen=True)
class TierTable:
    """Ordered balance thresholds and the monthly credit allowance per tier.

    ``thresholds[i]`` is the minimum raw balance for tier ``i + 1``;
    ``monthly_credits[0]`` is the tier-0 allowance (normally zero).
    """

    thresholds: tuple[int, ...]
    monthly_credits: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.monthly_credits) != len(self.thresholds) + 1:
            raise ValueError("monthly_credits needs one entry per tier including tier 0")
        if list(self.thresholds) != sorted(set(self.thresholds)):
            raise ValueError("thresholds must be strictly increasing")

    @property
    def max_tier(self) -> int:
        return len(self.thresholds)

    def tier_for_balance(self, balance: int) -> int:
        if balance < 0:
            raise ValueError("balance cannot be negative")
        return bisect.bisect_right(self.thresholds, balance)

    def monthly_micro(self, tier: int) -> int:
        return credits_to_micro(self.monthly_credits[tier])


DEFAULT_TIER_TABLE = TierTable(
    thresholds=tuple(
        tokens * _RAW_PER_TOKEN
        for tokens in (
            10_000,
            25_000,
            50_000,
            100_000,
            250_000,
            500_000,
            1_000_000,
            2_500_000,
            5_000_000,
        )
    ),
    monthly_credits=(0, 160, 480, 960, 3_200, 8_000, 16_000, 32_000, 48_000, 64_000),
)


@dataclass(frozen=True)
class EmissionSchedule:
    """Step function of week index → weekly emission.

    ``steps`` pairs an exclusive upper week bound with its emission in whole
    tokens; weeks at or past the last bound get ``tail``. Lookups return
    TOKEN_MICRO units.
    """

    steps: tuple[tuple[int, int], ...]
    tail: int

    def emission_for_week(self, week_index: int) -> int:
        if week_index < 0:
            raise ValueError("week_index cannot be negative")
        for upper, emission in self.steps:
            if week_index < upper:
                return tokens_to_micro(emission)
        return tokens_to_micro(self.tail)


DEFAULT_EMISSION_SCHEDULE = EmissionSchedule(
    steps=((12, 666_667), (39, 500_000), (78, 333_333)),
    tail=166_667,
)
