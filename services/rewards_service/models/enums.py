"""Enums for the Rewards Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class MemberRole(str, enum.Enum):
    MEMBER = "member"
    MODERATOR = "moderator"
    ADMIN = "admin"


class SubscriptionTier(str, enum.Enum):
    FREE = "free"
    PREMIUM = "premium"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class LedgerRefType(str, enum.Enum):
    DAILY_ACCRUAL = "daily_accrual"
    VOTE_CREDIT = "vote_credit"
    RAFFLE_TICKET = "raffle_ticket"
    RAFFLE_PRIZE = "raffle_prize"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class RaffleType(str, enum.Enum):
    CREDITS = "credits"


class RaffleStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    DRAWN = "drawn"


class WinnerStatus(str, enum.Enum):
    PENDING = "pending"
    CLAIMED = "claimed"
    EXPIRED = "expired"


class RewardPoolType(str, enum.Enum):
    WEEKLY_SCORE = "weekly_score"
    ALLTIME_SCORE = "alltime_score"
    VOTER = "voter"
    MVM = "mvm"
    COMMENTS = "comments"


class RewardEventStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CLAIMED = "claimed"
