"""Rewards Service models package.

Re-exports all models and enums so that:
  - ``from services.rewards_service.models import Raffle`` works
  - Alembic env.py sees every table on import

Every model class AND enum must be listed here.
"""

from services.rewards_service.models.community import (  # noqa: F401
    Comment,
    CommentMemberVote,
    CommentModVote,
    Member,
)
from services.rewards_service.models.distribution import (  # noqa: F401
    RewardBatch,
    RewardEvent,
    RewardsConfig,
)
from services.rewards_service.models.enums import (  # noqa: F401
    LedgerRefType,
    MemberRole,
    RaffleStatus,
    RaffleType,
    RewardEventStatus,
    RewardPoolType,
    SubscriptionStatus,
    SubscriptionTier,
    WinnerStatus,
)
from services.rewards_service.models.ledger import (  # noqa: F401
    CreditAccount,
    CreditLedgerEntry,
)
from services.rewards_service.models.raffle import (  # noqa: F401
    Raffle,
    RaffleMatchBudget,
    RaffleTicket,
    RaffleWinner,
)
from services.rewards_service.models.snapshot import WalletBalanceSnapshot  # noqa: F401
from services.rewards_service.models.stats import (  # noqa: F401
    AllTimeUserStat,
    LikeReceivedEntry,
    MonthlyUserStat,
    WeeklyUserStat,
    WeeklyVoterStat,
)

__all__ = [
    # Enums
    "LedgerRefType",
    "MemberRole",
    "RaffleStatus",
    "RaffleType",
    "RewardEventStatus",
    "RewardPoolType",
    "SubscriptionStatus",
    "SubscriptionTier",
    "WinnerStatus",
    # Ledger
    "CreditAccount",
    "CreditLedgerEntry",
    # Community
    "Member",
    "Comment",
    "CommentMemberVote",
    "CommentModVote",
    # Stats
    "WeeklyUserStat",
    "AllTimeUserStat",
    "MonthlyUserStat",
    "WeeklyVoterStat",
    "LikeReceivedEntry",
    # Accrual
    "WalletBalanceSnapshot",
    # Raffle
    "Raffle",
    "RaffleTicket",
    "RaffleWinner",
    "RaffleMatchBudget",
    # Distribution
    "RewardBatch",
    "RewardEvent",
    "RewardsConfig",
]
