"""Rewards Service schemas package.

Re-exports all schemas so routers can import from
``services.rewards_service.schemas`` directly.

IMPORTANT: Every schema class must be listed here.
When adding a new schema, add its import and __all__ entry.
"""

from services.rewards_service.schemas.credits import (  # noqa: F401
    CreditBalanceResponse,
    LedgerEntryListResponse,
    LedgerEntryResponse,
)
from services.rewards_service.schemas.internal import (  # noqa: F401
    CommentCreateRequest,
    CommentResponse,
    MemberResponse,
    MemberUpsertRequest,
    MvmPointsRequest,
    MvmPointsResponse,
)
from services.rewards_service.schemas.raffles import (  # noqa: F401
    CurrentRaffleResponse,
    PrizeClaimResponse,
    RaffleResponse,
    RaffleWinnerResponse,
    TicketPurchaseRequest,
    TicketPurchaseResponse,
)
from services.rewards_service.schemas.rewards import (  # noqa: F401
    RewardBatchResponse,
    RewardClaimResponse,
    RewardEventResponse,
    RewardProofResponse,
)
from services.rewards_service.schemas.votes import (  # noqa: F401
    VoteRequest,
    VoteResponse,
)

__all__ = [
    # credits
    "CreditBalanceResponse",
    "LedgerEntryListResponse",
    "LedgerEntryResponse",
    # internal
    "CommentCreateRequest",
    "CommentResponse",
    "MemberResponse",
    "MemberUpsertRequest",
    "MvmPointsRequest",
    "MvmPointsResponse",
    # raffles
    "CurrentRaffleResponse",
    "PrizeClaimResponse",
    "RaffleResponse",
    "RaffleWinnerResponse",
    "TicketPurchaseRequest",
    "TicketPurchaseResponse",
    # rewards
    "RewardBatchResponse",
    "RewardClaimResponse",
    "RewardEventResponse",
    "RewardProofResponse",
    # votes
    "VoteRequest",
    "VoteResponse",
]
