"""Typed domain errors for the rewards service.

Each error carries a stable ``code`` that clients switch on and the HTTP
status the app-level exception handler renders it with.
"""

from typing import Optional


class RewardsError(Exception):
    code = "REWARDS_ERROR"
    status_code = 400

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        if code is not None:
            self.code = code
        super().__init__(message or self.code)

    @property
    def message(self) -> str:
        return str(self)


class InvalidAmount(RewardsError):
    code = "INVALID_AMOUNT"


class InsufficientCredits(RewardsError):
    code = "INSUFFICIENT_CREDITS"

    def __init__(self, available_micro: int, required_micro: int):
        super().__init__(
            f"Insufficient credits: have {available_micro}, need {required_micro}"
        )
        self.available_micro = available_micro
        self.required_micro = required_micro


class VoteRejected(RewardsError):
    """Business-rule rejection of a vote. ``code`` is one of the VOTE_* reasons."""

    status_code = 409

    FLIP_ALREADY_USED = "VOTE_LOCKED_FLIP_ALREADY_USED"
    WINDOW_EXPIRED = "VOTE_LOCKED_WINDOW_EXPIRED"
    OWN_COMMENT = "CANNOT_VOTE_OWN_COMMENT"

    def __init__(self, reason: str):
        super().__init__(reason, code=reason)


class CommentNotFound(RewardsError):
    code = "COMMENT_NOT_FOUND"
    status_code = 404


class MemberNotFound(RewardsError):
    code = "MEMBER_NOT_FOUND"
    status_code = 404


class NotModerator(RewardsError):
    code = "FORBIDDEN"
    status_code = 403


class RaffleNotFound(RewardsError):
    code = "RAFFLE_NOT_FOUND"
    status_code = 404


class RaffleNotOpen(RewardsError):
    code = "RAFFLE_NOT_OPEN"
    status_code = 409


class WinnerNotFound(RewardsError):
    code = "WINNER_NOT_FOUND"
    status_code = 404


class PrizeNotClaimable(RewardsError):
    code = "PRIZE_NOT_CLAIMABLE"
    status_code = 409


class PrizeExpired(RewardsError):
    code = "PRIZE_EXPIRED"
    status_code = 410


class RewardNotFound(RewardsError):
    code = "REWARD_NOT_FOUND"
    status_code = 404


class BatchAlreadyProcessed(RewardsError):
    code = "ALREADY_PROCESSED"
    status_code = 409

    def __init__(self, week_key: str):
        super().__init__(f"Reward batch for week {week_key} already exists")
        self.week_key = week_key
