"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    member = MemberFactory.create(subscription_tier=SubscriptionTier.PREMIUM)
    db_session.add(member)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timedelta, timezone

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


def _wallet() -> str:
    return f"Wallet{uuid.uuid4().hex}"


# ---------------------------------------------------------------------------
# Community
# ---------------------------------------------------------------------------


class MemberFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import (
            Member,
            MemberRole,
            SubscriptionStatus,
            SubscriptionTier,
        )

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "wallet_address": _wallet(),
            "role": MemberRole.MEMBER,
            "subscription_tier": SubscriptionTier.FREE,
            "subscription_status": SubscriptionStatus.ACTIVE,
            "subscription_expires_at": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Member(**defaults)


class PremiumMemberFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import SubscriptionStatus, SubscriptionTier

        defaults = {
            "subscription_tier": SubscriptionTier.PREMIUM,
            "subscription_status": SubscriptionStatus.ACTIVE,
            "subscription_expires_at": _now() + timedelta(days=30),
        }
        defaults.update(overrides)
        return MemberFactory.create(**defaults)


class CommentFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import Comment

        defaults = {
            "id": _uuid(),
            "author_id": _user_id(),
            "body": "Great post",
            "score": 0,
            "member_likes": 0,
            "member_dislikes": 0,
            "mod_likes": 0,
            "mod_dislikes": 0,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Comment(**defaults)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class CreditAccountFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import CreditAccount

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "balance_micro": 0,
            "carry_micro": 0,
            "tier": 0,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return CreditAccount(**defaults)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class WeeklyUserStatFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import WeeklyUserStat

        defaults = {
            "id": _uuid(),
            "week_key": "2026-01-11",
            "user_id": _user_id(),
            "score_received": 0,
            "likes_received": 0,
            "comments_posted": 0,
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return WeeklyUserStat(**defaults)


class AllTimeUserStatFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import AllTimeUserStat

        defaults = {
            "id": _uuid(),
            "user_id": _user_id(),
            "score_received": 0,
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return AllTimeUserStat(**defaults)


class MonthlyUserStatFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import MonthlyUserStat

        defaults = {
            "id": _uuid(),
            "month_key": "2026-01",
            "user_id": _user_id(),
            "mvm_points": 0,
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return MonthlyUserStat(**defaults)


class WeeklyVoterStatFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import WeeklyVoterStat

        defaults = {
            "id": _uuid(),
            "week_key": "2026-01-11",
            "user_id": _user_id(),
            "votes_cast": 0,
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return WeeklyVoterStat(**defaults)


# ---------------------------------------------------------------------------
# Raffle
# ---------------------------------------------------------------------------


class RaffleFactory:
    @staticmethod
    def create(week_key: str = "2026-01-11", **overrides):
        from services.rewards_service.models import Raffle, RaffleStatus, RaffleType
        from services.rewards_service.services.week_keys import week_bounds

        opens_at, closes_at = week_bounds(week_key)
        defaults = {
            "id": _uuid(),
            "week_key": week_key,
            "type": RaffleType.CREDITS,
            "status": RaffleStatus.OPEN,
            "user_pool_micro": 0,
            "match_pool_micro": 0,
            "rollover_micro": 0,
            "opens_at": opens_at,
            "closes_at": closes_at,
            "drawn_at": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return Raffle(**defaults)


class RaffleTicketFactory:
    @staticmethod
    def create(raffle_id=None, **overrides):
        from services.rewards_service.models import RaffleTicket

        defaults = {
            "id": _uuid(),
            "raffle_id": raffle_id or _uuid(),
            "user_id": _user_id(),
            "quantity": 1,
            "purchase_ref": f"ticket-{uuid.uuid4().hex}",
            "created_at": _now(),
        }
        defaults.update(overrides)
        return RaffleTicket(**defaults)


class RaffleWinnerFactory:
    @staticmethod
    def create(raffle_id=None, **overrides):
        from services.rewards_service.models import RaffleWinner, WinnerStatus

        defaults = {
            "id": _uuid(),
            "raffle_id": raffle_id or _uuid(),
            "user_id": _user_id(),
            "place": 1,
            "prize_micro": 5_000,
            "status": WinnerStatus.PENDING,
            "expires_at": _now() + timedelta(days=7),
            "claimed_at": None,
            "created_at": _now(),
        }
        defaults.update(overrides)
        return RaffleWinner(**defaults)


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


class RewardsConfigFactory:
    @staticmethod
    def create(**overrides):
        from services.rewards_service.models import RewardsConfig

        defaults = {
            "id": 1,
            "all_time_likes_bps": 2000,
            "voter_likes_bps": 1000,
            "min_weekly_score": 1,
            "min_all_time_score": 1,
            "min_mvm_points": 1,
            "raffle_match_cap_micro": 0,
            "weekly_emission_override_micro": None,
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return RewardsConfig(**defaults)
