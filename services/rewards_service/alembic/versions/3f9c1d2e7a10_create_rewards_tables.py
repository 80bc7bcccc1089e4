"""create_rewards_tables

Revision ID: 3f9c1d2e7a10
Revises:
Create Date: 2026-01-02 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "3f9c1d2e7a10"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name)


MEMBER_ROLE = _enum("member_role_enum", "member", "moderator", "admin")
SUBSCRIPTION_TIER = _enum("subscription_tier_enum", "free", "premium")
SUBSCRIPTION_STATUS = _enum("subscription_status_enum", "active", "past_due", "canceled")
LEDGER_REF_TYPE = _enum(
    "ledger_ref_type_enum",
    "daily_accrual",
    "vote_credit",
    "raffle_ticket",
    "raffle_prize",
    "admin_adjustment",
)
RAFFLE_TYPE = _enum("raffle_type_enum", "credits")
RAFFLE_STATUS = _enum("raffle_status_enum", "open", "closed", "drawn")
WINNER_STATUS = _enum("raffle_winner_status_enum", "pending", "claimed", "expired")
REWARD_POOL_TYPE = _enum(
    "reward_pool_type_enum", "weekly_score", "alltime_score", "voter", "mvm", "comments"
)
REWARD_EVENT_STATUS = _enum("reward_event_status_enum", "pending", "paid", "claimed")


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _vote_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "comment_id",
            sa.Uuid(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("voter_id", sa.String(), nullable=False),
        sa.Column("value", sa.SmallInteger(), nullable=False),
        sa.Column("flip_count", sa.SmallInteger(), nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("last_changed_at"),
        sa.UniqueConstraint("comment_id", "voter_id", name=f"uq_{name}_comment_voter"),
        sa.CheckConstraint("value IN (-1, 1)", name=f"ck_{name}_value"),
        sa.CheckConstraint("flip_count IN (0, 1)", name=f"ck_{name}_flip_count"),
    )
    op.create_index(f"ix_{name}_comment_id", name, ["comment_id"])
    op.create_index(f"ix_{name}_voter_id", name, ["voter_id"])


def upgrade() -> None:
    # Ledger
    op.create_table(
        "credit_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False, unique=True),
        sa.Column("balance_micro", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("carry_micro", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("tier", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("balance_micro >= 0", name="ck_credit_account_balance_non_negative"),
        sa.CheckConstraint("carry_micro >= 0", name="ck_credit_account_carry_non_negative"),
    )
    op.create_index("ix_credit_accounts_user_id", "credit_accounts", ["user_id"])

    op.create_table(
        "credit_ledger_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("amount_micro", sa.BigInteger(), nullable=False),
        sa.Column("balance_after_micro", sa.BigInteger(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("ref_type", LEDGER_REF_TYPE, nullable=False),
        sa.Column("ref_id", sa.String(), nullable=False),
        sa.Column("week_key", sa.String(10), nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("ref_type", "ref_id", name="uq_credit_ledger_ref"),
        sa.CheckConstraint("amount_micro <> 0", name="ck_credit_ledger_amount_nonzero"),
    )
    op.create_index("ix_credit_ledger_entries_user_id", "credit_ledger_entries", ["user_id"])
    op.create_index(
        "ix_credit_ledger_user_created", "credit_ledger_entries", ["user_id", "created_at"]
    )

    # Community
    op.create_table(
        "reward_members",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False, unique=True),
        sa.Column("wallet_address", sa.String(), nullable=True, unique=True),
        sa.Column("role", MEMBER_ROLE, nullable=False, server_default="member"),
        sa.Column("subscription_tier", SUBSCRIPTION_TIER, nullable=False, server_default="free"),
        sa.Column(
            "subscription_status", SUBSCRIPTION_STATUS, nullable=False, server_default="active"
        ),
        _ts("subscription_expires_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_reward_members_user_id", "reward_members", ["user_id"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("member_dislikes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mod_likes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mod_dislikes", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
    )
    op.create_index("ix_comments_author_id", "comments", ["author_id"])

    _vote_table("comment_member_votes")
    _vote_table("comment_mod_votes")

    # Stats
    op.create_table(
        "weekly_user_stats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_key", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("score_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("likes_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("comments_posted", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("week_key", "user_id", name="uq_weekly_user_stats_week_user"),
    )
    op.create_index("ix_weekly_user_stats_week_key", "weekly_user_stats", ["week_key"])

    op.create_table(
        "all_time_user_stats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False, unique=True),
        sa.Column("score_received", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
    )

    op.create_table(
        "monthly_user_stats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("month_key", sa.String(7), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("mvm_points", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("month_key", "user_id", name="uq_monthly_user_stats_month_user"),
    )
    op.create_index("ix_monthly_user_stats_month_key", "monthly_user_stats", ["month_key"])

    op.create_table(
        "weekly_voter_stats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_key", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("votes_cast", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("week_key", "user_id", name="uq_weekly_voter_stats_week_user"),
    )
    op.create_index("ix_weekly_voter_stats_week_key", "weekly_voter_stats", ["week_key"])

    op.create_table(
        "like_received_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("ref_id", sa.String(), nullable=False, unique=True),
        sa.Column("week_key", sa.String(10), nullable=False),
        sa.Column("author_id", sa.String(), nullable=False),
        sa.Column("comment_id", sa.Uuid(), nullable=False),
        sa.Column("voter_id", sa.String(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_like_received_entries_week_key", "like_received_entries", ["week_key"])

    # Accrual
    op.create_table(
        "wallet_balance_snapshots",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("date_key", sa.String(10), nullable=False),
        sa.Column("balance", sa.BigInteger(), nullable=False),
        sa.Column("tier", sa.Integer(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("wallet_address", "date_key", name="uq_wallet_snapshot_wallet_date"),
    )
    op.create_index(
        "ix_wallet_balance_snapshots_wallet_address",
        "wallet_balance_snapshots",
        ["wallet_address"],
    )
    op.create_index(
        "ix_wallet_balance_snapshots_user_id", "wallet_balance_snapshots", ["user_id"]
    )

    # Raffle
    op.create_table(
        "raffles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_key", sa.String(10), nullable=False),
        sa.Column("type", RAFFLE_TYPE, nullable=False, server_default="credits"),
        sa.Column("status", RAFFLE_STATUS, nullable=False, server_default="open"),
        sa.Column("user_pool_micro", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("match_pool_micro", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("rollover_micro", sa.BigInteger(), nullable=False, server_default="0"),
        _ts("opens_at"),
        _ts("closes_at"),
        _ts("drawn_at", nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("week_key", "type", name="uq_raffles_week_type"),
    )

    op.create_table(
        "raffle_tickets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("raffle_id", sa.Uuid(), sa.ForeignKey("raffles.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("purchase_ref", sa.String(), nullable=False, unique=True),
        _ts("created_at"),
        sa.CheckConstraint("quantity > 0", name="ck_raffle_ticket_quantity_positive"),
    )
    op.create_index(
        "ix_raffle_tickets_raffle_user", "raffle_tickets", ["raffle_id", "user_id"]
    )

    op.create_table(
        "raffle_winners",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("raffle_id", sa.Uuid(), sa.ForeignKey("raffles.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("place", sa.SmallInteger(), nullable=False),
        sa.Column("prize_micro", sa.BigInteger(), nullable=False),
        sa.Column("status", WINNER_STATUS, nullable=False, server_default="pending"),
        _ts("expires_at"),
        _ts("claimed_at", nullable=True),
        _ts("created_at"),
        sa.UniqueConstraint("raffle_id", "place", name="uq_raffle_winners_place"),
        sa.UniqueConstraint("raffle_id", "user_id", name="uq_raffle_winners_user"),
        sa.CheckConstraint("place BETWEEN 1 AND 3", name="ck_raffle_winner_place"),
        sa.CheckConstraint("prize_micro >= 0", name="ck_raffle_winner_prize_non_negative"),
    )
    op.create_index("ix_raffle_winners_raffle_id", "raffle_winners", ["raffle_id"])
    op.create_index("ix_raffle_winners_user_id", "raffle_winners", ["user_id"])

    op.create_table(
        "raffle_match_budgets",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_key", sa.String(10), nullable=False, unique=True),
        sa.Column("match_cap_micro", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("matched_micro", sa.BigInteger(), nullable=False, server_default="0"),
        _ts("updated_at"),
    )

    # Distribution
    op.create_table(
        "reward_batches",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("week_key", sa.String(10), nullable=False, unique=True),
        sa.Column("week_index", sa.Integer(), nullable=False),
        sa.Column("merkle_root", sa.String(66), nullable=True),
        sa.Column("total_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_users", sa.Integer(), nullable=False, server_default="0"),
        _ts("created_at"),
    )

    op.create_table(
        "reward_events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("batch_id", sa.Uuid(), sa.ForeignKey("reward_batches.id"), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("wallet_address", sa.String(), nullable=False),
        sa.Column("type", REWARD_POOL_TYPE, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("ref_id", sa.String(), nullable=False, unique=True),
        sa.Column("merkle_index", sa.Integer(), nullable=False),
        sa.Column("merkle_proof", sa.JSON(), nullable=False),
        sa.Column("status", REWARD_EVENT_STATUS, nullable=False, server_default="pending"),
        _ts("claimed_at", nullable=True),
        _ts("created_at"),
        sa.CheckConstraint("amount > 0", name="ck_reward_event_amount_positive"),
    )
    op.create_index("ix_reward_events_batch_id", "reward_events", ["batch_id"])
    op.create_index("ix_reward_events_user_id", "reward_events", ["user_id"])
    op.create_index("ix_reward_events_batch_user", "reward_events", ["batch_id", "user_id"])

    op.create_table(
        "rewards_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("all_time_likes_bps", sa.Integer(), nullable=False),
        sa.Column("voter_likes_bps", sa.Integer(), nullable=False),
        sa.Column("min_weekly_score", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("min_all_time_score", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("min_mvm_points", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "raffle_match_cap_micro", sa.BigInteger(), nullable=False, server_default="0"
        ),
        sa.Column("weekly_emission_override_micro", sa.BigInteger(), nullable=True),
        _ts("updated_at"),
        sa.CheckConstraint(
            "all_time_likes_bps >= 0 AND voter_likes_bps >= 0 "
            "AND all_time_likes_bps + voter_likes_bps <= 10000",
            name="ck_rewards_config_likes_bps",
        ),
    )


def downgrade() -> None:
    for table in (
        "rewards_config",
        "reward_events",
        "reward_batches",
        "raffle_match_budgets",
        "raffle_winners",
        "raffle_tickets",
        "raffles",
        "wallet_balance_snapshots",
        "like_received_entries",
        "weekly_voter_stats",
        "monthly_user_stats",
        "all_time_user_stats",
        "weekly_user_stats",
        "comment_mod_votes",
        "comment_member_votes",
        "comments",
        "reward_members",
        "credit_ledger_entries",
        "credit_accounts",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (
        REWARD_EVENT_STATUS,
        REWARD_POOL_TYPE,
        WINNER_STATUS,
        RAFFLE_STATUS,
        RAFFLE_TYPE,
        LEDGER_REF_TYPE,
        SUBSCRIPTION_STATUS,
        SUBSCRIPTION_TIER,
        MEMBER_ROLE,
    ):
        enum.drop(bind, checkfirst=True)
