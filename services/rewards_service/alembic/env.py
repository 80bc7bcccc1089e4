"""Alembic configuration entrypoint for rewards service."""

# ruff: noqa: F401

import asyncio
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

# Ensure project root on sys.path
PROJECT_ROOT = Path(__file__).resolve().parents[3]
sys.path.append(str(PROJECT_ROOT))

from libs.common.config import get_settings
from libs.db.base import Base
from services.rewards_service.models import (  # noqa: F401
    # Ledger
    CreditAccount,
    CreditLedgerEntry,
    # Community
    Member,
    Comment,
    CommentMemberVote,
    CommentModVote,
    # Stats
    WeeklyUserStat,
    AllTimeUserStat,
    MonthlyUserStat,
    WeeklyVoterStat,
    LikeReceivedEntry,
    # Accrual
    WalletBalanceSnapshot,
    # Raffle
    Raffle,
    RaffleTicket,
    RaffleWinner,
    RaffleMatchBudget,
    # Distribution
    RewardBatch,
    RewardEvent,
    RewardsConfig,
)

settings = get_settings()
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
# Only migrate tables owned by this service
SERVICE_TABLES = {
    # Ledger
    "credit_accounts",
    "credit_ledger_entries",
    # Community
    "reward_members",
    "comments",
    "comment_member_votes",
    "comment_mod_votes",
    # Stats
    "weekly_user_stats",
    "all_time_user_stats",
    "monthly_user_stats",
    "weekly_voter_stats",
    "like_received_entries",
    # Accrual
    "wallet_balance_snapshots",
    # Raffle
    "raffles",
    "raffle_tickets",
    "raffle_winners",
    "raffle_match_budgets",
    # Distribution
    "reward_batches",
    "reward_events",
    "rewards_config",
}

url = settings.DATABASE_URL.replace("%", "%%")
config.set_main_option("sqlalchemy.url", url)


def include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in SERVICE_TABLES
    if type_ in ("index", "column", "foreign_key_constraint"):
        return obj.table.name in SERVICE_TABLES
    return True


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table="alembic_version_rewards",
        include_object=include_object,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        version_table="alembic_version_rewards",
        include_object=include_object,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    connect_args = {}
    if url.startswith("postgresql"):
        # Disable psycopg auto-prepared statements to avoid duplicate name errors
        connect_args["prepare_threshold"] = 0

    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        connect_args=connect_args,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
