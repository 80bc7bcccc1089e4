"""Twice-daily special-credit accrual for wallet holders.

Each run takes a balance snapshot per linked wallet, maps it to a tier and
accrues ``monthly_allowance / (days_in_month * 2)`` credits, carrying the
sub-micro remainder forward. A run is keyed ``{user}:{date}:{slot}`` in the
ledger, so re-running the same slot is a no-op.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.rewards_service.models import LedgerRefType, Member, WalletBalanceSnapshot
from services.rewards_service.services.balances import WalletBalanceSource
from services.rewards_service.services.credit_ledger import (
    find_entry,
    get_account,
    lock_account,
    post_entry,
)
from services.rewards_service.services.fixed_point import format_micro
from services.rewards_service.services.tiers import DEFAULT_TIER_TABLE, TierTable
from services.rewards_service.services.week_keys import (
    accrual_slot,
    date_key as make_date_key,
    days_in_month,
    week_key,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# carry_micro is kept in thousandths of a micro-credit
CARRY_SUBUNITS = 1_000


class SnapshotOutcome(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class AccrualSkip(str, enum.Enum):
    BALANCE_UNAVAILABLE = "balance_unavailable"
    TIER_ZERO = "tier_zero"
    ALREADY_ACCRUED = "already_accrued"
    ZERO_ACCRUAL = "zero_accrual"


@dataclass
class AccrualReport:
    date_key: str
    slot: str
    snapshots: dict[str, int] = field(
        default_factory=lambda: {outcome.value: 0 for outcome in SnapshotOutcome}
    )
    awarded: int = 0
    awarded_micro: int = 0
    skipped: dict[str, int] = field(
        default_factory=lambda: {reason.value: 0 for reason in AccrualSkip}
    )
    errors: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)

    def skip(self, reason: AccrualSkip) -> None:
        self.skipped[reason.value] += 1

    def summary(self, include_details: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "date_key": self.date_key,
            "slot": self.slot,
            "snapshots": dict(self.snapshots),
            "credits": {
                "awarded": self.awarded,
                "awarded_micro": self.awarded_micro,
                "skipped": dict(self.skipped),
                "errors": self.errors,
            },
        }
        if include_details:
            data["details"] = list(self.details)
        return data


def compute_accrual(monthly_micro: int, month_days: int, carry_in: int) -> tuple[int, int]:
    """Return ``(accrual_micro, carry_out)`` for one half-day run."""
    raw_scaled = monthly_micro * CARRY_SUBUNITS // (month_days * 2)
    return divmod(raw_scaled + carry_in, CARRY_SUBUNITS)


async def upsert_snapshot(
    db: AsyncSession,
    *,
    wallet_address: str,
    user_id: str,
    date_key: str,
    balance: int,
    tier: int,
) -> SnapshotOutcome:
    result = await db.execute(
        select(WalletBalanceSnapshot).where(
            WalletBalanceSnapshot.wallet_address == wallet_address,
            WalletBalanceSnapshot.date_key == date_key,
        )
    )
    snapshot = result.scalar_one_or_none()
    if snapshot is None:
        db.add(
            WalletBalanceSnapshot(
                wallet_address=wallet_address,
                user_id=user_id,
                date_key=date_key,
                balance=balance,
                tier=tier,
            )
        )
        outcome = SnapshotOutcome.CREATED
    elif snapshot.balance != balance or snapshot.tier != tier:
        snapshot.balance = balance
        snapshot.tier = tier
        snapshot.updated_at = utc_now()
        outcome = SnapshotOutcome.UPDATED
    else:
        return SnapshotOutcome.UNCHANGED

    try:
        await db.commit()
    except IntegrityError:
        # Concurrent run created it first
        await db.rollback()
        return SnapshotOutcome.UNCHANGED
    return outcome


async def _accrue_wallet(
    db: AsyncSession,
    *,
    user_id: str,
    tier: int,
    tier_table: TierTable,
    date_key: str,
    slot: str,
    week: str,
) -> tuple[Optional[AccrualSkip], int]:
    """Accrue one wallet. Returns ``(skip_reason, accrued_micro)``."""
    if tier == 0:
        # Tier 0 keeps no fractional credit toward future accruals
        account = await get_account(db, user_id)
        if account is not None and (account.tier != 0 or account.carry_micro):
            logger.info("Wallet of %s dropped to tier 0, clearing carry", user_id)
            account.tier = 0
            account.carry_micro = 0
            await db.commit()
        return AccrualSkip.TIER_ZERO, 0

    ref_id = f"{user_id}:{date_key}:{slot}"
    account = await lock_account(db, user_id)
    tier_changed = account.tier != tier

    if await find_entry(db, LedgerRefType.DAILY_ACCRUAL, ref_id):
        if tier_changed:
            account.tier = tier
            account.carry_micro = 0
            await db.commit()
        else:
            await db.rollback()
        return AccrualSkip.ALREADY_ACCRUED, 0

    carry_in = 0 if tier_changed else account.carry_micro
    accrual, carry_out = compute_accrual(
        tier_table.monthly_micro(tier), days_in_month(date_key), carry_in
    )

    if accrual == 0:
        account.tier = tier
        account.carry_micro = carry_out
        await db.commit()
        return AccrualSkip.ZERO_ACCRUAL, 0

    await post_entry(
        db,
        user_id=user_id,
        amount_micro=accrual,
        reason=f"Tier {tier} holder accrual ({date_key} {slot})",
        ref_type=LedgerRefType.DAILY_ACCRUAL,
        ref_id=ref_id,
        week_key=week,
        commit=False,
    )
    account.tier = tier
    account.carry_micro = carry_out
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return AccrualSkip.ALREADY_ACCRUED, 0

    logger.info(
        "Accrued %s credits to %s (tier %d, %s %s, carry %d)",
        format_micro(accrual),
        user_id,
        tier,
        date_key,
        slot,
        carry_out,
    )
    return None, accrual


async def run_accrual(
    db: AsyncSession,
    *,
    balances: WalletBalanceSource,
    tier_table: TierTable = DEFAULT_TIER_TABLE,
    now: Optional[datetime] = None,
    include_details: bool = False,
) -> AccrualReport:
    """Snapshot and accrue every member with a linked wallet.

    Wallets are processed one at a time; a failure on one is logged, counted
    under ``errors`` and does not stop the run.
    """
    now = now or utc_now()
    date_key = make_date_key(now)
    slot = accrual_slot(now)
    week = week_key(now)
    report = AccrualReport(date_key=date_key, slot=slot)

    result = await db.execute(
        select(Member.user_id, Member.wallet_address)
        .where(Member.wallet_address.is_not(None))
        .order_by(Member.user_id)
    )
    holders = [(row.user_id, row.wallet_address) for row in result]
    await db.rollback()

    observed = await balances.get_balances([wallet for _, wallet in holders])

    for user_id, wallet in holders:
        balance = observed.get(wallet)
        detail: dict[str, Any] = {"user_id": user_id, "wallet": wallet, "balance": balance}
        try:
            if balance is None:
                report.skip(AccrualSkip.BALANCE_UNAVAILABLE)
                detail["outcome"] = AccrualSkip.BALANCE_UNAVAILABLE.value
                continue

            tier = tier_table.tier_for_balance(balance)
            snapshot = await upsert_snapshot(
                db,
                wallet_address=wallet,
                user_id=user_id,
                date_key=date_key,
                balance=balance,
                tier=tier,
            )
            report.snapshots[snapshot.value] += 1
            detail.update(tier=tier, snapshot=snapshot.value)

            skip, accrued = await _accrue_wallet(
                db,
                user_id=user_id,
                tier=tier,
                tier_table=tier_table,
                date_key=date_key,
                slot=slot,
                week=week,
            )
            if skip is not None:
                report.skip(skip)
                detail["outcome"] = skip.value
            else:
                report.awarded += 1
                report.awarded_micro += accrued
                detail.update(outcome="awarded", accrued_micro=accrued)

        except Exception:
            logger.exception("Accrual failed for user %s wallet %s", user_id, wallet)
            await db.rollback()
            report.errors += 1
            detail["outcome"] = "error"
        finally:
            if include_details:
                report.details.append(detail)

    logger.info(
        "Accrual %s %s: snapshots=%s awarded=%d (%s credits) skipped=%s errors=%d",
        date_key,
        slot,
        report.snapshots,
        report.awarded,
        format_micro(report.awarded_micro),
        report.skipped,
        report.errors,
    )
    return report
