"""Special-credit ledger: idempotent, atomic postings with row-level locking."""

from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.rewards_service.errors import InsufficientCredits, InvalidAmount
from services.rewards_service.models import (
    CreditAccount,
    CreditLedgerEntry,
    LedgerRefType,
)
from services.rewards_service.services.fixed_point import format_micro
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


async def _select_account_for_update(db: AsyncSession, user_id: str) -> Optional[CreditAccount]:
    result = await db.execute(
        select(CreditAccount)
        .where(CreditAccount.user_id == user_id)
        .with_for_update()
    )
    return result.scalar_one_or_none()


async def lock_account(db: AsyncSession, user_id: str) -> CreditAccount:
    """SELECT FOR UPDATE the user's account, creating it (zeroed) if missing.

    A concurrent first write for the same user wins the insert; the loser
    rolls back to its savepoint and locks the winner's row instead.
    """
    account = await _select_account_for_update(db, user_id)
    if account is not None:
        return account

    account = CreditAccount(user_id=user_id, balance_micro=0, carry_micro=0, tier=0)
    try:
        async with db.begin_nested():
            db.add(account)
    except IntegrityError:
        logger.info("Credit account for %s created concurrently, re-reading", user_id)
        account = await _select_account_for_update(db, user_id)
        if account is None:
            raise
    return account


async def get_account(db: AsyncSession, user_id: str) -> Optional[CreditAccount]:
    result = await db.execute(
        select(CreditAccount).where(CreditAccount.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_balance(db: AsyncSession, user_id: str) -> int:
    account = await get_account(db, user_id)
    return account.balance_micro if account else 0


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


async def find_entry(
    db: AsyncSession, ref_type: LedgerRefType, ref_id: str
) -> Optional[CreditLedgerEntry]:
    result = await db.execute(
        select(CreditLedgerEntry).where(
            CreditLedgerEntry.ref_type == ref_type,
            CreditLedgerEntry.ref_id == ref_id,
        )
    )
    return result.scalar_one_or_none()


async def post_entry(
    db: AsyncSession,
    *,
    user_id: str,
    amount_micro: int,
    reason: str,
    ref_type: LedgerRefType,
    ref_id: str,
    week_key: Optional[str] = None,
    commit: bool = True,
) -> tuple[CreditLedgerEntry, bool]:
    """Append a ledger entry and move the account balance with it.

    1. Idempotency: an existing (ref_type, ref_id) entry is returned unchanged
    2. Lock the account row
    3. Reject debits that would overdraw
    4. Insert the entry and update the balance
    5. Commit, unless the caller owns the transaction (``commit=False``)

    Returns ``(entry, created)``.
    """
    if isinstance(amount_micro, bool) or not isinstance(amount_micro, int) or amount_micro == 0:
        raise InvalidAmount(f"amount_micro must be a non-zero integer, got {amount_micro!r}")

    existing = await find_entry(db, ref_type, ref_id)
    if existing:
        logger.info("Idempotent replay for %s:%s → entry=%s", ref_type.value, ref_id, existing.id)
        return existing, False

    account = await lock_account(db, user_id)
    balance_before = account.balance_micro
    balance_after = balance_before + amount_micro
    if balance_after < 0:
        if commit:
            await db.rollback()
        raise InsufficientCredits(balance_before, -amount_micro)

    entry = CreditLedgerEntry(
        user_id=user_id,
        amount_micro=amount_micro,
        balance_after_micro=balance_after,
        reason=reason,
        ref_type=ref_type,
        ref_id=ref_id,
        week_key=week_key,
    )
    db.add(entry)
    account.balance_micro = balance_after
    account.updated_at = utc_now()

    if not commit:
        await db.flush()
        return entry, True

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race to a concurrent writer with the same key
        await db.rollback()
        existing = await find_entry(db, ref_type, ref_id)
        if existing is None:
            raise
        return existing, False

    logger.info(
        "Posted %s credits to %s (%s:%s), balance %s→%s",
        format_micro(amount_micro),
        user_id,
        ref_type.value,
        ref_id,
        format_micro(balance_before),
        format_micro(balance_after),
    )
    return entry, True
