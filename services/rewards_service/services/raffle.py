"""Weekly credit raffle: tickets, close → match → draw, prize claims and rollover.

A raffle moves OPEN → CLOSED → DRAWN and never backwards. The weekly cron
(:func:`run_weekly`) is safe to call repeatedly and concurrently: the whole
operation runs under the ``raffle-weekly`` lock and each step re-checks the
state it is about to change.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.locks import OperationLock, get_operation_lock
from libs.common.logging import get_logger
from services.rewards_service.errors import (
    InvalidAmount,
    PrizeExpired,
    PrizeNotClaimable,
    RaffleNotOpen,
    RewardsError,
    WinnerNotFound,
)
from services.rewards_service.models import (
    LedgerRefType,
    Raffle,
    RaffleMatchBudget,
    RaffleStatus,
    RaffleTicket,
    RaffleType,
    RaffleWinner,
    RewardsConfig,
    WinnerStatus,
)
from services.rewards_service.services.credit_ledger import post_entry
from services.rewards_service.services.fixed_point import CREDIT_MICRO, format_micro
from services.rewards_service.services.notifications import NotificationSink
from services.rewards_service.services.raffle_draw import RandBelow, draw_winners, split_prizes
from services.rewards_service.services.week_keys import (
    next_week_key,
    previous_week_key,
    week_bounds,
    week_key as current_week_key,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

RAFFLE_LOCK_NAME = "raffle-weekly"
TICKET_PRICE_MICRO = CREDIT_MICRO

_PLACE_LABELS = {1: "1st", 2: "2nd", 3: "3rd"}


@dataclass
class RaffleRunResult:
    week_key: str
    status: RaffleStatus
    drawn_now: bool = False
    recovered_week_key: Optional[str] = None
    recovered_winners: list[dict[str, Any]] = field(default_factory=list)
    rollover_micro: int = 0
    match_micro: int = 0
    winners: list[dict[str, Any]] = field(default_factory=list)

    def summary(self, include_details: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "week_key": self.week_key,
            "status": self.status.value,
            "drawn_now": self.drawn_now,
            "recovered_week_key": self.recovered_week_key,
            "rollover_micro": self.rollover_micro,
            "match_micro": self.match_micro,
            "winner_count": len(self.winners),
        }
        if include_details:
            data["winners"] = list(self.winners)
            data["recovered_winners"] = list(self.recovered_winners)
        return data


# ---------------------------------------------------------------------------
# Raffle rows
# ---------------------------------------------------------------------------


async def get_raffle(
    db: AsyncSession, week_key: str, *, for_update: bool = False
) -> Optional[Raffle]:
    stmt = select(Raffle).where(Raffle.week_key == week_key, Raffle.type == RaffleType.CREDITS)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def ensure_raffle(db: AsyncSession, week_key: str) -> Raffle:
    """Idempotently create the raffle for a week."""
    raffle = await get_raffle(db, week_key)
    if raffle is not None:
        return raffle

    opens_at, closes_at = week_bounds(week_key)
    raffle = Raffle(
        week_key=week_key,
        type=RaffleType.CREDITS,
        status=RaffleStatus.OPEN,
        opens_at=opens_at,
        closes_at=closes_at,
    )
    db.add(raffle)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raffle = await get_raffle(db, week_key)
        if raffle is None:
            raise
        return raffle
    logger.info("Created raffle for week %s (closes %s)", week_key, closes_at.isoformat())
    return raffle


async def _ticket_weights(db: AsyncSession, raffle_id: uuid.UUID) -> dict[str, int]:
    result = await db.execute(
        select(RaffleTicket.user_id, func.sum(RaffleTicket.quantity))
        .where(RaffleTicket.raffle_id == raffle_id)
        .group_by(RaffleTicket.user_id)
    )
    return {user_id: int(total) for user_id, total in result}


async def list_winners(db: AsyncSession, raffle_id: uuid.UUID) -> list[RaffleWinner]:
    result = await db.execute(
        select(RaffleWinner)
        .where(RaffleWinner.raffle_id == raffle_id)
        .order_by(RaffleWinner.place)
    )
    return list(result.scalars())


@dataclass
class RaffleState:
    raffle: Raffle
    tickets: dict[str, int]
    winners: list[RaffleWinner]

    @property
    def ticket_total(self) -> int:
        return sum(self.tickets.values())


async def get_raffle_state(db: AsyncSession, week_key: str) -> Optional[RaffleState]:
    """The raffle for a week with per-user ticket totals and winners, or None."""
    raffle = await get_raffle(db, week_key)
    if raffle is None:
        return None
    return RaffleState(
        raffle=raffle,
        tickets=await _ticket_weights(db, raffle.id),
        winners=await list_winners(db, raffle.id),
    )


def _winner_detail(winner: RaffleWinner) -> dict[str, Any]:
    return {
        "id": str(winner.id),
        "user_id": winner.user_id,
        "place": winner.place,
        "prize_micro": winner.prize_micro,
        "status": winner.status.value,
        "expires_at": winner.expires_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# Close, match, draw
# ---------------------------------------------------------------------------


async def close_and_match(
    db: AsyncSession, week_key: str, *, match_cap_micro: int
) -> int:
    """Close an OPEN raffle and match its user pool up to the weekly cap.

    The status change and the budget increment commit together. Returns the
    match applied (0 when the raffle was not OPEN).
    """
    raffle = await get_raffle(db, week_key, for_update=True)
    if raffle is None or raffle.status != RaffleStatus.OPEN:
        await db.rollback()
        return 0

    result = await db.execute(
        select(RaffleMatchBudget)
        .where(RaffleMatchBudget.week_key == week_key)
        .with_for_update()
    )
    budget = result.scalar_one_or_none()
    if budget is None:
        budget = RaffleMatchBudget(
            week_key=week_key, match_cap_micro=match_cap_micro, matched_micro=0
        )
        db.add(budget)

    # A cap of 0 means match everything
    if budget.match_cap_micro == 0:
        match = raffle.user_pool_micro
    else:
        match = max(0, min(raffle.user_pool_micro, budget.match_cap_micro - budget.matched_micro))

    raffle.status = RaffleStatus.CLOSED
    raffle.match_pool_micro = match
    budget.matched_micro += match
    await db.commit()

    logger.info(
        "Closed raffle %s: user pool %s, match %s, rollover %s",
        week_key,
        format_micro(raffle.user_pool_micro),
        format_micro(match),
        format_micro(raffle.rollover_micro),
    )
    return match


async def draw_raffle(
    db: AsyncSession,
    week_key: str,
    *,
    notifier: NotificationSink,
    now: datetime,
    randbelow: Optional[RandBelow] = None,
) -> list[dict[str, Any]]:
    """Draw a CLOSED raffle, persist winners and mark it DRAWN, then notify.

    Winners get until the next week's close to claim.
    """
    next_raffle = await ensure_raffle(db, next_week_key(week_key))
    expires_at = next_raffle.closes_at

    raffle = await get_raffle(db, week_key, for_update=True)
    if raffle is None or raffle.status != RaffleStatus.CLOSED:
        await db.rollback()
        return []

    weights = await _ticket_weights(db, raffle.id)
    drawn = draw_winners(weights, randbelow=randbelow)
    total_pool = raffle.total_pool_micro
    prizes = split_prizes(total_pool, len(drawn))

    winners = [
        RaffleWinner(
            raffle_id=raffle.id,
            user_id=user_id,
            place=place,
            prize_micro=prize,
            status=WinnerStatus.PENDING,
            expires_at=expires_at,
        )
        for place, (user_id, prize) in enumerate(zip(drawn, prizes), start=1)
    ]
    db.add_all(winners)
    raffle.status = RaffleStatus.DRAWN
    raffle.drawn_at = now
    await db.commit()

    details = [_winner_detail(winner) for winner in winners]
    logger.info(
        "Drew raffle %s: %d ticket holders, %d winners, pool %s",
        week_key,
        len(weights),
        len(details),
        format_micro(total_pool),
    )

    for detail in details:
        try:
            await notifier.notify(
                detail["user_id"],
                "You won the weekly raffle!",
                f"You placed {_PLACE_LABELS[detail['place']]} and won "
                f"{format_micro(detail['prize_micro'])} credits. "
                f"Claim before {detail['expires_at']}.",
            )
        except Exception:
            logger.exception("Failed to notify raffle winner %s", detail["user_id"])

    return details


async def rollover_expired(db: AsyncSession, *, from_week: str, into_week: str, now: datetime) -> int:
    """Expire the unclaimed prizes of ``from_week`` into ``into_week``'s rollover.

    Runs at most once per target raffle: nothing happens once its rollover is
    non-zero or it has already been drawn.
    """
    target = await get_raffle(db, into_week, for_update=True)
    source = await get_raffle(db, from_week)
    if (
        target is None
        or source is None
        or target.rollover_micro != 0
        or target.status == RaffleStatus.DRAWN
    ):
        await db.rollback()
        return 0

    result = await db.execute(
        select(RaffleWinner)
        .where(
            RaffleWinner.raffle_id == source.id,
            RaffleWinner.status == WinnerStatus.PENDING,
            RaffleWinner.expires_at <= now,
        )
        .with_for_update()
    )
    expired = list(result.scalars())
    total = sum(winner.prize_micro for winner in expired)
    if not expired:
        await db.rollback()
        return 0

    for winner in expired:
        winner.status = WinnerStatus.EXPIRED
    target.rollover_micro += total
    await db.commit()

    logger.info(
        "Rolled %d expired prizes (%s credits) from %s into %s",
        len(expired),
        format_micro(total),
        from_week,
        into_week,
    )
    return total


async def _settle(
    db: AsyncSession,
    week_key: str,
    *,
    match_cap_micro: int,
    notifier: NotificationSink,
    now: datetime,
    randbelow: Optional[RandBelow],
) -> tuple[int, int, list[dict[str, Any]]]:
    """Roll over the prior week's expired prizes, then close, match and draw."""
    rollover = await rollover_expired(
        db, from_week=previous_week_key(week_key), into_week=week_key, now=now
    )
    match = await close_and_match(db, week_key, match_cap_micro=match_cap_micro)
    winners = await draw_raffle(db, week_key, notifier=notifier, now=now, randbelow=randbelow)
    return rollover, match, winners


# ---------------------------------------------------------------------------
# Weekly cron
# ---------------------------------------------------------------------------


async def resolve_match_cap(db: AsyncSession) -> int:
    """Weekly match cap from the admin config row, else settings (0 = uncapped)."""
    result = await db.execute(
        select(RewardsConfig.raffle_match_cap_micro).order_by(RewardsConfig.id).limit(1)
    )
    cap = result.scalar_one_or_none()
    return cap if cap is not None else get_settings().RAFFLE_MATCH_CAP_MICRO


async def run_weekly(
    db: AsyncSession,
    *,
    notifier: NotificationSink,
    match_cap_micro: Optional[int] = None,
    lock: Optional[OperationLock] = None,
    now: Optional[datetime] = None,
    randbelow: Optional[RandBelow] = None,
) -> RaffleRunResult:
    """Advance the weekly raffle as far as the clock allows.

    1. Ensure this week's and next week's raffles exist
    2. Recover a previous raffle left undrawn past its close
    3. Roll the previous raffle's expired prizes into this one (once)
    4. Still open → report OPEN; already drawn → report DRAWN
    5. Otherwise close + match, draw, notify

    Every raffle settled in 2 or 5 first takes in the expired prizes of the
    week before it, so a cron firing on Monday still feeds the rollover.
    ``match_cap_micro`` defaults to :func:`resolve_match_cap`, read under the lock.
    """
    lock = lock or get_operation_lock(RAFFLE_LOCK_NAME)
    now = ensure_utc(now or utc_now())

    async with lock.hold():
        if match_cap_micro is None:
            match_cap_micro = await resolve_match_cap(db)

        week = current_week_key(now)
        previous = previous_week_key(week)

        await ensure_raffle(db, week)
        await ensure_raffle(db, next_week_key(week))

        result = RaffleRunResult(week_key=week, status=RaffleStatus.OPEN)

        prior = await get_raffle(db, previous)
        if (
            prior is not None
            and prior.status in (RaffleStatus.OPEN, RaffleStatus.CLOSED)
            and prior.closes_at <= now
        ):
            logger.warning("Raffle %s was not drawn on time, recovering", previous)
            rolled, _, result.recovered_winners = await _settle(
                db,
                previous,
                match_cap_micro=match_cap_micro,
                notifier=notifier,
                now=now,
                randbelow=randbelow,
            )
            result.rollover_micro += rolled
            result.recovered_week_key = previous

        result.rollover_micro += await rollover_expired(
            db, from_week=previous, into_week=week, now=now
        )

        current = await get_raffle(db, week)
        if current.closes_at > now:
            result.status = RaffleStatus.OPEN
            await db.rollback()
            return result
        if current.status == RaffleStatus.DRAWN:
            result.status = RaffleStatus.DRAWN
            result.winners = [_winner_detail(w) for w in await list_winners(db, current.id)]
            await db.rollback()
            return result

        rolled, result.match_micro, result.winners = await _settle(
            db,
            week,
            match_cap_micro=match_cap_micro,
            notifier=notifier,
            now=now,
            randbelow=randbelow,
        )
        result.rollover_micro += rolled
        result.status = RaffleStatus.DRAWN
        result.drawn_now = True
        return result


# ---------------------------------------------------------------------------
# Tickets and claims
# ---------------------------------------------------------------------------


async def buy_tickets(
    db: AsyncSession,
    *,
    user_id: str,
    quantity: int,
    idempotency_key: str,
    now: Optional[datetime] = None,
) -> RaffleTicket:
    """Buy tickets in this week's raffle at one credit each.

    The credit debit, the ticket row and the pool increment commit together.
    Replaying the same idempotency key returns the original purchase.
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidAmount("quantity must be a positive integer")
    now = ensure_utc(now or utc_now())
    purchase_ref = f"{user_id}:{idempotency_key}"

    existing = await _find_ticket(db, purchase_ref)
    if existing is not None:
        return existing

    week = current_week_key(now)
    await ensure_raffle(db, week)
    raffle = await get_raffle(db, week, for_update=True)
    if raffle.status != RaffleStatus.OPEN or raffle.closes_at <= now:
        await db.rollback()
        raise RaffleNotOpen(f"Raffle {week} is not accepting tickets")

    cost = quantity * TICKET_PRICE_MICRO
    try:
        await post_entry(
            db,
            user_id=user_id,
            amount_micro=-cost,
            reason=f"{quantity} raffle ticket(s) for week {week}",
            ref_type=LedgerRefType.RAFFLE_TICKET,
            ref_id=purchase_ref,
            week_key=week,
            commit=False,
        )
    except RewardsError:
        await db.rollback()
        raise

    ticket = RaffleTicket(
        raffle_id=raffle.id,
        user_id=user_id,
        quantity=quantity,
        purchase_ref=purchase_ref,
    )
    db.add(ticket)
    raffle.user_pool_micro += cost

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await _find_ticket(db, purchase_ref)
        if existing is None:
            raise
        return existing

    logger.info("User %s bought %d tickets for raffle %s", user_id, quantity, week)
    return ticket


async def _find_ticket(db: AsyncSession, purchase_ref: str) -> Optional[RaffleTicket]:
    result = await db.execute(
        select(RaffleTicket).where(RaffleTicket.purchase_ref == purchase_ref)
    )
    return result.scalar_one_or_none()


async def claim_prize(
    db: AsyncSession,
    *,
    winner_id: uuid.UUID,
    user_id: str,
    now: Optional[datetime] = None,
) -> RaffleWinner:
    """PENDING → CLAIMED exactly once, crediting the prize in the same transaction."""
    now = ensure_utc(now or utc_now())
    result = await db.execute(
        select(RaffleWinner)
        .where(RaffleWinner.id == winner_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    winner = result.scalar_one_or_none()
    if winner is None or winner.user_id != user_id:
        await db.rollback()
        raise WinnerNotFound(f"No raffle win {winner_id} for this user")
    status, expires_at = winner.status, winner.expires_at
    if status == WinnerStatus.EXPIRED or (status == WinnerStatus.PENDING and expires_at < now):
        await db.rollback()
        raise PrizeExpired(f"Prize {winner_id} expired at {expires_at.isoformat()}")
    if status != WinnerStatus.PENDING:
        await db.rollback()
        raise PrizeNotClaimable(f"Prize {winner_id} is already {status.value}")

    if winner.prize_micro > 0:
        await post_entry(
            db,
            user_id=user_id,
            amount_micro=winner.prize_micro,
            reason=f"Raffle prize (place {winner.place})",
            ref_type=LedgerRefType.RAFFLE_PRIZE,
            ref_id=str(winner.id),
            commit=False,
        )
    winner.status = WinnerStatus.CLAIMED
    winner.claimed_at = now
    await db.commit()

    logger.info(
        "User %s claimed raffle prize %s (%s credits)",
        user_id,
        winner.id,
        format_micro(winner.prize_micro),
    )
    return winner
