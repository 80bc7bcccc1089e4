"""Member-facing credit balance and weekly raffle endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.rewards_service.errors import RaffleNotFound
from services.rewards_service.models import CreditLedgerEntry
from services.rewards_service.schemas import (
    CreditBalanceResponse,
    CurrentRaffleResponse,
    LedgerEntryListResponse,
    LedgerEntryResponse,
    PrizeClaimResponse,
    RaffleResponse,
    RaffleWinnerResponse,
    TicketPurchaseRequest,
    TicketPurchaseResponse,
)
from services.rewards_service.services.credit_ledger import get_account, get_balance
from services.rewards_service.services.fixed_point import format_micro
from services.rewards_service.services.raffle import (
    TICKET_PRICE_MICRO,
    RaffleState,
    buy_tickets,
    claim_prize,
    ensure_raffle,
    get_raffle_state,
)
from services.rewards_service.services.week_keys import week_key as current_week_key
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["raffles"])


@router.get("/credits/balance", response_model=CreditBalanceResponse)
async def get_credit_balance(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Current special-credit balance."""
    account = await get_account(db, current_user.user_id)
    balance = account.balance_micro if account else 0
    return CreditBalanceResponse(
        user_id=current_user.user_id,
        balance_micro=balance,
        balance=format_micro(balance),
        tier=account.tier if account else 0,
    )


@router.get("/credits/history", response_model=LedgerEntryListResponse)
async def get_credit_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Ledger entries, newest first."""
    base = select(CreditLedgerEntry).where(CreditLedgerEntry.user_id == current_user.user_id)
    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    result = await db.execute(
        base.order_by(desc(CreditLedgerEntry.created_at)).offset(skip).limit(limit)
    )
    return LedgerEntryListResponse(
        entries=[LedgerEntryResponse.model_validate(e) for e in result.scalars()],
        total=total or 0,
        skip=skip,
        limit=limit,
    )


def _state_response(state: RaffleState, user_id: str) -> CurrentRaffleResponse:
    return CurrentRaffleResponse(
        raffle=RaffleResponse.model_validate(state.raffle),
        my_tickets=state.tickets.get(user_id, 0),
        ticket_total=state.ticket_total,
        entrant_count=len(state.tickets),
        ticket_price_micro=TICKET_PRICE_MICRO,
        winners=[RaffleWinnerResponse.model_validate(w) for w in state.winners],
    )


@router.get("/raffles/current", response_model=CurrentRaffleResponse)
async def get_current_raffle(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """This week's raffle and the caller's ticket count."""
    week = current_week_key()
    await ensure_raffle(db, week)
    state = await get_raffle_state(db, week)
    return _state_response(state, current_user.user_id)


@router.get("/raffles/{week_key}", response_model=CurrentRaffleResponse)
async def get_raffle_for_week(
    week_key: str,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """A past or current raffle with its ticket totals and winners."""
    state = await get_raffle_state(db, week_key)
    if state is None:
        raise RaffleNotFound(f"No raffle for week {week_key}")
    return _state_response(state, current_user.user_id)


@router.post("/raffles/current/tickets", response_model=TicketPurchaseResponse)
async def purchase_tickets(
    body: TicketPurchaseRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Spend credits on tickets. Replaying an idempotency key returns the original purchase."""
    ticket = await buy_tickets(
        db,
        user_id=current_user.user_id,
        quantity=body.quantity,
        idempotency_key=body.idempotency_key,
    )
    return TicketPurchaseResponse(
        ticket_id=ticket.id,
        raffle_id=ticket.raffle_id,
        quantity=ticket.quantity,
        cost_micro=ticket.quantity * TICKET_PRICE_MICRO,
        balance_micro=await get_balance(db, current_user.user_id),
    )


@router.post("/raffles/winners/{winner_id}/claim", response_model=PrizeClaimResponse)
async def claim_raffle_prize(
    winner_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Claim a pending raffle prize into the credit balance."""
    winner = await claim_prize(db, winner_id=winner_id, user_id=current_user.user_id)
    return PrizeClaimResponse(
        winner=RaffleWinnerResponse.model_validate(winner),
        balance_micro=await get_balance(db, current_user.user_id),
    )
