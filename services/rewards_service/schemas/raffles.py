"""Raffle, ticket and winner schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.rewards_service.models.enums import RaffleStatus, WinnerStatus


class RaffleResponse(BaseModel):
    id: uuid.UUID
    week_key: str
    status: RaffleStatus
    user_pool_micro: int
    match_pool_micro: int
    rollover_micro: int
    total_pool_micro: int
    opens_at: datetime
    closes_at: datetime
    drawn_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TicketPurchaseRequest(BaseModel):
    quantity: int = Field(..., gt=0, le=10_000)
    idempotency_key: str = Field(..., min_length=1, max_length=128)


class TicketPurchaseResponse(BaseModel):
    ticket_id: uuid.UUID
    raffle_id: uuid.UUID
    quantity: int
    cost_micro: int
    balance_micro: int


class RaffleWinnerResponse(BaseModel):
    id: uuid.UUID
    raffle_id: uuid.UUID
    user_id: str
    place: int
    prize_micro: int
    status: WinnerStatus
    expires_at: datetime
    claimed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CurrentRaffleResponse(BaseModel):
    raffle: RaffleResponse
    my_tickets: int
    ticket_total: int
    entrant_count: int
    ticket_price_micro: int
    winners: list[RaffleWinnerResponse] = []


class PrizeClaimResponse(BaseModel):
    winner: RaffleWinnerResponse
    balance_micro: int
