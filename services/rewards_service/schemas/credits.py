"""Special-credit balance and ledger schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from services.rewards_service.models.enums import LedgerRefType


class CreditBalanceResponse(BaseModel):
    user_id: str
    balance_micro: int
    balance: str
    tier: int


class LedgerEntryResponse(BaseModel):
    id: uuid.UUID
    amount_micro: int
    balance_after_micro: int
    reason: str
    ref_type: LedgerRefType
    ref_id: str
    week_key: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerEntryListResponse(BaseModel):
    entries: list[LedgerEntryResponse]
    total: int
    skip: int
    limit: int
