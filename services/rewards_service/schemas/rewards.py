"""Weekly token reward proof and claim schemas."""

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict
from services.rewards_service.models.enums import RewardEventStatus, RewardPoolType


class RewardEventResponse(BaseModel):
    id: uuid.UUID
    type: RewardPoolType
    amount: int
    ref_id: str
    status: RewardEventStatus

    model_config = ConfigDict(from_attributes=True)


class RewardProofResponse(BaseModel):
    week_key: str
    user_id: str
    wallet_address: str
    merkle_index: int
    amount: int
    merkle_root: str
    proof: list[str]
    events: list[RewardEventResponse]


class RewardClaimResponse(BaseModel):
    week_key: str
    claimed: int
    already_claimed: bool


class RewardBatchResponse(BaseModel):
    id: uuid.UUID
    week_key: str
    week_index: int
    merkle_root: Optional[str] = None
    total_amount: int
    total_users: int

    model_config = ConfigDict(from_attributes=True)
