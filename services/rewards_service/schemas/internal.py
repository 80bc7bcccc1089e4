"""Schemas for service-to-service sync endpoints."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.rewards_service.models.enums import (
    MemberRole,
    SubscriptionStatus,
    SubscriptionTier,
)


class MemberUpsertRequest(BaseModel):
    """Snapshot of a member pushed by the members service."""

    user_id: str = Field(..., min_length=1)
    wallet_address: Optional[str] = None
    role: MemberRole = MemberRole.MEMBER
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    subscription_status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    subscription_expires_at: Optional[datetime] = None


class MemberResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    wallet_address: Optional[str] = None
    role: MemberRole
    subscription_tier: SubscriptionTier
    subscription_status: SubscriptionStatus
    subscription_expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CommentCreateRequest(BaseModel):
    author_id: str = Field(..., min_length=1)
    body: str = ""
    comment_id: Optional[uuid.UUID] = None


class CommentResponse(BaseModel):
    id: uuid.UUID
    author_id: str
    score: int
    member_likes: int
    member_dislikes: int
    mod_likes: int
    mod_dislikes: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MvmPointsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    points: int = Field(..., gt=0)


class MvmPointsResponse(BaseModel):
    success: bool = True
    user_id: str
    points: int
