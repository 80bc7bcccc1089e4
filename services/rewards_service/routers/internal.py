"""Internal service-to-service rewards endpoints.

These endpoints are called by other services via service-role JWT,
not by frontend clients directly.
"""

from fastapi import APIRouter, Depends
from libs.auth.dependencies import require_service_role
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.rewards_service.schemas import (
    CommentCreateRequest,
    CommentResponse,
    MemberResponse,
    MemberUpsertRequest,
    MvmPointsRequest,
    MvmPointsResponse,
)
from services.rewards_service.services.claims import mark_rewards_paid
from services.rewards_service.services.community import register_comment, upsert_member
from services.rewards_service.services.stats import award_mvm_points
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/internal", tags=["internal-rewards"])


@router.post("/members", response_model=MemberResponse)
async def internal_upsert_member(
    body: MemberUpsertRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Sync a member's wallet, role and subscription standing."""
    return await upsert_member(db, **body.model_dump())


@router.post("/comments", response_model=CommentResponse)
async def internal_register_comment(
    body: CommentCreateRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Register a new comment so it can be voted on."""
    return await register_comment(
        db, author_id=body.author_id, body=body.body, comment_id=body.comment_id
    )


@router.post("/stats/mvm-points", response_model=MvmPointsResponse)
async def internal_award_mvm_points(
    body: MvmPointsRequest,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
):
    """Add MVM points to the user's current month."""
    await award_mvm_points(db, user_id=body.user_id, points=body.points)
    return MvmPointsResponse(user_id=body.user_id, points=body.points)


@router.post("/rewards/{week_key}/paid")
async def internal_mark_rewards_paid(
    week_key: str,
    _service: AuthUser = Depends(require_service_role),
    db: AsyncSession = Depends(get_async_db),
) -> dict:
    """Mark a week's pending reward events as paid once its root is published."""
    updated = await mark_rewards_paid(db, week_key=week_key)
    return {"success": True, "week_key": week_key, "updated": updated}
