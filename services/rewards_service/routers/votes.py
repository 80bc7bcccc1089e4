"""Comment vote endpoints for members and moderators."""

import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, Request
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.rate_limit import vote_limit
from libs.db.session import get_async_db
from services.rewards_service.schemas import VoteRequest, VoteResponse
from services.rewards_service.services.votes import VoteResult, cast_vote
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["votes"])


def _to_response(result: VoteResult) -> VoteResponse:
    return VoteResponse(
        comment_id=result.comment_id,
        value=result.value,
        score=result.score,
        flip_count=result.flip_count,
        locked=result.locked,
        action=result.action,
    )


@router.post("/comments/{comment_id}/vote", response_model=VoteResponse)
@vote_limit
async def vote_on_comment(
    request: Request,
    comment_id: uuid.UUID,
    body: VoteRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Like (+1) or dislike (-1) a comment. One change of mind within the flip window."""
    settings = get_settings()
    result = await cast_vote(
        db,
        comment_id=comment_id,
        voter_id=current_user.user_id,
        value=body.value,
        flip_window=timedelta(seconds=settings.VOTE_FLIP_WINDOW_SECONDS),
        vote_credit_micro=settings.VOTE_CREDIT_MICRO,
    )
    return _to_response(result)


@router.post("/mod/comments/{comment_id}/vote", response_model=VoteResponse)
@vote_limit
async def moderator_vote_on_comment(
    request: Request,
    comment_id: uuid.UUID,
    body: VoteRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Moderator vote. Likes carry the moderator weight."""
    settings = get_settings()
    result = await cast_vote(
        db,
        comment_id=comment_id,
        voter_id=current_user.user_id,
        value=body.value,
        as_moderator=True,
        flip_window=timedelta(seconds=settings.VOTE_FLIP_WINDOW_SECONDS),
    )
    return _to_response(result)
