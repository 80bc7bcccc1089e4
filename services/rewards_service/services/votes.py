"""Comment voting with a single flip allowed inside a short window.

Per (comment, voter) a vote moves NoVote → Voted → Flipped and Flipped is
terminal. The lock decision is the pure :func:`decide`; :func:`cast_vote`
applies it, keeping the vote row and the comment counters in one
transaction, then feeds the reward stats best-effort.
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

from libs.common.datetime_utils import ensure_utc, utc_now
from libs.common.logging import get_logger
from services.rewards_service.errors import (
    CommentNotFound,
    NotModerator,
    VoteRejected,
)
from services.rewards_service.models import (
    Comment,
    CommentMemberVote,
    CommentModVote,
    LedgerRefType,
    Member,
    MemberRole,
)
from services.rewards_service.services import stats
from services.rewards_service.services.credit_ledger import post_entry
from services.rewards_service.services.week_keys import week_key
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MEMBER_LIKE_WEIGHT = 5
MODERATOR_LIKE_WEIGHT = 15
DISLIKE_WEIGHT = -1

DEFAULT_FLIP_WINDOW = timedelta(seconds=60)


class VoteAction(str, enum.Enum):
    CREATE = "create"
    NOOP = "noop"
    FLIP = "flip"
    REJECT = "reject"


class StoredVote(Protocol):
    value: int
    flip_count: int
    created_at: datetime


@dataclass(frozen=True)
class VoteDecision:
    action: VoteAction
    delta: int = 0
    locked: bool = False
    reason: Optional[str] = None


@dataclass(frozen=True)
class VoteResult:
    comment_id: uuid.UUID
    value: int
    score: int
    flip_count: int
    locked: bool
    action: VoteAction
    delta: int


def vote_weight(value: int, *, moderator: bool) -> int:
    if value == 1:
        return MODERATOR_LIKE_WEIGHT if moderator else MEMBER_LIKE_WEIGHT
    if value == -1:
        return DISLIKE_WEIGHT
    raise ValueError(f"vote value must be 1 or -1, got {value}")


def is_locked(vote: StoredVote, now: datetime, flip_window: timedelta) -> bool:
    return vote.flip_count >= 1 or ensure_utc(now) - ensure_utc(vote.created_at) > flip_window


def decide(
    existing: Optional[StoredVote],
    value: int,
    *,
    moderator: bool,
    now: datetime,
    flip_window: timedelta = DEFAULT_FLIP_WINDOW,
) -> VoteDecision:
    new_weight = vote_weight(value, moderator=moderator)

    if existing is None:
        return VoteDecision(VoteAction.CREATE, delta=new_weight)

    if existing.value == value:
        return VoteDecision(VoteAction.NOOP, locked=is_locked(existing, now, flip_window))

    # Window is checked first: an expired vote reports the window even if the flip is spent
    if ensure_utc(now) - ensure_utc(existing.created_at) > flip_window:
        return VoteDecision(VoteAction.REJECT, locked=True, reason=VoteRejected.WINDOW_EXPIRED)
    if existing.flip_count >= 1:
        return VoteDecision(
            VoteAction.REJECT, locked=True, reason=VoteRejected.FLIP_ALREADY_USED
        )

    old_weight = vote_weight(existing.value, moderator=moderator)
    return VoteDecision(VoteAction.FLIP, delta=new_weight - old_weight, locked=True)


def _counter_columns(moderator: bool) -> tuple[str, str]:
    return ("mod_likes", "mod_dislikes") if moderator else ("member_likes", "member_dislikes")


def _counter_changes(
    value: int, previous: Optional[int], *, moderator: bool
) -> dict[str, int]:
    likes_col, dislikes_col = _counter_columns(moderator)
    changes = {likes_col: 0, dislikes_col: 0}
    changes[likes_col if value == 1 else dislikes_col] += 1
    if previous is not None:
        changes[likes_col if previous == 1 else dislikes_col] -= 1
    return {col: n for col, n in changes.items() if n}


async def _apply_comment_delta(
    db: AsyncSession, comment_id: uuid.UUID, delta: int, counters: dict[str, int]
) -> None:
    values = {"score": Comment.score + delta}
    for col, n in counters.items():
        values[col] = getattr(Comment, col) + n
    await db.execute(
        update(Comment)
        .where(Comment.id == comment_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )


async def cast_vote(
    db: AsyncSession,
    *,
    comment_id: uuid.UUID,
    voter_id: str,
    value: int,
    as_moderator: bool = False,
    now: Optional[datetime] = None,
    flip_window: timedelta = DEFAULT_FLIP_WINDOW,
    vote_credit_micro: int = 0,
    _retry: bool = True,
) -> VoteResult:
    now = now or utc_now()
    vote_weight(value, moderator=as_moderator)

    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        raise CommentNotFound(f"Comment {comment_id} not found")
    author_id = comment.author_id
    if author_id == voter_id:
        raise VoteRejected(VoteRejected.OWN_COMMENT)

    if as_moderator:
        result = await db.execute(select(Member.role).where(Member.user_id == voter_id))
        role = result.scalar_one_or_none()
        if role not in (MemberRole.MODERATOR, MemberRole.ADMIN):
            raise NotModerator("Moderator or admin role required")

    vote_model = CommentModVote if as_moderator else CommentMemberVote
    result = await db.execute(
        select(vote_model)
        .where(vote_model.comment_id == comment_id, vote_model.voter_id == voter_id)
        .with_for_update()
    )
    existing = result.scalar_one_or_none()
    previous_value = existing.value if existing else None

    decision = decide(existing, value, moderator=as_moderator, now=now, flip_window=flip_window)

    if decision.action == VoteAction.REJECT:
        await db.rollback()
        raise VoteRejected(decision.reason)

    if decision.action == VoteAction.NOOP:
        flip_count = existing.flip_count
        await db.rollback()
        return VoteResult(
            comment_id=comment_id,
            value=value,
            score=await _current_score(db, comment_id),
            flip_count=flip_count,
            locked=decision.locked,
            action=decision.action,
            delta=0,
        )

    if decision.action == VoteAction.CREATE:
        vote = vote_model(
            comment_id=comment_id,
            voter_id=voter_id,
            value=value,
            flip_count=0,
            created_at=now,
            last_changed_at=now,
        )
        db.add(vote)
    else:
        vote = existing
        vote.value = value
        vote.flip_count = 1
        vote.last_changed_at = now

    await _apply_comment_delta(
        db,
        comment_id,
        decision.delta,
        _counter_changes(value, previous_value, moderator=as_moderator),
    )

    try:
        await db.commit()
    except IntegrityError:
        # A concurrent first vote won the insert; replay against it once
        await db.rollback()
        if not _retry:
            raise
        return await cast_vote(
            db,
            comment_id=comment_id,
            voter_id=voter_id,
            value=value,
            as_moderator=as_moderator,
            now=now,
            flip_window=flip_window,
            vote_credit_micro=vote_credit_micro,
            _retry=False,
        )

    # Snapshot before side effects; a failed side effect rolls back and expires the row
    flip_count = vote.flip_count
    locked = is_locked(vote, now, flip_window)
    logger.info(
        "Vote %s on comment %s by %s (%+d), delta %+d",
        decision.action.value,
        comment_id,
        voter_id,
        value,
        decision.delta,
    )

    await _record_side_effects(
        db,
        action=decision.action,
        comment_id=comment_id,
        author_id=author_id,
        voter_id=voter_id,
        value=value,
        delta=decision.delta,
        week=week_key(now),
        vote_credit_micro=vote_credit_micro,
    )

    return VoteResult(
        comment_id=comment_id,
        value=value,
        score=await _current_score(db, comment_id),
        flip_count=flip_count,
        locked=locked,
        action=decision.action,
        delta=decision.delta,
    )


async def _current_score(db: AsyncSession, comment_id: uuid.UUID) -> int:
    result = await db.execute(select(Comment.score).where(Comment.id == comment_id))
    return result.scalar_one()


async def _record_side_effects(
    db: AsyncSession,
    *,
    action: VoteAction,
    comment_id: uuid.UUID,
    author_id: str,
    voter_id: str,
    value: int,
    delta: int,
    week: str,
    vote_credit_micro: int,
) -> None:
    """Secondary bookkeeping after the vote has committed. Never raises."""
    await stats.best_effort(
        db,
        f"score stats for comment {comment_id}",
        stats.record_score_received(db, author_id=author_id, delta=delta, week=week),
    )
    if value == 1:
        await stats.best_effort(
            db,
            f"like-received entry for comment {comment_id}",
            stats.record_like_received(
                db, author_id=author_id, comment_id=comment_id, voter_id=voter_id, week=week
            ),
        )

    if action != VoteAction.CREATE:
        return

    await stats.best_effort(
        db,
        f"voter activity for {voter_id}",
        stats.record_vote_cast(db, voter_id=voter_id, week=week),
    )
    if vote_credit_micro > 0:
        await stats.best_effort(
            db,
            f"vote credit for {voter_id} on {comment_id}",
            post_entry(
                db,
                user_id=voter_id,
                amount_micro=vote_credit_micro,
                reason="Voted on a comment",
                ref_type=LedgerRefType.VOTE_CREDIT,
                ref_id=f"vote_credit_{voter_id}_{comment_id}",
                week_key=week,
            ),
        )
