"""Unit tests for the vote state machine and cast_vote.

decide() is exercised directly; cast_vote runs against db_session.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from services.rewards_service.errors import CommentNotFound, NotModerator, VoteRejected
from services.rewards_service.models import (
    Comment,
    CreditLedgerEntry,
    LedgerRefType,
    MemberRole,
    WeeklyUserStat,
    WeeklyVoterStat,
)
from services.rewards_service.services.credit_ledger import get_balance
from services.rewards_service.services.votes import (
    VoteAction,
    cast_vote,
    decide,
    vote_weight,
)
from sqlalchemy import func, select
from tests.factories import CommentFactory, MemberFactory

# Wednesday 2026-01-07 10:00 in Los Angeles; week 2026-01-11
NOW = datetime(2026, 1, 7, 18, 0, tzinfo=timezone.utc)
WEEK = "2026-01-11"
WINDOW = timedelta(seconds=60)


@dataclass
class _Vote:
    value: int
    flip_count: int
    created_at: datetime


# ---------------------------------------------------------------------------
# decide
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_weights():
    assert vote_weight(1, moderator=False) == 5
    assert vote_weight(1, moderator=True) == 15
    assert vote_weight(-1, moderator=False) == -1
    assert vote_weight(-1, moderator=True) == -1
    with pytest.raises(ValueError):
        vote_weight(0, moderator=False)


@pytest.mark.unit
def test_first_vote_creates_with_full_weight():
    decision = decide(None, 1, moderator=False, now=NOW)
    assert decision.action == VoteAction.CREATE
    assert decision.delta == 5
    assert not decision.locked


@pytest.mark.unit
def test_flip_inside_window_moves_score_by_weight_difference():
    existing = _Vote(value=1, flip_count=0, created_at=NOW)
    decision = decide(existing, -1, moderator=False, now=NOW + timedelta(seconds=30))
    assert decision.action == VoteAction.FLIP
    assert decision.delta == -6
    assert decision.locked


@pytest.mark.unit
def test_same_value_is_noop_and_reports_lock_state():
    fresh = _Vote(value=1, flip_count=0, created_at=NOW)
    assert decide(fresh, 1, moderator=False, now=NOW).locked is False

    stale = _Vote(value=1, flip_count=0, created_at=NOW - timedelta(minutes=5))
    decision = decide(stale, 1, moderator=False, now=NOW)
    assert decision.action == VoteAction.NOOP
    assert decision.locked is True


@pytest.mark.unit
def test_second_flip_is_rejected():
    flipped = _Vote(value=-1, flip_count=1, created_at=NOW)
    decision = decide(flipped, 1, moderator=False, now=NOW + timedelta(seconds=10))
    assert decision.action == VoteAction.REJECT
    assert decision.reason == VoteRejected.FLIP_ALREADY_USED


@pytest.mark.unit
def test_expired_window_is_reported_before_spent_flip():
    flipped = _Vote(value=-1, flip_count=1, created_at=NOW)
    decision = decide(flipped, 1, moderator=False, now=NOW + WINDOW + timedelta(seconds=1))
    assert decision.reason == VoteRejected.WINDOW_EXPIRED


# ---------------------------------------------------------------------------
# cast_vote
# ---------------------------------------------------------------------------


async def _make_comment(db, **overrides) -> Comment:
    comment = CommentFactory.create(**overrides)
    db.add(comment)
    await db.commit()
    return comment


@pytest.mark.asyncio
@pytest.mark.unit
async def test_member_like_updates_score_and_stats(db_session):
    """A first like adds 5 to the comment and feeds author and voter stats."""
    comment = await _make_comment(db_session, author_id="author-1")

    result = await cast_vote(
        db_session, comment_id=comment.id, voter_id="voter-1", value=1, now=NOW
    )

    assert result.action == VoteAction.CREATE
    assert result.score == 5
    assert result.flip_count == 0
    assert result.locked is False

    await db_session.refresh(comment)
    assert comment.member_likes == 1
    assert comment.member_dislikes == 0

    stat = (
        await db_session.execute(
            select(WeeklyUserStat).where(
                WeeklyUserStat.week_key == WEEK, WeeklyUserStat.user_id == "author-1"
            )
        )
    ).scalar_one()
    assert stat.score_received == 5
    assert stat.likes_received == 1

    votes_cast = (
        await db_session.execute(
            select(WeeklyVoterStat.votes_cast).where(
                WeeklyVoterStat.week_key == WEEK, WeeklyVoterStat.user_id == "voter-1"
            )
        )
    ).scalar_one()
    assert votes_cast == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_flip_then_lock(db_session):
    """Like → dislike inside the window nets −6; a second change is rejected."""
    comment = await _make_comment(db_session)

    await cast_vote(db_session, comment_id=comment.id, voter_id="voter-1", value=1, now=NOW)
    flipped = await cast_vote(
        db_session,
        comment_id=comment.id,
        voter_id="voter-1",
        value=-1,
        now=NOW + timedelta(seconds=20),
    )

    assert flipped.action == VoteAction.FLIP
    assert flipped.delta == -6
    assert flipped.score == -1
    assert flipped.flip_count == 1
    assert flipped.locked is True

    with pytest.raises(VoteRejected) as exc:
        await cast_vote(
            db_session,
            comment_id=comment.id,
            voter_id="voter-1",
            value=1,
            now=NOW + timedelta(seconds=30),
        )
    assert exc.value.code == VoteRejected.FLIP_ALREADY_USED

    await db_session.refresh(comment)
    assert comment.score == -1
    assert comment.member_likes == 0
    assert comment.member_dislikes == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_flip_after_window_is_rejected(db_session):
    comment = await _make_comment(db_session)
    await cast_vote(db_session, comment_id=comment.id, voter_id="voter-1", value=1, now=NOW)

    with pytest.raises(VoteRejected) as exc:
        await cast_vote(
            db_session,
            comment_id=comment.id,
            voter_id="voter-1",
            value=-1,
            now=NOW + timedelta(seconds=61),
        )
    assert exc.value.code == VoteRejected.WINDOW_EXPIRED


@pytest.mark.asyncio
@pytest.mark.unit
async def test_vote_credit_is_paid_once(db_session):
    """Re-sending and flipping the vote never pays the voter a second time."""
    comment = await _make_comment(db_session)

    for value, offset in ((1, 0), (1, 5), (-1, 10)):
        await cast_vote(
            db_session,
            comment_id=comment.id,
            voter_id="voter-1",
            value=value,
            now=NOW + timedelta(seconds=offset),
            vote_credit_micro=100,
        )

    assert await get_balance(db_session, "voter-1") == 100
    count = (
        await db_session.execute(
            select(func.count()).select_from(CreditLedgerEntry).where(
                CreditLedgerEntry.ref_type == LedgerRefType.VOTE_CREDIT
            )
        )
    ).scalar_one()
    assert count == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_cannot_vote_on_own_comment(db_session):
    comment = await _make_comment(db_session, author_id="author-1")

    with pytest.raises(VoteRejected) as exc:
        await cast_vote(db_session, comment_id=comment.id, voter_id="author-1", value=1, now=NOW)
    assert exc.value.code == VoteRejected.OWN_COMMENT


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_comment(db_session):
    with pytest.raises(CommentNotFound):
        await cast_vote(db_session, comment_id=uuid.uuid4(), voter_id="voter-1", value=1, now=NOW)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_moderator_vote_requires_role(db_session):
    comment = await _make_comment(db_session)
    db_session.add(MemberFactory.create(user_id="plain-1"))
    await db_session.commit()

    with pytest.raises(NotModerator):
        await cast_vote(
            db_session, comment_id=comment.id, voter_id="plain-1", value=1, as_moderator=True, now=NOW
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_moderator_like_carries_moderator_weight(db_session):
    """Moderator votes are tracked separately from member votes on the same comment."""
    comment = await _make_comment(db_session)
    db_session.add(MemberFactory.create(user_id="mod-1", role=MemberRole.MODERATOR))
    await db_session.commit()

    await cast_vote(db_session, comment_id=comment.id, voter_id="mod-1", value=1, now=NOW)
    result = await cast_vote(
        db_session, comment_id=comment.id, voter_id="mod-1", value=1, as_moderator=True, now=NOW
    )

    assert result.action == VoteAction.CREATE
    assert result.score == 20
    await db_session.refresh(comment)
    assert comment.mod_likes == 1
    assert comment.member_likes == 1
