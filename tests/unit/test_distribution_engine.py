"""Unit tests for the weekly reward distribution and its claim-side reads."""

import pytest
from services.rewards_service.errors import BatchAlreadyProcessed, RewardNotFound
from services.rewards_service.models import (
    RewardBatch,
    RewardEvent,
    RewardEventStatus,
    RewardPoolType,
)
from services.rewards_service.services import merkle
from services.rewards_service.services.claims import (
    get_reward_proof,
    mark_rewards_claimed,
    mark_rewards_paid,
)
from services.rewards_service.services.distribution import (
    DistributionConfig,
    distribute_week,
    pool_totals,
)
from services.rewards_service.services.fixed_point import TOKEN_MICRO
from services.rewards_service.services.tiers import DEFAULT_EMISSION_SCHEDULE
from sqlalchemy import select
from tests.factories import (
    MemberFactory,
    MonthlyUserStatFactory,
    PremiumMemberFactory,
    WeeklyUserStatFactory,
    WeeklyVoterStatFactory,
)

WEEK = "2026-01-11"

# One token keeps the pool arithmetic readable:
# likes 750_000 (weekly 525_000, all-time 150_000, voter 75_000), mvm 200_000, comments 50_000
CONFIG = DistributionConfig(all_time_bps=2_000, voter_bps=1_000, emission_override_micro=TOKEN_MICRO)


async def _seed_week(db):
    """Two premium holders, one free holder and a premium member without a wallet."""
    db.add_all(
        [
            PremiumMemberFactory.create(user_id="u-p1", wallet_address="WalletP1"),
            PremiumMemberFactory.create(user_id="u-p2", wallet_address="WalletP2"),
            MemberFactory.create(user_id="u-f1", wallet_address="WalletF1"),
            PremiumMemberFactory.create(user_id="u-p3", wallet_address=None),
            WeeklyUserStatFactory.create(user_id="u-p1", score_received=10, comments_posted=1),
            WeeklyUserStatFactory.create(user_id="u-p2", score_received=5),
            WeeklyUserStatFactory.create(user_id="u-f1", score_received=20, comments_posted=3),
            WeeklyUserStatFactory.create(user_id="u-p3", score_received=50),
            WeeklyVoterStatFactory.create(user_id="u-f1", votes_cast=4),
            WeeklyVoterStatFactory.create(user_id="u-p3", votes_cast=10),
        ]
    )
    await db.commit()


async def _distribute(db, config=CONFIG):
    return await distribute_week(
        db,
        week_key=WEEK,
        week_index=1,
        schedule=DEFAULT_EMISSION_SCHEDULE,
        config=config,
    )


# ---------------------------------------------------------------------------
# distribute_week
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_pools_respect_eligibility(db_session):
    """Score and comment pools need premium plus a wallet; the voter pool only a wallet."""
    await _seed_week(db_session)

    report = await _distribute(db_session)

    by_user = {p.user_id: p for p in report.payouts}
    assert set(by_user) == {"u-f1", "u-p1", "u-p2"}

    # weekly: base 420_000 split 10:5, ladder 105_000 at 20% and 12%
    assert by_user["u-p1"].amounts[RewardPoolType.WEEKLY_SCORE] == 280_000 + 21_000
    assert by_user["u-p2"].amounts[RewardPoolType.WEEKLY_SCORE] == 140_000 + 12_600
    assert by_user["u-p1"].amounts[RewardPoolType.COMMENTS] == 50_000
    assert by_user["u-f1"].amounts == {RewardPoolType.VOTER: 75_000}

    assert report.pools["mvm"] == {"allocated": 200_000, "paid": 0, "users": 0}
    assert report.pools["alltime_score"]["paid"] == 0
    assert report.total_amount == 351_000 + 152_600 + 75_000
    for pool in report.pools.values():
        assert pool["paid"] <= pool["allocated"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_leaves_are_indexed_by_user_id_and_proofs_verify(db_session):
    await _seed_week(db_session)

    report = await _distribute(db_session)

    assert [p.user_id for p in report.payouts] == ["u-f1", "u-p1", "u-p2"]
    assert [p.index for p in report.payouts] == [0, 1, 2]
    root = merkle.from_hex(report.merkle_root)
    for payout in report.payouts:
        leaf = merkle.leaf_hash(payout.index, payout.wallet, payout.total)
        proof = [merkle.from_hex(node) for node in payout.proof]
        assert merkle.verify_proof(leaf, proof, root)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_one_event_per_user_and_pool(db_session):
    await _seed_week(db_session)

    report = await _distribute(db_session)

    batch = (
        await db_session.execute(select(RewardBatch).where(RewardBatch.week_key == WEEK))
    ).scalar_one()
    assert batch.merkle_root == report.merkle_root
    assert batch.total_users == 3
    assert batch.total_amount == report.total_amount

    events = (
        await db_session.execute(select(RewardEvent).where(RewardEvent.batch_id == batch.id))
    ).scalars().all()
    assert sorted(e.ref_id for e in events) == [
        f"{WEEK}:u-f1:voter",
        f"{WEEK}:u-p1:comments",
        f"{WEEK}:u-p1:weekly_score",
        f"{WEEK}:u-p2:weekly_score",
    ]
    assert all(e.status == RewardEventStatus.PENDING for e in events)
    assert await pool_totals(db_session, batch.id) == {
        "weekly_score": 301_000 + 152_600,
        "comments": 50_000,
        "voter": 75_000,
    }


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mvm_pool_pays_when_points_exist(db_session):
    await _seed_week(db_session)
    db_session.add(MonthlyUserStatFactory.create(user_id="u-p2", month_key="2026-01", mvm_points=7))
    await db_session.commit()

    report = await _distribute(db_session)

    by_user = {p.user_id: p for p in report.payouts}
    # base 160_000 to the only entrant plus 20% of the 40_000 ladder
    assert by_user["u-p2"].amounts[RewardPoolType.MVM] == 168_000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_week_is_processed_once(db_session):
    await _seed_week(db_session)
    await _distribute(db_session)

    with pytest.raises(BatchAlreadyProcessed):
        await _distribute(db_session)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_empty_week_stores_batch_without_root(db_session):
    report = await _distribute(db_session)

    assert report.merkle_root is None
    assert report.total_users == 0
    batch = (
        await db_session.execute(select(RewardBatch).where(RewardBatch.week_key == WEEK))
    ).scalar_one()
    assert batch.merkle_root is None

    with pytest.raises(RewardNotFound):
        await get_reward_proof(db_session, week_key=WEEK, user_id="u-p1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_schedule_emission_used_without_override(db_session):
    config = DistributionConfig(all_time_bps=2_000, voter_bps=1_000)

    report = await _distribute(db_session, config=config)

    assert report.emission == 666_667 * TOKEN_MICRO
    assert report.summary()["pools"]["comments"]["allocated"] == (
        report.emission - report.pools["weekly_score"]["allocated"]
        - report.pools["alltime_score"]["allocated"]
        - report.pools["voter"]["allocated"]
        - report.pools["mvm"]["allocated"]
    )


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reward_proof_aggregates_user_events(db_session):
    await _seed_week(db_session)
    report = await _distribute(db_session)

    proof = await get_reward_proof(db_session, week_key=WEEK, user_id="u-p1")

    assert proof.amount == 351_000
    assert proof.merkle_index == 1
    assert proof.wallet_address == "WalletP1"
    assert proof.merkle_root == report.merkle_root
    assert len(proof.events) == 2
    assert merkle.verify_proof(
        merkle.leaf_hash(proof.merkle_index, proof.wallet_address, proof.amount),
        [merkle.from_hex(node) for node in proof.proof],
        merkle.from_hex(proof.merkle_root),
    )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reward_proof_for_unpaid_user(db_session):
    await _seed_week(db_session)
    await _distribute(db_session)

    with pytest.raises(RewardNotFound):
        await get_reward_proof(db_session, week_key=WEEK, user_id="u-p3")
    with pytest.raises(RewardNotFound):
        await get_reward_proof(db_session, week_key="2026-01-18", user_id="u-p1")


@pytest.mark.asyncio
@pytest.mark.unit
async def test_paid_then_claimed_transitions(db_session):
    """PENDING → PAID for the batch, then PAID → CLAIMED for one user, once."""
    await _seed_week(db_session)
    await _distribute(db_session)

    assert await mark_rewards_paid(db_session, week_key=WEEK) == 4
    assert await mark_rewards_paid(db_session, week_key=WEEK) == 0

    assert await mark_rewards_claimed(db_session, week_key=WEEK, user_id="u-p1") == 2
    assert await mark_rewards_claimed(db_session, week_key=WEEK, user_id="u-p1") == 0

    statuses = (
        await db_session.execute(
            select(RewardEvent.user_id, RewardEvent.status).order_by(RewardEvent.ref_id)
        )
    ).all()
    assert {(user, status) for user, status in statuses} == {
        ("u-f1", RewardEventStatus.PAID),
        ("u-p1", RewardEventStatus.CLAIMED),
        ("u-p2", RewardEventStatus.PAID),
    }

    with pytest.raises(RewardNotFound):
        await mark_rewards_claimed(db_session, week_key=WEEK, user_id="u-p3")
