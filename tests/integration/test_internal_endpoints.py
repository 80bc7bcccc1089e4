"""Integration tests for the service-to-service rewards endpoints."""

import uuid

import pytest
from services.rewards_service.models import MonthlyUserStat, WeeklyUserStat
from services.rewards_service.services.week_keys import month_key, week_key
from sqlalchemy import select
from tests.factories import PremiumMemberFactory, WeeklyUserStatFactory


@pytest.mark.asyncio
@pytest.mark.integration
async def test_internal_routes_require_service_role(rewards_client):
    """A regular member token is rejected with 403."""
    response = await rewards_client.post("/internal/members", json={"user_id": "member-1"})
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_upsert_member_creates_then_updates(rewards_client, acting):
    acting.as_service()

    created = await rewards_client.post(
        "/internal/members",
        json={"user_id": "member-7", "wallet_address": "WalletM7"},
    )
    assert created.status_code == 200, created.text
    assert created.json()["subscription_tier"] == "free"

    updated = await rewards_client.post(
        "/internal/members",
        json={
            "user_id": "member-7",
            "wallet_address": "WalletM7b",
            "role": "moderator",
            "subscription_tier": "premium",
        },
    )
    assert updated.status_code == 200, updated.text
    data = updated.json()
    assert data["id"] == created.json()["id"]
    assert data["wallet_address"] == "WalletM7b"
    assert data["role"] == "moderator"
    assert data["subscription_tier"] == "premium"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_register_comment_counts_once(rewards_client, db_session, acting):
    """Re-posting the same comment id does not count it twice."""
    acting.as_service("community_service")
    comment_id = str(uuid.uuid4())
    payload = {"author_id": "author-1", "body": "hello", "comment_id": comment_id}

    first = await rewards_client.post("/internal/comments", json=payload)
    second = await rewards_client.post("/internal/comments", json=payload)

    assert first.status_code == 200, first.text
    assert first.json()["id"] == comment_id
    assert first.json()["score"] == 0
    assert second.json()["id"] == comment_id

    posted = (
        await db_session.execute(
            select(WeeklyUserStat.comments_posted).where(
                WeeklyUserStat.week_key == week_key(), WeeklyUserStat.user_id == "author-1"
            )
        )
    ).scalar_one()
    assert posted == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_award_mvm_points_accumulates(rewards_client, db_session, acting):
    acting.as_service()

    for points in (3, 4):
        response = await rewards_client.post(
            "/internal/stats/mvm-points", json={"user_id": "member-1", "points": points}
        )
        assert response.status_code == 200, response.text

    total = (
        await db_session.execute(
            select(MonthlyUserStat.mvm_points).where(
                MonthlyUserStat.month_key == month_key(), MonthlyUserStat.user_id == "member-1"
            )
        )
    ).scalar_one()
    assert total == 7

    rejected = await rewards_client.post(
        "/internal/stats/mvm-points", json={"user_id": "member-1", "points": 0}
    )
    assert rejected.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mark_week_paid(rewards_client, db_session, acting, cron_headers):
    db_session.add(PremiumMemberFactory.create(user_id="u-p1", wallet_address="WalletP1"))
    db_session.add(WeeklyUserStatFactory.create(user_id="u-p1", score_received=4))
    await db_session.commit()
    distributed = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": "2026-01-11"},
    )
    assert distributed.status_code == 200, distributed.text

    acting.as_service()
    paid = await rewards_client.post("/internal/rewards/2026-01-11/paid")
    assert paid.status_code == 200, paid.text
    assert paid.json() == {"success": True, "week_key": "2026-01-11", "updated": 1}

    missing = await rewards_client.post("/internal/rewards/2026-02-01/paid")
    assert missing.status_code == 404
    assert missing.json()["error"] == "REWARD_NOT_FOUND"
