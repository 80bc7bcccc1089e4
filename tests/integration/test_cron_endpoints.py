"""Integration tests for the cron-triggered batch endpoints."""

import pytest
from libs.common.locks import LocalOperationLock
from services.rewards_service.app.main import app
from services.rewards_service.dependencies import get_raffle_lock
from services.rewards_service.services.raffle import RAFFLE_LOCK_NAME
from services.rewards_service.services.week_keys import previous_week_key, week_key
from tests.factories import (
    MemberFactory,
    PremiumMemberFactory,
    RaffleFactory,
    RaffleTicketFactory,
    RewardsConfigFactory,
    WeeklyUserStatFactory,
)

RAW = 10**9


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "path",
    ["/cron/rewards/accrual", "/cron/raffle/weekly", "/cron/rewards/weekly-distribute"],
)
async def test_cron_requires_secret(rewards_client, path):
    """Every cron endpoint rejects missing or wrong secrets."""
    missing = await rewards_client.post(path)
    wrong = await rewards_client.post(path, headers={"x-cron-secret": "nope"})

    assert missing.status_code == 401
    assert wrong.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cron_accepts_bearer_secret(rewards_client, cron_headers):
    response = await rewards_client.post(
        "/cron/raffle/weekly",
        headers={"Authorization": f"Bearer {cron_headers['x-cron-secret']}"},
    )
    assert response.status_code == 200, response.text


# ---------------------------------------------------------------------------
# Accrual
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_accrual_endpoint_awards_once_per_slot(
    rewards_client, db_session, cron_headers, wallet_balances
):
    """POST /cron/rewards/accrual: a second call in the same slot is a no-op."""
    db_session.add(MemberFactory.create(user_id="holder-1", wallet_address="WalletH1"))
    db_session.add(MemberFactory.create(user_id="holder-2", wallet_address="WalletH2"))
    await db_session.commit()
    wallet_balances["WalletH1"] = 250_000 * RAW

    first = await rewards_client.post(
        "/cron/rewards/accrual", headers=cron_headers, params={"details": "true"}
    )
    assert first.status_code == 200, first.text
    data = first.json()
    assert data["ok"] is True
    assert data["credits"]["awarded"] == 1
    assert data["credits"]["skipped"]["balance_unavailable"] == 1
    assert data["snapshots"]["created"] == 1
    assert len(data["details"]) == 2
    assert "elapsed_ms" in data

    second = await rewards_client.post("/cron/rewards/accrual", headers=cron_headers)
    again = second.json()
    assert again["credits"]["awarded"] == 0
    assert again["credits"]["skipped"]["already_accrued"] == 1
    assert "details" not in again


# ---------------------------------------------------------------------------
# Raffle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_raffle_cron_reports_open_week(rewards_client, cron_headers):
    response = await rewards_client.post("/cron/raffle/weekly", headers=cron_headers)

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["week_key"] == week_key()
    assert data["status"] == "open"
    assert data["drawn_now"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_raffle_cron_recovers_undrawn_previous_week(
    rewards_client, db_session, cron_headers, notifier
):
    """A previous raffle left open past its close is drawn with the configured match cap."""
    db_session.add(RewardsConfigFactory.create(raffle_match_cap_micro=1_000))
    raffle = RaffleFactory.create(
        week_key=previous_week_key(week_key()), user_pool_micro=2_000
    )
    db_session.add(raffle)
    await db_session.commit()
    db_session.add(RaffleTicketFactory.create(raffle_id=raffle.id, user_id="alice", quantity=2))
    await db_session.commit()

    response = await rewards_client.post(
        "/cron/raffle/weekly", headers=cron_headers, params={"details": "true"}
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["recovered_week_key"] == raffle.week_key
    # Sole entrant takes first place: 50% of user pool 2 + capped match 1
    assert data["recovered_winners"][0]["user_id"] == "alice"
    assert data["recovered_winners"][0]["prize_micro"] == 1_500
    assert notifier.sent[0][0] == "alice"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_raffle_cron_busy_lock_is_409(rewards_client, cron_headers):
    """While another invocation holds the raffle lock the cron answers 409 and retries succeed."""
    app.dependency_overrides[get_raffle_lock] = lambda: LocalOperationLock(
        RAFFLE_LOCK_NAME, blocking_timeout=0.05
    )

    async with LocalOperationLock(RAFFLE_LOCK_NAME).hold():
        busy = await rewards_client.post("/cron/raffle/weekly", headers=cron_headers)

    assert busy.status_code == 409
    assert busy.json()["error"] == "OPERATION_IN_PROGRESS"

    retry = await rewards_client.post("/cron/raffle/weekly", headers=cron_headers)
    assert retry.status_code == 200, retry.text


# ---------------------------------------------------------------------------
# Weekly distribution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_distribute_commits_once(rewards_client, db_session, cron_headers):
    """POST /cron/rewards/weekly-distribute: a repeat for the same week is 409."""
    db_session.add(PremiumMemberFactory.create(user_id="u-p1", wallet_address="WalletP1"))
    db_session.add(WeeklyUserStatFactory.create(user_id="u-p1", score_received=12))
    await db_session.commit()

    response = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": "2026-01-11", "details": "true"},
    )
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["week_index"] == 1
    assert data["total_users"] == 1
    assert data["merkle_root"].startswith("0x")
    assert data["details"][0]["user_id"] == "u-p1"
    assert data["details"][0]["proof"] == []

    repeat = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": "2026-01-11"},
    )
    assert repeat.status_code == 409
    body = repeat.json()
    assert body["ok"] is False
    assert body["error"] == "ALREADY_PROCESSED"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_distribute_uses_config_emission_override(
    rewards_client, db_session, cron_headers
):
    db_session.add(RewardsConfigFactory.create(weekly_emission_override_micro=4_000_000))
    await db_session.commit()

    response = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": "2026-01-18"},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["emission"] == 4_000_000
    assert data["merkle_root"] is None
    assert data["pools"]["mvm"]["allocated"] == 800_000


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("week", ["2026-01-12", "2025-12-28"])
async def test_weekly_distribute_rejects_bad_weeks(rewards_client, cron_headers, week):
    """Non-Sunday keys and weeks before launch are 400s."""
    response = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": week},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_distribute_explicit_week_index(rewards_client, cron_headers):
    """An explicit week_index overrides the launch-relative index for the schedule."""
    response = await rewards_client.post(
        "/cron/rewards/weekly-distribute",
        headers=cron_headers,
        params={"week_key": "2026-01-11", "week_index": 80},
    )

    assert response.status_code == 200, response.text
    assert response.json()["emission"] == 166_667 * 1_000_000
