"""Externally triggered batch endpoints.

Each endpoint is safe to call repeatedly. Responses are count summaries;
per-user detail is included only with ``?details=true``.
"""

import time
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from libs.auth.dependencies import require_cron_secret
from libs.common.config import get_settings
from libs.common.locks import OperationLock
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.rewards_service.dependencies import (
    get_balance_source,
    get_emission_schedule,
    get_notifier,
    get_raffle_lock,
    get_tier_table,
)
from services.rewards_service.services.accrual import run_accrual
from services.rewards_service.services.balances import WalletBalanceSource
from services.rewards_service.services.distribution import (
    distribute_week,
    load_distribution_config,
)
from services.rewards_service.services.notifications import NotificationSink
from services.rewards_service.services.raffle import run_weekly
from services.rewards_service.services.tiers import EmissionSchedule, TierTable
from services.rewards_service.services.week_keys import (
    previous_week_key,
    week_bounds,
    week_index as compute_week_index,
    week_key as current_week_key,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(
    prefix="/cron",
    tags=["cron"],
    dependencies=[Depends(require_cron_secret)],
)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@router.post("/rewards/accrual")
async def cron_accrual(
    details: bool = Query(False),
    balances: WalletBalanceSource = Depends(get_balance_source),
    tier_table: TierTable = Depends(get_tier_table),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Snapshot wallet balances and accrue this half-day's holder credits."""
    started = time.perf_counter()
    report = await run_accrual(
        db, balances=balances, tier_table=tier_table, include_details=details
    )
    return {"ok": True, **report.summary(details), "elapsed_ms": _elapsed_ms(started)}


@router.post("/raffle/weekly")
async def cron_raffle_weekly(
    details: bool = Query(False),
    notifier: NotificationSink = Depends(get_notifier),
    lock: OperationLock = Depends(get_raffle_lock),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Close, match and draw the weekly raffle once its week has ended."""
    started = time.perf_counter()
    result = await run_weekly(db, notifier=notifier, lock=lock)
    return {"ok": True, **result.summary(details), "elapsed_ms": _elapsed_ms(started)}


@router.post("/rewards/weekly-distribute")
async def cron_weekly_distribute(
    week_key: Optional[str] = Query(None, description="Ending Sunday, YYYY-MM-DD"),
    week_index: Optional[int] = Query(None, ge=0),
    details: bool = Query(False),
    schedule: EmissionSchedule = Depends(get_emission_schedule),
    db: AsyncSession = Depends(get_async_db),
) -> dict[str, Any]:
    """Compute and commit the reward batch for a week (default: the week just ended)."""
    started = time.perf_counter()
    settings = get_settings()

    week_key = week_key or previous_week_key(current_week_key())
    try:
        week_bounds(week_key)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if week_index is None:
        week_index = compute_week_index(week_key, settings.REWARDS_LAUNCH_WEEK_KEY)
        if week_index < 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Week {week_key} is before the rewards launch",
            )

    config = await load_distribution_config(db, settings)
    report = await distribute_week(
        db,
        week_key=week_key,
        week_index=week_index,
        schedule=schedule,
        config=config,
    )
    return {"ok": True, **report.summary(details), "elapsed_ms": _elapsed_ms(started)}
