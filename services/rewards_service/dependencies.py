"""FastAPI dependencies wiring the engines to their collaborators.

Tests override these through ``app.dependency_overrides``.
"""

from libs.common.config import get_settings
from libs.common.locks import OperationLock, get_operation_lock
from services.rewards_service.services.balances import (
    RpcWalletBalanceSource,
    WalletBalanceSource,
)
from services.rewards_service.services.notifications import (
    CommunicationsNotificationSink,
    LoggingNotificationSink,
    NotificationSink,
)
from services.rewards_service.services.raffle import RAFFLE_LOCK_NAME
from services.rewards_service.services.tiers import (
    DEFAULT_EMISSION_SCHEDULE,
    DEFAULT_TIER_TABLE,
    EmissionSchedule,
    TierTable,
)


def get_balance_source() -> WalletBalanceSource:
    return RpcWalletBalanceSource.from_settings()


def get_notifier() -> NotificationSink:
    settings = get_settings()
    if settings.ENVIRONMENT in ("local", "test") or not settings.COMMUNICATIONS_SERVICE_URL:
        return LoggingNotificationSink()
    return CommunicationsNotificationSink(settings.COMMUNICATIONS_SERVICE_URL)


def get_raffle_lock() -> OperationLock:
    settings = get_settings()
    return get_operation_lock(
        RAFFLE_LOCK_NAME, blocking_timeout=settings.RAFFLE_LOCK_TIMEOUT_SECONDS
    )


def get_tier_table() -> TierTable:
    return DEFAULT_TIER_TABLE


def get_emission_schedule() -> EmissionSchedule:
    return DEFAULT_EMISSION_SCHEDULE
