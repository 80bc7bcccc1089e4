"""Rewards service routers."""

from services.rewards_service.routers.cron import router as cron_router
from services.rewards_service.routers.internal import router as internal_router
from services.rewards_service.routers.raffles import router as raffles_router
from services.rewards_service.routers.rewards import router as rewards_router
from services.rewards_service.routers.votes import router as votes_router

__all__ = [
    "cron_router",
    "internal_router",
    "raffles_router",
    "rewards_router",
    "votes_router",
]
