"""FastAPI application for the Rewards Service."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from libs.common.error_handler import add_exception_handlers, error_body
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.rewards_service.errors import RewardsError
from services.rewards_service.routers import (
    cron_router,
    internal_router,
    raffles_router,
    rewards_router,
    votes_router,
)
from slowapi.errors import RateLimitExceeded

logger = get_logger(__name__)


async def rewards_error_handler(request: Request, exc: RewardsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message))


def create_app() -> FastAPI:
    """Create and configure the Rewards Service FastAPI app."""
    app = FastAPI(
        title="Rewards Service",
        version="0.1.0",
        description="Special-credit ledger, comment votes, weekly raffle and token reward batches.",
    )

    add_observability_middleware(app)
    add_exception_handlers(app)
    app.add_exception_handler(RewardsError, rewards_error_handler)

    # Vote throttling (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "rewards"}

    # Member-facing routes
    app.include_router(votes_router)
    app.include_router(raffles_router)
    app.include_router(rewards_router)

    # Externally triggered batch jobs (shared cron secret)
    app.include_router(cron_router)

    # Internal service-to-service routes (not proxied by gateway)
    app.include_router(internal_router)

    return app


app = create_app()
