"""Request context and access logging for the Rewards API.

Every request gets a request ID (echoed as ``X-Request-ID`` and included in
error bodies) and one access log line tagged with the route template, the
caller kind and, once authentication has run, the acting user.
"""
import re
import time
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

_QUIET_PATHS = frozenset({"/health"})
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def _inbound_request_id(request: Request) -> Optional[str]:
    # Only propagate IDs that are safe to echo into headers and logs
    value = request.headers.get("X-Request-ID")
    if value and _SAFE_REQUEST_ID.match(value):
        return value
    return None


def _caller_kind(request: Request) -> str:
    if request.headers.get("x-cron-secret"):
        return "cron"
    if request.url.path.startswith("/internal/"):
        return "service"
    return "member"


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds the request ID for the duration of a request and writes the access
    log once the response (or failure) is known.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=_inbound_request_id(request),
            path=request.url.path,
            method=request.method,
        )
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                extra={"extra_fields": {
                    "route": _route_template(request),
                    "error": str(e),
                    "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
                }},
            )
            raise
        else:
            if request.url.path not in _QUIET_PATHS:
                self._log_completed(request, response, start_time)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()

    @staticmethod
    def _log_completed(request: Request, response: Response, start_time: float) -> None:
        user = getattr(request.state, "user", None)
        fields = {
            "route": _route_template(request),
            "caller": _caller_kind(request),
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        }
        if user is not None:
            fields["user_id"] = user.user_id

        if response.status_code >= 500:
            logger.error("Request completed", extra={"extra_fields": fields})
        elif response.status_code >= 400:
            logger.warning("Request completed", extra={"extra_fields": fields})
        else:
            logger.info("Request completed", extra={"extra_fields": fields})


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install the request context middleware."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
