"""Global exception handlers for consistent JSON error responses.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from libs.common.locks import OperationLockBusy
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


def error_body(code: str, message: str) -> dict:
    body = {"ok": False, "error": code, "message": message}
    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id
    return body


async def operation_lock_busy_handler(request: Request, exc: OperationLockBusy) -> JSONResponse:
    logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=error_body("OPERATION_IN_PROGRESS", str(exc)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "Internal server error"),
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OperationLockBusy, operation_lock_busy_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
