"""
FastAPI application entry point for the time bank backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.config import get_settings
from backend.errors import ErrorKind, TimeBankError, user_message
from backend.routes import router

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_EMAIL: 400,
    ErrorKind.WEAK_PASSWORD: 400,
    ErrorKind.INVALID_CODE: 400,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.USER_NOT_FOUND: 401,
    ErrorKind.WRONG_PASSWORD: 401,
    ErrorKind.AUTH_EXPIRED: 401,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.EMAIL_NOT_VERIFIED: 403,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.ACCOUNT_EXISTS: 409,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.STORAGE: 500,
    ErrorKind.UNKNOWN: 500,
    ErrorKind.NETWORK: 503,
    ErrorKind.OFFLINE: 503,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.FAILED_PRECONDITION: 503,
    ErrorKind.TIMEOUT: 504,
}


def status_for(kind: ErrorKind) -> int:
    return _STATUS_BY_KIND.get(kind, 500)


async def _time_bank_error_handler(request: Request, exc: TimeBankError) -> JSONResponse:
    status = status_for(exc.kind)
    if status >= 500:
        logger.error("%s %s failed (%s): %s", request.method, request.url.path, exc.kind.value, exc.message)
    body = {"kind": exc.kind.value, "detail": user_message(exc)}
    if exc.field:
        body["field"] = exc.field
    return JSONResponse(status_code=status, content=body)


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title="Time Bank Backend (FastAPI)", version="0.1.0")
    app.add_exception_handler(TimeBankError, _time_bank_error_handler)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
