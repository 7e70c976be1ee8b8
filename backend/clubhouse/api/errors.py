"""Global error handlers producing a uniform JSON envelope with request_id."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from clubhouse.domain.memberships.exceptions import ErrorCode, MembershipError

LOGGER = logging.getLogger(__name__)


def get_request_id(request: Request, default: str = "unknown") -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id") or default


def error_envelope(code: ErrorCode, message: str, request_id: str) -> dict[str, object]:
    return {"code": code.number, "detail": code.slug, "message": message, "request_id": request_id}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MembershipError)
    async def membership_exc_handler(request: Request, exc: MembershipError):  # type: ignore[override]
        rid = get_request_id(request)
        if exc.status_code >= 500:
            LOGGER.error("membership_error", extra={"error_code": exc.code.slug, "error": exc.detail})
        payload = error_envelope(exc.code, exc.public_message, rid)
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {"detail": exc.detail, "request_id": rid}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        rid = get_request_id(request)
        payload = {
            "code": ErrorCode.INVALID_REQUEST.number,
            "detail": "validation_error",
            "errors": jsonable_encoder(exc.errors()),
            "request_id": rid,
        }
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        rid = get_request_id(request)
        LOGGER.exception("unhandled_error")
        payload = error_envelope(ErrorCode.UNCATEGORIZED, ErrorCode.UNCATEGORIZED.message, rid)
        return JSONResponse(status_code=500, content=payload)
