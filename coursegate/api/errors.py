"""Render every error as {"success": false, "error": {code, message, details}}.

AppError subclasses carry their own status and code. FastAPI's own
HTTPException (bad bearer token, missing role) and request-body validation
errors are folded into the same envelope so clients parse one shape.
Anything else propagates and becomes the framework's 500.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from coursegate.core.errors import AppError

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    status.HTTP_401_UNAUTHORIZED: "authentication_required",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def error_body(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


async def _app_error(request: Request, exc: AppError) -> JSONResponse:
    logger.warning(
        "%s %s rejected  code=%s status=%d: %s",
        request.method,
        request.url.path,
        exc.code,
        exc.status_code,
        exc.message,
        extra={"reason": exc.code, "status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder({"success": False, "error": exc.to_dict()}),
    )


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    code = _HTTP_CODES.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) else code
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("%s %s invalid request body", request.method, request.url.path)
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder(
            error_body("validation_error", "Invalid request", {"errors": exc.errors()})
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error)  # type: ignore[arg-type]
