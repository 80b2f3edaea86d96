from __future__ import annotations

import os
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logger import get_logger
from shared.response import wrap_error
from shared.tenant import (
    TenantConfigError,
    TenantConfigValidationError,
    build_tenant_config_payload,
)


def _format_loc(loc: object) -> str:
    if not isinstance(loc, (list, tuple)):
        return str(loc)
    parts: list[str] = []
    for item in loc:
        if item == "body":
            continue
        if isinstance(item, int) and parts:
            parts[-1] = f"{parts[-1]}[{item}]"
        else:
            parts.append(f"[{item}]" if isinstance(item, int) else str(item))
    return ".".join(parts) if parts else "body"


def format_validation_errors(errors: list[dict]) -> list[str]:
    """
    Turn pydantic error dicts into readable lines, required fields first.
    """
    missing: list[str] = []
    messages: list[str] = []
    for err in errors:
        loc = _format_loc(err.get("loc"))
        msg = err.get("msg") or "Invalid value"
        if msg == "Field required":
            missing.append(loc)
        elif loc != "body":
            messages.append(f"{loc}: {msg}")
        else:
            messages.append(msg)

    if missing:
        fields = sorted(dict.fromkeys(missing))
        verb = "are required" if len(fields) > 1 else "is required"
        messages.insert(0, f"{', '.join(fields)} {verb}")
    return messages


def register_exception_handlers(app: FastAPI, *, logger_name: str) -> None:
    logger = get_logger(logger_name)

    @app.exception_handler(TenantConfigError)
    async def tenant_config_exception_handler(
        request: Request,
        exc: TenantConfigError,
    ) -> JSONResponse:
        if isinstance(exc, TenantConfigValidationError):
            payload: object = build_tenant_config_payload(
                exc.app_name or getattr(request.state, "tenant_app", None),
                missing=exc.missing,
                invalid=exc.invalid,
            )
        else:
            payload = str(exc)
        return JSONResponse(status_code=400, content=wrap_error(payload, request))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        messages = format_validation_errors(list(exc.errors()))
        payload = {
            "error": "Invalid payload",
            "message": "; ".join(messages) if messages else "Invalid request payload",
            "messages": messages,
        }
        return JSONResponse(status_code=422, content=wrap_error(payload, request))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={
                "extra_fields": {
                    "path": str(request.url.path),
                    "method": request.method,
                    "error": str(exc),
                }
            },
        )

        content = {
            "error": "Internal Server Error",
            "message": "Something went wrong. Please try again later.",
            "detail": str(exc),
            "error_type": exc.__class__.__name__,
            "path": str(request.url.path),
            "method": request.method,
            "request_id": getattr(request.state, "request_id", None),
        }
        if os.getenv("APP_ENV", "").lower() in {"local", "dev", "development"}:
            content["traceback"] = traceback.format_exception(exc)

        return JSONResponse(status_code=500, content=wrap_error(content, request))
