from __future__ import annotations

import json
import re
import time
from datetime import datetime
from zoneinfo import ZoneInfo

from fastapi import Request
from starlette.responses import JSONResponse, Response

from shared.logger import (
    LOG_LEVEL,
    get_logger,
    set_request_id,
    reset_request_id,
    add_debug_handler,
    remove_debug_handler,
    create_request_debug_handler,
)
from shared.tenant import (
    TenantConfigError,
    TenantConfigValidationError,
    build_tenant_config_payload,
    set_tenant_context,
    reset_tenant_context,
    get_tenant_id,
    get_timezone,
)
from shared.response import (
    ensure_request_id,
    wrap_error,
    wrap_success,
)

_API_LOGGER = get_logger("api")

_DEFAULT_PUBLIC_PATHS = {"/", "/ping"}
_DOCS_SUFFIXES = ("/docs", "/docs/oauth2-redirect", "/redoc", "/openapi.json")


# ======================================================
# PATH HELPERS
# ======================================================

def _normalize_path(path: str | None) -> str:
    if not path or path == "/":
        return "/"
    return path.rstrip("/")


def _is_docs_path(path: str) -> bool:
    return _normalize_path(path).endswith(_DOCS_SUFFIXES)


def _is_public_path(request: Request) -> bool:
    paths = getattr(request.app.state, "public_paths", None) or _DEFAULT_PUBLIC_PATHS
    if isinstance(paths, str):
        paths = {paths}
    public = {_normalize_path(str(p)) for p in paths if p is not None}
    return _normalize_path(request.url.path) in public


def _resolve_tenant_validator(
    path: str,
    registry: object,
) -> tuple[str | None, object]:
    """
    Pick the validator registered under the longest matching path prefix.
    Registry entries are (prefixes, app_name, validator).
    """
    best: tuple[int, str | None, object] = (-1, None, None)
    for prefixes, app_name, validator in registry or ():
        if isinstance(prefixes, str):
            prefixes = (prefixes,)
        for prefix in prefixes:
            if path.startswith(prefix) and len(prefix) > best[0]:
                best = (len(prefix), app_name, validator)
    return best[1], best[2]


# ======================================================
# BODY HELPERS
# ======================================================

def _safe_parse_json(payload: bytes | str) -> object | None:
    try:
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        return json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


def _safe_decode_text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


def _decode_body(body: bytes) -> object | None:
    if not body:
        return None
    parsed = _safe_parse_json(body)
    return parsed if parsed is not None else _safe_decode_text(body)


def _duration_since(request: Request, fallback_start: float) -> float:
    start_time = getattr(request.state, "start_time", None)
    if isinstance(start_time, (int, float)):
        return time.perf_counter() - start_time
    return time.perf_counter() - fallback_start


def _error_response(
    request: Request,
    *,
    status_code: int,
    detail: object | None,
    duration_s: float,
) -> JSONResponse:
    payload = wrap_error(detail, request, duration_s=duration_s)
    return JSONResponse(status_code=status_code, content=payload)


# ======================================================
# ENVELOPE
# ======================================================

def _wrap_response_payload(
    request: Request,
    response: Response,
    response_body: bytes,
    *,
    duration_s: float,
) -> tuple[Response, object | None]:
    """
    Rebuild the response with the {meta, data|error} envelope applied to JSON
    bodies. Returns the new response and the body as it should be logged.
    """
    headers = dict(response.headers)
    headers.pop("content-length", None)
    content_type = (response.headers.get("content-type") or "").lower()

    is_json = "application/json" in content_type
    wrap = (
        is_json
        and response.status_code not in {204, 304}
        and not _is_docs_path(request.url.path or "")
    )

    if not wrap:
        rebuilt = Response(
            content=response_body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.media_type,
            background=response.background,
        )
        return rebuilt, _decode_body(response_body)

    raw = _decode_body(response_body)
    if response.status_code < 400:
        if isinstance(raw, dict) and "meta" in raw and "data" in raw:
            raw = raw["data"]
        payload = wrap_success(raw, request, duration_s=duration_s)
    else:
        if isinstance(raw, dict) and "meta" in raw and "error" in raw:
            raw = raw["error"]
        payload = wrap_error(raw, request, duration_s=duration_s)

    headers.pop("content-type", None)
    rebuilt = JSONResponse(
        content=payload,
        status_code=response.status_code,
        headers=headers,
        background=response.background,
    )
    return rebuilt, payload


# ======================================================
# MIDDLEWARES
# ======================================================

async def timing_middleware(request: Request, call_next):
    # Set start time BEFORE route executes
    if getattr(request.state, "start_time", None) is None:
        request.state.start_time = time.perf_counter()

    return await call_next(request)


async def tenant_context_middleware(request: Request, call_next):
    start_time = time.perf_counter()
    path = request.url.path or ""

    if _is_docs_path(path) or _is_public_path(request):
        request.state.tenant_id = None
        return await call_next(request)

    tenant_header = request.headers.get("x-tenant-id")
    if not path.startswith("/api") and not tenant_header:
        request.state.tenant_id = None
        return await call_next(request)

    if not tenant_header:
        return _error_response(
            request,
            status_code=400,
            detail="Missing X-Tenant-Id header",
            duration_s=_duration_since(request, start_time),
        )

    token = None
    try:
        token = set_tenant_context(tenant_header)
        request.state.tenant_id = get_tenant_id()

        registry = getattr(request.app.state, "tenant_validator_registry", None)
        app_name, validator = _resolve_tenant_validator(path, registry)
        if app_name:
            request.state.tenant_app = app_name
        if callable(validator):
            validator()
    except TenantConfigError as exc:
        if token is not None:
            reset_tenant_context(token)

        if isinstance(exc, TenantConfigValidationError):
            detail: object = build_tenant_config_payload(
                exc.app_name or getattr(request.state, "tenant_app", None),
                missing=exc.missing,
                invalid=exc.invalid,
            )
        else:
            error_text = str(exc)
            match = re.search(r"Tenant config not found for '([^']+)'", error_text)
            if match:
                error_text = f"Tenant ({match.group(1)}) not found!"
            detail = {"detail": error_text}

        return _error_response(
            request,
            status_code=400,
            detail=detail,
            duration_s=_duration_since(request, start_time),
        )

    try:
        return await call_next(request)
    finally:
        reset_tenant_context(token)


async def request_response_logger_middleware(request: Request, call_next):
    start_time = time.perf_counter()
    request_id = ensure_request_id(request)
    token = set_request_id(request_id)
    debug_handler = None

    if LOG_LEVEL == "DEBUG":
        debug_handler = create_request_debug_handler(request_id)
        add_debug_handler(debug_handler)

    try:
        body_bytes = await request.body()

        async def receive() -> dict:
            return {"type": "http.request", "body": body_bytes, "more_body": False}

        request._receive = receive  # type: ignore[attr-defined]

        response = await call_next(request)

        response_body = b""
        async for chunk in response.body_iterator:
            response_body += chunk

        duration_s = _duration_since(request, start_time)
        response, response_body_out = _wrap_response_payload(
            request,
            response,
            response_body,
            duration_s=duration_s,
        )

        _API_LOGGER.info(
            "HTTP request/response",
            extra={
                "extra_fields": {
                    "event": "http_request_response",
                    "timestamp": datetime.now(ZoneInfo(get_timezone())).isoformat(),
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": int(duration_s * 1000),
                    "tenant_id": getattr(request.state, "tenant_id", None),
                    "user_id": request.headers.get("x-user-id"),
                    "request_host": request.headers.get("x-forwarded-host")
                    or request.headers.get("host"),
                    "request_body": _decode_body(body_bytes),
                    "request_params": dict(request.query_params) or None,
                    "response_body": response_body_out,
                }
            },
        )

        return response
    finally:
        if debug_handler:
            remove_debug_handler(debug_handler)
        reset_request_id(token)
