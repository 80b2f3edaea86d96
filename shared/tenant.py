from __future__ import annotations

from dataclasses import dataclass
from contextvars import ContextVar
from pathlib import Path
import json
import os
import re
import threading
from typing import Any, Iterable

import yaml

from shared.constants import TIMEZONE as DEFAULT_TIMEZONE


class TenantConfigError(RuntimeError):
    pass


def format_tenant_config_detail(
    app_name: str | None,
    *,
    missing: Iterable[str] | None = None,
    invalid: Iterable[str] | None = None,
) -> str:
    name = app_name or "Tenant"
    missing_list = [str(item) for item in (missing or [])]
    invalid_list = [str(item) for item in (invalid or [])]

    parts: list[str] = []
    if missing_list:
        parts.append(f"missing: {', '.join(missing_list)}")
    if invalid_list:
        parts.append(f"invalid: {', '.join(invalid_list)}")
    if not parts:
        parts.append("missing required values")

    return f"{name} tenant config " + "; ".join(parts)


def build_tenant_config_payload(
    app_name: str | None,
    *,
    missing: Iterable[str] | None = None,
    invalid: Iterable[str] | None = None,
) -> dict[str, object]:
    missing_list = [str(item) for item in (missing or [])]
    invalid_list = [str(item) for item in (invalid or [])]
    return {
        "app": app_name,
        "detail": format_tenant_config_detail(
            app_name,
            missing=missing_list,
            invalid=invalid_list,
        ),
        "missing": missing_list,
        "invalid": invalid_list,
    }


class TenantConfigValidationError(TenantConfigError):
    def __init__(
        self,
        *,
        app_name: str | None = None,
        missing: Iterable[str] | None = None,
        invalid: Iterable[str] | None = None,
    ) -> None:
        self.app_name = app_name
        self.missing = [str(item) for item in (missing or [])]
        self.invalid = [str(item) for item in (invalid or [])]
        super().__init__(
            format_tenant_config_detail(
                app_name,
                missing=self.missing,
                invalid=self.invalid,
            )
        )


@dataclass(frozen=True)
class TenantContext:
    tenant_id: str
    env: dict[str, str]


_TENANT_CONTEXT: ContextVar[TenantContext | None] = ContextVar(
    "tenant_context",
    default=None,
)

SYSTEM_SECRETS_DIR = Path("/etc/secrets")
LOCAL_SECRETS_DIR = Path(__file__).resolve().parents[1] / "etc" / "secrets"

_TENANT_ENV_CACHE: dict[str, tuple[float, dict[str, str]]] = {}
_CACHE_LOCK = threading.Lock()


def normalize_tenant_id(raw: str | None) -> str:
    if raw is None:
        raise TenantConfigError("X-Tenant-Id header is missing")

    value = raw.strip()
    if not value:
        raise TenantConfigError("X-Tenant-Id header is empty")

    if not re.fullmatch(r"[A-Za-z0-9_-]+", value):
        raise TenantConfigError("X-Tenant-Id header has invalid characters")

    return value.lower()


def _resolve_tenant_path(tenant_id: str) -> Path:
    filenames = (f"{tenant_id}.yaml", f"{tenant_id}.yml")
    for base in (SYSTEM_SECRETS_DIR, LOCAL_SECRETS_DIR):
        for filename in filenames:
            candidate = base / filename
            if candidate.is_file():
                return candidate

    raise TenantConfigError(
        f"Tenant config not found for '{tenant_id}' in /etc/secrets or etc/secrets."
    )


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        # Nested values stay parseable by the JSON/literal config readers
        return json.dumps(value)
    return str(value)


def _load_yaml_file(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TenantConfigError(f"Unable to read tenant config: {exc}") from exc

    try:
        data = yaml.safe_load(raw) if raw.strip() else None
    except yaml.YAMLError as exc:
        raise TenantConfigError(f"Tenant config is not valid YAML: {path}") from exc

    if not isinstance(data, dict):
        raise TenantConfigError(f"Config is empty or invalid: {path}")
    return data


def load_tenant_env(tenant_id: str) -> dict[str, str]:
    tenant_id = normalize_tenant_id(tenant_id)
    path = _resolve_tenant_path(tenant_id)
    cache_key = str(path)

    try:
        mtime = path.stat().st_mtime
    except OSError as exc:
        raise TenantConfigError(f"Unable to read tenant config: {exc}") from exc

    with _CACHE_LOCK:
        cached = _TENANT_ENV_CACHE.get(cache_key)
        if cached and cached[0] == mtime:
            return cached[1]

    data = _load_yaml_file(path)
    env = {str(key): _stringify(value) for key, value in data.items()}

    with _CACHE_LOCK:
        _TENANT_ENV_CACHE[cache_key] = (mtime, env)

    return env


def set_tenant_context(tenant_id: str) -> ContextVar.Token:
    tenant_id = normalize_tenant_id(tenant_id)
    env = load_tenant_env(tenant_id)
    return _TENANT_CONTEXT.set(TenantContext(tenant_id=tenant_id, env=env))


def reset_tenant_context(token: ContextVar.Token) -> None:
    _TENANT_CONTEXT.reset(token)


def get_tenant_id() -> str | None:
    ctx = _TENANT_CONTEXT.get()
    return ctx.tenant_id if ctx else None


def get_env(key: str, default: str | None = None) -> str | None:
    ctx = _TENANT_CONTEXT.get()
    if ctx and key in ctx.env:
        return ctx.env[key]
    return os.getenv(key, default)


def get_timezone(default: str | None = None) -> str:
    value = get_env("TIMEZONE", default or DEFAULT_TIMEZONE)
    if value is None or str(value).strip() == "":
        return default or DEFAULT_TIMEZONE
    return str(value).strip()
