import ast
import json
import re
import threading

from shared.tenant import (
    TenantConfigValidationError,
    get_env,
    get_tenant_id,
)

APP_NAME = "AdSheets"

_DB_TABLE_RE = re.compile(r"^[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*$")
_REQUIRED_DB_TABLE_KEYS = {"CAMPAIGNS", "ADS", "KEYWORDS", "SHEETS"}
_REQUIRED_DB_KEYS = ("DB_HOST", "DB_USER", "DB_NAME")

DEFAULT_TAB_NAMES = {
    "campaign": "Kampagner",
    "ad": "Annoncer",
    "keyword": "Keywords",
    "resources": "AllResources",
    "explanation": "Forklaring",
}


def _parse_raw_value(raw: str, key: str, expected_type):
    if isinstance(raw, expected_type):
        return raw
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        try:
            parsed = ast.literal_eval(raw)
        except (ValueError, SyntaxError) as exc:
            raise TenantConfigValidationError(app_name=APP_NAME, invalid=[key]) from exc

    if not isinstance(parsed, expected_type):
        raise TenantConfigValidationError(app_name=APP_NAME, invalid=[key])
    return parsed


def _get_db_tables_raw() -> str | None:
    return get_env("DB_TABLES") or get_env("db_tables")


def _collect_db_table_problems(raw: str | None) -> tuple[dict[str, str], list[str], list[str]]:
    missing: list[str] = []
    invalid: list[str] = []
    tables: dict[str, str] = {}

    if raw is None or str(raw).strip() == "":
        return tables, ["DB_TABLES"], invalid

    try:
        parsed = _parse_raw_value(raw, "DB_TABLES", dict)
    except TenantConfigValidationError:
        return tables, missing, ["DB_TABLES"]

    for key, value in parsed.items():
        name = str(value).strip()
        if not name or not _DB_TABLE_RE.fullmatch(name):
            invalid.append(f"DB_TABLES.{key}")
            continue
        tables[str(key).upper()] = name

    for key in sorted(_REQUIRED_DB_TABLE_KEYS.difference(tables.keys())):
        if f"DB_TABLES.{key}" not in invalid:
            missing.append(f"DB_TABLES.{key}")

    return tables, missing, invalid


def get_db_tables() -> dict[str, str]:
    tables, missing, invalid = _collect_db_table_problems(_get_db_tables_raw())
    if missing or invalid:
        raise TenantConfigValidationError(
            app_name=APP_NAME,
            missing=missing,
            invalid=invalid,
        )
    return tables


def get_tab_names() -> dict[str, str]:
    """
    Tab titles per sheet kind. TAB_NAMES in tenant config overrides the
    defaults key by key.
    """
    names = dict(DEFAULT_TAB_NAMES)
    raw = get_env("TAB_NAMES")
    if raw is None or str(raw).strip() == "":
        return names

    parsed = _parse_raw_value(raw, "TAB_NAMES", dict)
    for key, value in parsed.items():
        normalized_key = str(key).strip().lower()
        title = str(value).strip()
        if normalized_key not in names or not title:
            raise TenantConfigValidationError(
                app_name=APP_NAME,
                invalid=[f"TAB_NAMES.{key}"],
            )
        names[normalized_key] = title
    return names


def get_tab_name(kind: str) -> str:
    return get_tab_names()[kind]


def get_google_ads_settings() -> dict[str, str]:
    """
    Google Ads keys are only needed by the platform pass, so they are checked
    here and not in validate_tenant_config.
    """
    settings = {
        "developer_token": get_env("developer_token"),
        "login_customer_id": get_env("login_customer_id"),
        "customer_id": get_env("customer_id") or get_env("GOOGLE_ADS_CUSTOMER_ID"),
        "json_key_file_path": get_env("json_key_file_path")
        or get_env("GOOGLE_APPLICATION_CREDENTIALS"),
        "use_proto_plus": get_env("use_proto_plus", "true"),
    }

    missing = [
        key
        for key in ("developer_token", "login_customer_id", "customer_id")
        if not settings[key]
    ]
    if not settings["json_key_file_path"]:
        missing.append("json_key_file_path or GOOGLE_APPLICATION_CREDENTIALS")
    if missing:
        raise TenantConfigValidationError(app_name=APP_NAME, missing=missing)

    for key in ("login_customer_id", "customer_id"):
        settings[key] = str(settings[key]).replace("-", "").strip()
    return settings


_VALIDATED_TENANTS: set[str] = set()
_VALIDATION_LOCK = threading.Lock()


def validate_tenant_config(tenant_id: str | None = None) -> None:
    """
    Ensure all required tenant config keys exist and are valid.
    Cached per tenant to avoid re-validating on every request.
    """
    tenant_id = tenant_id or get_tenant_id()
    if not tenant_id:
        raise TenantConfigValidationError(app_name=APP_NAME, missing=["tenant_id"])

    with _VALIDATION_LOCK:
        if tenant_id in _VALIDATED_TENANTS:
            return

        _, missing, invalid = _collect_db_table_problems(_get_db_tables_raw())

        for key in _REQUIRED_DB_KEYS:
            raw = get_env(key)
            if raw is None or str(raw).strip() == "":
                missing.append(key)

        try:
            get_tab_names()
        except TenantConfigValidationError as exc:
            invalid.extend(exc.invalid)

        if missing or invalid:
            raise TenantConfigValidationError(
                app_name=APP_NAME,
                missing=missing,
                invalid=invalid,
            )

        _VALIDATED_TENANTS.add(tenant_id)


def reset_validation_cache() -> None:
    with _VALIDATION_LOCK:
        _VALIDATED_TENANTS.clear()
