import pytest

import shared.tenant as tenant_module
from shared.tenant import TenantConfigError, TenantConfigValidationError
from apps.adsheets.api.v1.helpers.config import (
    DEFAULT_TAB_NAMES,
    get_db_tables,
    get_google_ads_settings,
    get_tab_names,
    reset_validation_cache,
    validate_tenant_config,
)


def _with_tenant(tenant_dir, name, body):
    (tenant_dir / f"{name}.yaml").write_text(body, encoding="utf-8")
    return tenant_module.set_tenant_context(name)


def test_db_tables_from_tenant_yaml(tenant_context):
    assert get_db_tables() == {
        "CAMPAIGNS": "campaigns",
        "ADS": "ads",
        "KEYWORDS": "keywords",
        "SHEETS": "sheets",
    }


def test_default_tab_names(tenant_context):
    assert get_tab_names() == DEFAULT_TAB_NAMES


def test_tab_name_override(tenant_dir):
    token = _with_tenant(
        tenant_dir,
        "gamma",
        "DB_HOST: h\nDB_USER: u\nDB_NAME: n\n"
        "DB_TABLES: {CAMPAIGNS: c, ADS: a, KEYWORDS: k, SHEETS: s}\n"
        "TAB_NAMES: {campaign: Campaigns}\n",
    )
    try:
        names = get_tab_names()
        validate_tenant_config()
    finally:
        tenant_module.reset_tenant_context(token)

    assert names["campaign"] == "Campaigns"
    assert names["ad"] == "Annoncer"


def test_validation_reports_missing_and_invalid(tenant_dir):
    token = _with_tenant(
        tenant_dir,
        "broken",
        "DB_HOST: h\nDB_TABLES: {CAMPAIGNS: 'bad name', ADS: a}\nTAB_NAMES: {banner: X}\n",
    )
    try:
        with pytest.raises(TenantConfigValidationError) as exc_info:
            validate_tenant_config()
    finally:
        tenant_module.reset_tenant_context(token)

    error = exc_info.value
    assert error.app_name == "AdSheets"
    assert "DB_TABLES.KEYWORDS" in error.missing
    assert "DB_TABLES.SHEETS" in error.missing
    assert "DB_USER" in error.missing
    assert "DB_TABLES.CAMPAIGNS" in error.invalid
    assert "TAB_NAMES.banner" in error.invalid


def test_validation_is_cached_per_tenant(tenant_dir):
    token = _with_tenant(tenant_dir, "cached", "DB_HOST: h\n")
    try:
        with pytest.raises(TenantConfigValidationError):
            validate_tenant_config()
    finally:
        tenant_module.reset_tenant_context(token)

    token = tenant_module.set_tenant_context("acme")
    try:
        validate_tenant_config()
        # A validated tenant is not re-checked until the cache is reset
        validate_tenant_config(tenant_id="acme")
    finally:
        tenant_module.reset_tenant_context(token)
        reset_validation_cache()


def test_google_ads_settings(tenant_dir):
    token = _with_tenant(
        tenant_dir,
        "ads",
        "developer_token: dev\nlogin_customer_id: 123-456-7890\n"
        "customer_id: 987-654-3210\njson_key_file_path: key.json\n",
    )
    try:
        settings = get_google_ads_settings()
    finally:
        tenant_module.reset_tenant_context(token)

    assert settings["login_customer_id"] == "1234567890"
    assert settings["customer_id"] == "9876543210"
    assert settings["json_key_file_path"] == "key.json"


def test_google_ads_settings_missing(tenant_context, monkeypatch):
    for key in ("developer_token", "login_customer_id", "customer_id", "GOOGLE_ADS_CUSTOMER_ID",
                "json_key_file_path", "GOOGLE_APPLICATION_CREDENTIALS"):
        monkeypatch.delenv(key, raising=False)

    with pytest.raises(TenantConfigValidationError) as exc_info:
        get_google_ads_settings()

    assert "developer_token" in exc_info.value.missing


def test_unknown_tenant(tenant_dir):
    with pytest.raises(TenantConfigError):
        tenant_module.set_tenant_context("ghost")
