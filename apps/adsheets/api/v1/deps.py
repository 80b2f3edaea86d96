from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request

from shared.ggSheet import SheetsClient, SheetsClientError
from shared.tenant import get_tenant_id
from apps.adsheets.api.v1.helpers.config import get_tab_names
from apps.adsheets.api.v1.helpers.db_queries import MySQLRecordStore
from apps.adsheets.api.v1.helpers.errors import (
    DuplicateSheetError,
    PlatformDispatchError,
    RecordNotFoundError,
    RowIndexError,
    ScopeError,
)
from apps.adsheets.api.v1.helpers.ggAd import GoogleAdsPlatform
from apps.adsheets.api.v1.helpers.kinds import AD, CAMPAIGN, KEYWORD, SHEET
from apps.adsheets.api.v1.helpers.models import OwnerScope, Scope
from apps.adsheets.api.v1.helpers.sheets_registry import SheetRegistry
from apps.adsheets.api.v1.helpers.sync_service import SheetSyncService


# ============================================================
# SCOPE
# ============================================================

def _tenant_id(request: Request) -> str:
    tenant_id = str(getattr(request.state, "tenant_id", "") or get_tenant_id() or "").strip()
    if not tenant_id:
        raise HTTPException(status_code=400, detail="Missing tenant context")
    return tenant_id


def get_owner_scope(
    request: Request,
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> OwnerScope:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="Missing X-User-Id header")
    return OwnerScope(tenant_id=_tenant_id(request), user_id=user_id)


def get_scope(
    sheetId: str,
    owner: OwnerScope = Depends(get_owner_scope),
) -> Scope:
    try:
        return Scope(tenant_id=owner.tenant_id, user_id=owner.user_id, sheet_id=sheetId.strip())
    except ScopeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


# ============================================================
# CAPABILITIES
# ============================================================

@dataclass
class RecordStores:
    campaign: MySQLRecordStore
    ad: MySQLRecordStore
    keyword: MySQLRecordStore
    sheet: MySQLRecordStore


def get_sheets_client() -> SheetsClient:
    return SheetsClient()


def get_record_stores() -> RecordStores:
    return RecordStores(
        campaign=MySQLRecordStore(CAMPAIGN),
        ad=MySQLRecordStore(AD),
        keyword=MySQLRecordStore(KEYWORD),
        sheet=MySQLRecordStore(SHEET),
    )


def get_ads_platform() -> GoogleAdsPlatform:
    return GoogleAdsPlatform()


def get_sync_services(
    sheets: SheetsClient = Depends(get_sheets_client),
    stores: RecordStores = Depends(get_record_stores),
) -> dict[str, SheetSyncService]:
    tabs = get_tab_names()
    return {
        kind.key: SheetSyncService(
            kind,
            sheets=sheets,
            store=getattr(stores, kind.key),
            tab=tabs[kind.key],
        )
        for kind in (CAMPAIGN, AD, KEYWORD)
    }


def get_sheet_registry(
    sheets: SheetsClient = Depends(get_sheets_client),
    stores: RecordStores = Depends(get_record_stores),
) -> SheetRegistry:
    return SheetRegistry(store=stores.sheet, sheets=sheets, tab_names=get_tab_names())


# ============================================================
# ERROR TRANSLATION
# ============================================================

@contextmanager
def http_errors():
    """Map domain failures onto HTTP statuses."""
    try:
        yield
    except ScopeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DuplicateSheetError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except RowIndexError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except SheetsClientError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PlatformDispatchError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
