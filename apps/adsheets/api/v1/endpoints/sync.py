from __future__ import annotations

from fastapi import APIRouter, Depends

from shared.ggSheet import SheetsClient
from shared.logger import get_logger
from apps.adsheets.api.v1.deps import (
    RecordStores,
    get_ads_platform,
    get_record_stores,
    get_scope,
    get_sheet_registry,
    get_sheets_client,
    get_sync_services,
    http_errors,
)
from apps.adsheets.api.v1.helpers.config import get_tab_name
from apps.adsheets.api.v1.helpers.dispatch import dispatch_to_platform
from apps.adsheets.api.v1.helpers.ggAd import GoogleAdsPlatform
from apps.adsheets.api.v1.helpers.models import Scope, SyncAllResult
from apps.adsheets.api.v1.helpers.sheets_registry import SheetRegistry
from apps.adsheets.api.v1.helpers.sync_service import SheetSyncService, sync_all

router = APIRouter(prefix="/sync")
logger = get_logger("AdSheets Sync API")


def _sync_and_stamp(
    services: dict[str, SheetSyncService],
    registry: SheetRegistry,
    scope: Scope,
) -> SyncAllResult:
    result = sync_all(services, scope)
    if registry.mark_synced(scope) is None:
        logger.debug(
            "No registry entry to stamp",
            extra={"extra_fields": {"sheet_id": scope.sheet_id}},
        )
    return result


def _dispatch(
    scope: Scope,
    sheets: SheetsClient,
    stores: RecordStores,
    platform: GoogleAdsPlatform,
) -> list[str]:
    return dispatch_to_platform(
        scope,
        sheets=sheets,
        campaign_store=stores.campaign,
        platform=platform,
        tab=get_tab_name("resources"),
    )


# ============================================================
# SYNC
# ============================================================

@router.post("/{sheetId}")
def sync_sheet(
    scope: Scope = Depends(get_scope),
    services: dict[str, SheetSyncService] = Depends(get_sync_services),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    """
    Replace campaigns, ads and keywords for the sheet from its tabs.

    Example response:
    {
      "meta": {"timestamp": "2026-03-02T10:00:00+01:00", "duration_ms": 1530},
      "data": {
        "campaigns": 2, "ads": 5, "keywords": 0,
        "persisted": {"campaigns": 2, "ads": 5, "keywords": 0}
      }
    }
    """
    with http_errors():
        result = _sync_and_stamp(services, registry, scope)
    return {**result.counts(), "persisted": result.persisted()}


@router.post("/{sheetId}/ads")
def sync_ads(
    scope: Scope = Depends(get_scope),
    sheets: SheetsClient = Depends(get_sheets_client),
    stores: RecordStores = Depends(get_record_stores),
    platform: GoogleAdsPlatform = Depends(get_ads_platform),
):
    """
    Push actionable AllResources rows to Google Ads and return one status
    per row, in row order.
    """
    with http_errors():
        statuses = _dispatch(scope, sheets, stores, platform)
    return {"statuses": statuses}


@router.post("/{sheetId}/all-ads")
def sync_all_ads(
    scope: Scope = Depends(get_scope),
    services: dict[str, SheetSyncService] = Depends(get_sync_services),
    registry: SheetRegistry = Depends(get_sheet_registry),
    sheets: SheetsClient = Depends(get_sheets_client),
    stores: RecordStores = Depends(get_record_stores),
    platform: GoogleAdsPlatform = Depends(get_ads_platform),
):
    with http_errors():
        result = _sync_and_stamp(services, registry, scope)
        statuses = _dispatch(scope, sheets, stores, platform)

    counts = result.counts()
    return {
        "campaignsSynced": counts["campaigns"],
        "adsSynced": counts["ads"],
        "keywordsSynced": counts["keywords"],
        "adsStatuses": statuses,
    }
