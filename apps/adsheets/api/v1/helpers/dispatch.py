from __future__ import annotations

from mysql.connector import Error as MySQLError

from shared.constants import ALL_RESOURCES_MAX_ROW
from shared.ggSheet import SheetsClient, SheetsClientError, a1_range
from shared.logger import get_logger
from shared.utils import run_parallel
from apps.adsheets.api.v1.helpers.db_queries import MySQLRecordStore
from apps.adsheets.api.v1.helpers.ggAd import GoogleAdsPlatform
from apps.adsheets.api.v1.helpers.models import Scope
from apps.adsheets.api.v1.helpers.parsers import (
    FIRST_DATA_ROW,
    RESOURCE_STATUS_COLUMN,
    normalize_campaign_status,
    parse_number,
    parse_resource_rows,
)

logger = get_logger("AdSheets Dispatch")

STATUS_NO_ACTION = "No action"
STATUS_PENDING = "Pending"

RESOURCE_TYPES = ("campaign", "adGroup", "ad", "keyword")


def resources_range(tab: str) -> str:
    return a1_range(tab, f"A{FIRST_DATA_ROW}:{RESOURCE_STATUS_COLUMN}{ALL_RESOURCES_MAX_ROW}")


def status_range(tab: str, count: int) -> str:
    last_row = FIRST_DATA_ROW + count - 1
    return a1_range(
        tab,
        f"{RESOURCE_STATUS_COLUMN}{FIRST_DATA_ROW}:{RESOURCE_STATUS_COLUMN}{last_row}",
    )


def _campaign_op(row: dict) -> dict:
    return {
        "id": row["id"],
        "name": row["name"],
        "budget": row["budget"],
        "status": row["status"],
        "startDate": row["startDate"],
        "endDate": row["endDate"],
        "action": row["action"],
    }


def _ad_group_op(row: dict) -> dict:
    return {
        "id": row["id"],
        "parentId": row["parentId"],
        "name": row["name"],
        "status": row["status"],
        "action": row["action"],
    }


def _ad_op(row: dict) -> dict:
    return {
        "parentId": row["parentId"],
        "headline1": row["headline1"],
        "headline2": row["headline2"],
        "description": row["description"],
        "finalUrl": row["finalUrl"],
        "action": row["action"],
    }


def _keyword_op(row: dict) -> dict:
    return {
        "parentId": row["parentId"],
        "keywordText": row["keywordText"],
        "matchType": row["matchType"],
        "action": row["action"],
    }


_OP_BUILDERS = {
    "campaign": _campaign_op,
    "adGroup": _ad_group_op,
    "ad": _ad_op,
    "keyword": _keyword_op,
}


def upsert_campaign(store: MySQLRecordStore, scope: Scope, row: dict) -> dict:
    if not row["id"]:
        raise ValueError("campaign row has no id")
    return store.upsert_one(
        {**scope.as_filter(), "campaignId": row["id"]},
        {
            "name": row["name"] or None,
            "status": normalize_campaign_status(row["status"]),
            "budget": parse_number(row["budget"]),
            "startDate": row["startDate"] or None,
            "endDate": row["endDate"] or None,
        },
    )


def dispatch_to_platform(
    scope: Scope,
    *,
    sheets: SheetsClient,
    campaign_store: MySQLRecordStore,
    platform: GoogleAdsPlatform,
    tab: str,
) -> list[str]:
    """
    Read the consolidated resource tab, queue actionable rows per resource
    type, submit the four batches concurrently and write one status per row
    back into the status column.

    "Pending" means the row was accepted into a batch, not that Google Ads
    created it. A rejected batch raises PlatformDispatchError and no
    statuses are written.
    """
    rows = parse_resource_rows(sheets.read_range(scope.sheet_id, resources_range(tab)))
    if not rows:
        return []

    batches: dict[str, list[dict]] = {name: [] for name in RESOURCE_TYPES}
    statuses: list[str] = []

    for row in rows:
        if not row["action"]:
            statuses.append(STATUS_NO_ACTION)
            continue

        resource_type = row["resourceType"]
        builder = _OP_BUILDERS.get(resource_type)
        if builder is None:
            statuses.append(f"Error: unknown resource type '{resource_type}'")
            continue

        try:
            if resource_type == "campaign":
                upsert_campaign(campaign_store, scope, row)
            batches[resource_type].append(builder(row))
        except (MySQLError, ValueError) as exc:
            logger.warning(
                "Resource row rejected",
                extra={
                    "extra_fields": {
                        "row": row["rowIndex"],
                        "resource_type": resource_type,
                        "error": str(exc),
                    }
                },
            )
            statuses.append(f"Error: {exc}")
            continue

        statuses.append(STATUS_PENDING)

    if any(batches.values()):
        platform.prepare()

    run_parallel(
        tasks=[
            (platform.create_campaigns, (batches["campaign"],)),
            (platform.create_ad_groups, (batches["adGroup"],)),
            (platform.create_ads, (batches["ad"],)),
            (platform.create_criteria, (batches["keyword"],)),
        ],
        api_name="google_ads_dispatch",
    )

    try:
        sheets.write_range(
            scope.sheet_id,
            status_range(tab, len(statuses)),
            [[status] for status in statuses],
        )
    except SheetsClientError as exc:
        logger.warning(
            "Status write-back failed",
            extra={
                "extra_fields": {
                    "document_id": scope.sheet_id,
                    "tab": tab,
                    "rows": len(statuses),
                    "error": str(exc),
                }
            },
        )

    logger.info(
        "Platform dispatch complete",
        extra={
            "extra_fields": {
                "sheet_id": scope.sheet_id,
                "rows": len(statuses),
                "queued": {name: len(ops) for name, ops in batches.items()},
            }
        },
    )
    return statuses
