from __future__ import annotations

from shared.ggSheet import SheetsClient, a1_range
from shared.logger import get_logger
from apps.adsheets.api.v1.helpers.db_queries import MySQLRecordStore
from apps.adsheets.api.v1.helpers.errors import (
    RecordNotFoundError,
    RowIndexError,
    ScopeError,
)
from apps.adsheets.api.v1.helpers.kinds import AD, CAMPAIGN, KEYWORD, RecordKind
from apps.adsheets.api.v1.helpers.models import Scope, SyncAllResult, SyncResult
from apps.adsheets.api.v1.helpers.parsers import (
    normalize_campaign_status,
    normalize_match_type,
    parse_number,
    parse_rows,
)
from apps.adsheets.api.v1.helpers.sheet_rows import (
    project_delete,
    project_update,
    valid_row_index,
)

logger = get_logger("AdSheets Sync")


# ============================================================
# PATCH NORMALIZATION
# ============================================================

def normalize_patch(kind: RecordKind, patch: dict) -> dict:
    """
    Keep only fields the kind maps to sheet columns, trimmed and normalized.
    Raises ScopeError for unknown fields, blank required fields, bad numbers
    or an empty patch.
    """
    editable = kind.sheet_columns
    unknown = sorted(set(patch) - set(editable))
    if unknown:
        raise ScopeError(f"Unknown {kind.key} fields: {', '.join(unknown)}")

    values: dict = {}
    for name, raw in patch.items():
        if name in kind.numeric_fields:
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                values[name] = None
                continue
            number = parse_number(raw)
            if number is None:
                raise ScopeError(f"{name} must be a number")
            values[name] = number
            continue

        text = None if raw is None else str(raw).strip()
        if name in kind.required_fields and not text:
            raise ScopeError(f"{name} cannot be empty")
        if name == "status":
            text = normalize_campaign_status(text)
        elif name == "matchType":
            text = normalize_match_type(text)
        values[name] = text or None

    if not values:
        raise ScopeError("No updatable fields provided")
    return values


# ============================================================
# PER-KIND SERVICE
# ============================================================

class SheetSyncService:
    """
    Keeps one record kind in step between a spreadsheet tab and its store.

    The store is the system of record: sheet mirroring on update/delete is
    best-effort, while a failed sheet read aborts a sync before any delete.
    """

    def __init__(
        self,
        kind: RecordKind,
        *,
        sheets: SheetsClient,
        store: MySQLRecordStore,
        tab: str,
    ) -> None:
        self.kind = kind
        self.sheets = sheets
        self.store = store
        self.tab = tab

    def _record_filter(self, scope: Scope, record_id: str) -> dict:
        if not record_id or not str(record_id).strip():
            raise ScopeError(f"{self.kind.label} id is required")
        return {**scope.as_filter(), "id": str(record_id).strip()}

    def list(self, scope: Scope) -> list[dict]:
        return self.store.find_many(scope.as_filter())

    def update(self, scope: Scope, record_id: str, patch: dict) -> dict:
        values = normalize_patch(self.kind, patch)
        record = self.store.find_one_and_update(
            self._record_filter(scope, record_id),
            values,
        )
        if record is None:
            raise RecordNotFoundError(self.kind.key, record_id)

        row_index = valid_row_index(record.get("rowIndex"))
        if row_index is None:
            logger.warning(
                "Record has no sheet row, skipping mirrored write",
                extra={
                    "extra_fields": {
                        "kind": self.kind.key,
                        "id": record_id,
                        "rowIndex": record.get("rowIndex"),
                    }
                },
            )
            return record

        project_update(
            self.sheets,
            scope.sheet_id,
            self.kind,
            self.tab,
            row_index,
            values,
        )
        return record

    def delete(self, scope: Scope, record_id: str) -> dict:
        filters = self._record_filter(scope, record_id)
        record = self.store.find_one(filters)
        if record is None:
            raise RecordNotFoundError(self.kind.key, record_id)

        row_index = valid_row_index(record.get("rowIndex"))
        if row_index is None:
            raise RowIndexError(self.kind.key, record_id, record.get("rowIndex"))

        sheet_deleted = project_delete(self.sheets, scope.sheet_id, self.tab, row_index)
        self.store.delete_one(filters)

        shifted = 0
        if sheet_deleted:
            shifted = self.store.shift_row_indexes(scope.as_filter(), below=row_index)

        return {
            "id": record["id"],
            "rowIndex": row_index,
            "deleted": True,
            "sheetRowDeleted": sheet_deleted,
            "rowsShifted": shifted,
        }

    def sync_from_sheet(self, scope: Scope) -> SyncResult:
        # Read first: a failed read must never be followed by the delete
        rows = self.sheets.read_range(
            scope.sheet_id,
            a1_range(self.tab, self.kind.read_range),
        )
        parsed = parse_rows(self.kind, rows, tab=self.tab)

        filters = scope.as_filter()
        removed = self.store.delete_many(filters)
        persisted = self.store.insert_many(
            [{**filters, **record} for record in parsed.records]
        )

        result = SyncResult(
            kind=self.kind.key,
            synced=len(parsed.records),
            persisted=persisted,
            skipped=len(parsed.skipped),
        )
        logger.info(
            "Sheet sync complete",
            extra={
                "extra_fields": {
                    "kind": self.kind.key,
                    "tab": self.tab,
                    "sheet_id": scope.sheet_id,
                    "user_id": scope.user_id,
                    "removed": removed,
                    **result.as_dict(),
                }
            },
        )
        return result


# ============================================================
# AGGREGATE
# ============================================================

def sync_all(services: dict[str, SheetSyncService], scope: Scope) -> SyncAllResult:
    """
    Sync campaigns, ads and keywords in that order. Not transactional across
    kinds: a failure leaves earlier kinds already replaced.
    """
    return SyncAllResult(
        campaigns=services[CAMPAIGN.key].sync_from_sheet(scope),
        ads=services[AD.key].sync_from_sheet(scope),
        keywords=services[KEYWORD.key].sync_from_sheet(scope),
    )
