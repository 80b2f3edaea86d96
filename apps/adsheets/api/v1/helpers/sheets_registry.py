from __future__ import annotations

from shared.ggSheet import SheetsClient, SheetsClientError, TabSpec
from shared.logger import get_logger
from shared.utils import now_local
from apps.adsheets.api.v1.helpers.db_queries import MySQLRecordStore
from apps.adsheets.api.v1.helpers.errors import (
    DuplicateSheetError,
    RecordNotFoundError,
    ScopeError,
)
from apps.adsheets.api.v1.helpers.kinds import SHEET, SHEET_HEADERS
from apps.adsheets.api.v1.helpers.models import OwnerScope, Scope

logger = get_logger("AdSheets Registry")

EXPLANATION_ROWS = [
    ["Dette ark styrer dine Google Ads kampagner."],
    [""],
    ["Kampagner: én kampagne pr. række. Navn, startdato og slutdato skal udfyldes."],
    ["Annoncer: annoncegruppe, overskrift 1, beskrivelse og endelig URL skal udfyldes."],
    ["Keywords: annoncegruppe og søgeord skal udfyldes. Match type er BROAD, PHRASE eller EXACT."],
    ["AllResources: rækker med en værdi i Action sendes til Google Ads. Resultatet skrives i kolonne P."],
]


def build_tab_specs(tab_names: dict[str, str]) -> list[TabSpec]:
    specs = [
        TabSpec(title=tab_names[kind], rows=[SHEET_HEADERS[kind]])
        for kind in ("campaign", "ad", "keyword", "resources")
    ]
    specs.append(TabSpec(title=tab_names["explanation"], rows=EXPLANATION_ROWS, header=False))
    return specs


def _clean_name(name: object) -> str:
    text = str(name or "").strip()
    if not text:
        raise ScopeError("name is required")
    return text


class SheetRegistry:
    """Spreadsheet documents owned by one tenant user."""

    def __init__(
        self,
        *,
        store: MySQLRecordStore,
        sheets: SheetsClient,
        tab_names: dict[str, str],
    ) -> None:
        self.store = store
        self.sheets = sheets
        self.tab_names = tab_names

    def _get_filter(self, owner: OwnerScope, record_id: str) -> dict:
        return {**owner.as_filter(), "id": record_id}

    def create(self, owner: OwnerScope, name: object) -> dict:
        title = _clean_name(name)
        if self.store.find_one({**owner.as_filter(), "name": title}) is not None:
            raise DuplicateSheetError(title)

        document = self.sheets.create_document(title, build_tab_specs(self.tab_names))
        record = self.store.insert_one(
            {
                **owner.as_filter(),
                "name": title,
                "sheetId": document.document_id,
                "sheetUrl": document.url,
            }
        )
        logger.info(
            "Sheet created",
            extra={
                "extra_fields": {
                    "id": record["id"],
                    "sheet_id": document.document_id,
                    "user_id": owner.user_id,
                }
            },
        )
        return record

    def list(self, owner: OwnerScope) -> list[dict]:
        return self.store.find_many(owner.as_filter())

    def get(self, owner: OwnerScope, record_id: str) -> dict:
        record = self.store.find_one(self._get_filter(owner, record_id))
        if record is None:
            raise RecordNotFoundError(SHEET.key, record_id)
        return record

    def rename(self, owner: OwnerScope, record_id: str, name: object) -> dict:
        title = _clean_name(name)
        record = self.store.find_one_and_update(
            self._get_filter(owner, record_id),
            {"name": title},
        )
        if record is None:
            raise RecordNotFoundError(SHEET.key, record_id)

        try:
            self.sheets.rename_document(record["sheetId"], title)
        except SheetsClientError as exc:
            logger.warning(
                "Drive rename failed",
                extra={"extra_fields": {"sheet_id": record["sheetId"], "error": str(exc)}},
            )
        return record

    def delete(self, owner: OwnerScope, record_id: str) -> dict:
        filters = self._get_filter(owner, record_id)
        record = self.store.find_one(filters)
        if record is None:
            raise RecordNotFoundError(SHEET.key, record_id)

        try:
            self.sheets.delete_document(record["sheetId"])
        except SheetsClientError as exc:
            logger.warning(
                "Drive delete failed",
                extra={"extra_fields": {"sheet_id": record["sheetId"], "error": str(exc)}},
            )

        self.store.delete_one(filters)
        return {"id": record_id, "deleted": True}

    def mark_synced(self, scope: Scope) -> dict | None:
        """Stamp lastSynced on the registry entry for this document, if any."""
        return self.store.find_one_and_update(
            {"tenantId": scope.tenant_id, "userId": scope.user_id, "sheetId": scope.sheet_id},
            {"lastSynced": now_local()},
        )
