from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from shared.constants import SHEET_HEADER_BACKGROUND, SHEET_HEADER_ROWS
from shared.logger import get_logger
from shared.utils import resolve_secret_path

logger = get_logger("Google Sheets")

# =====================================================
# CONFIG
# =====================================================

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]

_REMOTE_ERRORS = (HttpError, GoogleAuthError, OSError)


class SheetsClientError(RuntimeError):
    pass


class SheetsCredentialsError(SheetsClientError):
    pass


class SheetsApiError(SheetsClientError):
    def __init__(self, operation: str, exc: Exception) -> None:
        self.operation = operation
        self.status = getattr(getattr(exc, "resp", None), "status", None)
        super().__init__(f"Google Sheets {operation} failed: {exc}")


@dataclass(frozen=True)
class TabSpec:
    """
    One tab of a new document. `rows` are written from A1; the first row
    is frozen and styled when `header` is set.
    """
    title: str
    rows: list[list[str]] = field(default_factory=list)
    header: bool = True


@dataclass(frozen=True)
class CreatedDocument:
    document_id: str
    url: str


# =====================================================
# A1 HELPERS
# =====================================================

def quote_title(title: str) -> str:
    safe = (title or "").strip()
    if not safe:
        raise SheetsClientError("Tab title must not be empty")
    return "'" + safe.replace("'", "''") + "'"


def a1_range(title: str, cells: str) -> str:
    return f"{quote_title(title)}!{cells}"


def a1_cell(title: str, column: str, row_index: int) -> str:
    if row_index < 1:
        raise ValueError("Row index must be >= 1")
    return a1_range(title, f"{column}{row_index}")


# =====================================================
# SERVICES
# =====================================================

def _load_credentials():
    try:
        cred_path = resolve_secret_path(
            "GOOGLE_APPLICATION_CREDENTIALS",
            "service-account.json",
            fallback_env_vars=("json_key_file_path",),
        )
        return service_account.Credentials.from_service_account_file(
            cred_path,
            scopes=SCOPES,
        )
    except (RuntimeError, OSError, ValueError) as exc:
        raise SheetsCredentialsError(str(exc)) from exc


def _build_service(name: str, version: str):
    return build(
        name,
        version,
        credentials=_load_credentials(),
        cache_discovery=False,  # critical on macOS
    )


# =====================================================
# CLIENT
# =====================================================

class SheetsClient:
    """
    Spreadsheet capability over Sheets v4 and Drive v3.

    Services are built on first use from the tenant's service account.
    Pass `sheets_service` / `drive_service` to use prebuilt (or fake) ones.
    Every remote failure is raised as SheetsApiError.
    """

    def __init__(self, *, sheets_service=None, drive_service=None) -> None:
        self._sheets = sheets_service
        self._drive = drive_service

    @property
    def sheets(self):
        if self._sheets is None:
            self._sheets = _build_service("sheets", "v4")
        return self._sheets

    @property
    def drive(self):
        if self._drive is None:
            self._drive = _build_service("drive", "v3")
        return self._drive

    def _execute(self, operation: str, request, **log_fields):
        try:
            return request.execute()
        except _REMOTE_ERRORS as exc:
            logger.warning(
                "Google Sheets call failed",
                extra={
                    "extra_fields": {
                        "operation": operation,
                        "error": str(exc),
                        **log_fields,
                    }
                },
            )
            raise SheetsApiError(operation, exc) from exc

    # -------------------------------------------------
    # Values
    # -------------------------------------------------

    def read_range(self, document_id: str, range_spec: str) -> list[list[str]]:
        result = self._execute(
            "read_range",
            self.sheets.spreadsheets().values().get(
                spreadsheetId=document_id,
                range=range_spec,
            ),
            document_id=document_id,
            range=range_spec,
        )
        rows = (result or {}).get("values", [])
        return [["" if cell is None else str(cell) for cell in row] for row in rows]

    def write_ranges(
        self,
        document_id: str,
        entries: Iterable[tuple[str, list[list[object]]]],
    ) -> None:
        data = [{"range": range_spec, "values": values} for range_spec, values in entries]
        if not data:
            return

        self._execute(
            "write_ranges",
            self.sheets.spreadsheets().values().batchUpdate(
                spreadsheetId=document_id,
                body={"valueInputOption": "RAW", "data": data},
            ),
            document_id=document_id,
            ranges=[entry["range"] for entry in data],
        )

    def write_range(
        self,
        document_id: str,
        range_spec: str,
        values: list[list[object]],
    ) -> None:
        self._execute(
            "write_range",
            self.sheets.spreadsheets().values().update(
                spreadsheetId=document_id,
                range=range_spec,
                valueInputOption="RAW",
                body={"values": values},
            ),
            document_id=document_id,
            range=range_spec,
        )

    # -------------------------------------------------
    # Structure
    # -------------------------------------------------

    def get_tab_ids(self, document_id: str) -> dict[str, int]:
        result = self._execute(
            "get_tab_ids",
            self.sheets.spreadsheets().get(
                spreadsheetId=document_id,
                fields="sheets.properties(sheetId,title)",
            ),
            document_id=document_id,
        )
        tabs: dict[str, int] = {}
        for sheet in (result or {}).get("sheets", []):
            props = sheet.get("properties", {})
            if "title" in props and "sheetId" in props:
                tabs[props["title"]] = props["sheetId"]
        return tabs

    def delete_row(self, document_id: str, tab_id: int, row_index: int) -> None:
        """Delete exactly one physical row (1-based)."""
        if row_index < 1:
            raise ValueError("Row index must be >= 1")

        request = {
            "deleteDimension": {
                "range": {
                    "sheetId": tab_id,
                    "dimension": "ROWS",
                    "startIndex": row_index - 1,
                    "endIndex": row_index,
                }
            }
        }
        self._execute(
            "delete_row",
            self.sheets.spreadsheets().batchUpdate(
                spreadsheetId=document_id,
                body={"requests": [request]},
            ),
            document_id=document_id,
            tab_id=tab_id,
            row_index=row_index,
        )

    def create_document(self, title: str, tabs: Sequence[TabSpec]) -> CreatedDocument:
        body = {
            "properties": {"title": title},
            "sheets": [
                {
                    "properties": {
                        "title": tab.title,
                        "gridProperties": {
                            "frozenRowCount": SHEET_HEADER_ROWS if tab.header else 0
                        },
                    }
                }
                for tab in tabs
            ],
        }
        created = self._execute(
            "create_document",
            self.sheets.spreadsheets().create(
                body=body,
                fields="spreadsheetId,spreadsheetUrl,sheets.properties",
            ),
            title=title,
        )
        document_id = created["spreadsheetId"]
        url = created.get("spreadsheetUrl") or (
            f"https://docs.google.com/spreadsheets/d/{document_id}/edit"
        )
        tab_ids = {
            sheet["properties"]["title"]: sheet["properties"]["sheetId"]
            for sheet in created.get("sheets", [])
        }

        self.write_ranges(
            document_id,
            [(a1_range(tab.title, "A1"), tab.rows) for tab in tabs if tab.rows],
        )

        style_requests = [
            {
                "repeatCell": {
                    "range": {
                        "sheetId": tab_ids[tab.title],
                        "startRowIndex": 0,
                        "endRowIndex": SHEET_HEADER_ROWS,
                    },
                    "cell": {
                        "userEnteredFormat": {
                            "backgroundColor": SHEET_HEADER_BACKGROUND,
                            "textFormat": {"bold": True},
                        }
                    },
                    "fields": "userEnteredFormat(backgroundColor,textFormat)",
                }
            }
            for tab in tabs
            if tab.header and tab.title in tab_ids
        ]
        if style_requests:
            self._execute(
                "style_headers",
                self.sheets.spreadsheets().batchUpdate(
                    spreadsheetId=document_id,
                    body={"requests": style_requests},
                ),
                document_id=document_id,
            )

        return CreatedDocument(document_id=document_id, url=url)

    # -------------------------------------------------
    # Drive
    # -------------------------------------------------

    def rename_document(self, document_id: str, name: str) -> None:
        self._execute(
            "rename_document",
            self.drive.files().update(
                fileId=document_id,
                body={"name": name},
                supportsAllDrives=True,
            ),
            document_id=document_id,
        )

    def delete_document(self, document_id: str) -> None:
        self._execute(
            "delete_document",
            self.drive.files().delete(fileId=document_id, supportsAllDrives=True),
            document_id=document_id,
        )
