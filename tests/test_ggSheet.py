from __future__ import annotations

from typing import Any, Dict, List

import httplib2
import pytest
from googleapiclient.errors import HttpError

from shared.ggSheet import (
    SheetsApiError,
    SheetsClient,
    SheetsClientError,
    TabSpec,
    a1_cell,
    a1_range,
    quote_title,
)


def _raise(error: Exception):
    raise error


class _FakeRequest:
    def __init__(self, callback):
        self._callback = callback

    def execute(self):
        return self._callback()


class _FakeValues:
    def __init__(self, service: "_FakeSheetsService") -> None:
        self._service = service

    def get(self, spreadsheetId: str, range: str):  # noqa: N802 - API compatibility
        self._service.calls.append(("values.get", spreadsheetId, range))
        return _FakeRequest(lambda: self._service.values_response)

    def update(self, spreadsheetId: str, range: str, valueInputOption: str, body: Dict[str, Any]):  # noqa: N802
        self._service.calls.append(("values.update", spreadsheetId, range, valueInputOption, body))
        return _FakeRequest(lambda: {})

    def batchUpdate(self, spreadsheetId: str, body: Dict[str, Any]):  # noqa: N802 - API compatibility
        self._service.calls.append(("values.batchUpdate", spreadsheetId, body))
        return _FakeRequest(lambda: {})


class _FakeSpreadsheets:
    def __init__(self, service: "_FakeSheetsService") -> None:
        self._service = service

    def values(self) -> _FakeValues:
        return _FakeValues(self._service)

    def get(self, spreadsheetId: str, fields: str):  # noqa: N802 - API compatibility
        self._service.calls.append(("get", spreadsheetId, fields))
        return _FakeRequest(lambda: {"sheets": self._service.sheet_props})

    def create(self, body: Dict[str, Any], fields: str):
        self._service.calls.append(("create", body))
        sheets = [
            {"properties": {"title": s["properties"]["title"], "sheetId": 100 + i}}
            for i, s in enumerate(body["sheets"])
        ]
        return _FakeRequest(lambda: {"spreadsheetId": "new-doc", "sheets": sheets})

    def batchUpdate(self, spreadsheetId: str, body: Dict[str, Any]):  # noqa: N802 - API compatibility
        self._service.calls.append(("batchUpdate", spreadsheetId, body))
        if self._service.error is not None:
            error = self._service.error
            return _FakeRequest(lambda: _raise(error))
        return _FakeRequest(lambda: {})


class _FakeSheetsService:
    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.values_response: Dict[str, Any] = {}
        self.sheet_props: List[Dict[str, Any]] = []
        self.error: Exception | None = None

    def spreadsheets(self) -> _FakeSpreadsheets:
        return _FakeSpreadsheets(self)


class _FakeFiles:
    def __init__(self, drive: "_FakeDriveService") -> None:
        self._drive = drive

    def update(self, fileId: str, body: Dict[str, Any], supportsAllDrives: bool):  # noqa: N802
        self._drive.calls.append(("update", fileId, body, supportsAllDrives))
        return _FakeRequest(lambda: {})

    def delete(self, fileId: str, supportsAllDrives: bool):  # noqa: N802
        self._drive.calls.append(("delete", fileId, supportsAllDrives))
        return _FakeRequest(lambda: {})


class _FakeDriveService:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def files(self) -> _FakeFiles:
        return _FakeFiles(self)


def _client():
    sheets = _FakeSheetsService()
    drive = _FakeDriveService()
    return SheetsClient(sheets_service=sheets, drive_service=drive), sheets, drive


# ============================================================
# A1 HELPERS
# ============================================================

def test_a1_helpers():
    assert quote_title("Kampagner") == "'Kampagner'"
    assert quote_title("Bob's ads") == "'Bob''s ads'"
    assert a1_range("Annoncer", "A2:G") == "'Annoncer'!A2:G"
    assert a1_cell("Keywords", "D", 7) == "'Keywords'!D7"


def test_a1_helpers_reject_bad_input():
    with pytest.raises(SheetsClientError):
        quote_title("  ")
    with pytest.raises(ValueError):
        a1_cell("Keywords", "A", 0)


# ============================================================
# CLIENT
# ============================================================

def test_read_range_stringifies_cells():
    client, sheets, _ = _client()
    sheets.values_response = {"values": [["Spring", 100, None], ["Summer"]]}

    rows = client.read_range("doc", "'Kampagner'!A2:E")

    assert rows == [["Spring", "100", ""], ["Summer"]]
    assert sheets.calls == [("values.get", "doc", "'Kampagner'!A2:E")]


def test_read_range_without_values():
    client, _, _ = _client()
    assert client.read_range("doc", "'Kampagner'!A2:E") == []


def test_write_ranges_batches_raw_values():
    client, sheets, _ = _client()

    client.write_ranges("doc", [("'Kampagner'!A3", [["New"]]), ("'Kampagner'!C3", [[5]])])
    client.write_ranges("doc", [])

    assert sheets.calls == [
        (
            "values.batchUpdate",
            "doc",
            {
                "valueInputOption": "RAW",
                "data": [
                    {"range": "'Kampagner'!A3", "values": [["New"]]},
                    {"range": "'Kampagner'!C3", "values": [[5]]},
                ],
            },
        )
    ]


def test_get_tab_ids():
    client, sheets, _ = _client()
    sheets.sheet_props = [
        {"properties": {"title": "Kampagner", "sheetId": 0}},
        {"properties": {"title": "Annoncer", "sheetId": 42}},
    ]

    assert client.get_tab_ids("doc") == {"Kampagner": 0, "Annoncer": 42}


def test_delete_row_targets_exactly_one_row():
    client, sheets, _ = _client()

    client.delete_row("doc", 42, 5)

    body = sheets.calls[0][2]
    assert body["requests"][0]["deleteDimension"]["range"] == {
        "sheetId": 42,
        "dimension": "ROWS",
        "startIndex": 4,
        "endIndex": 5,
    }


def test_http_error_is_wrapped():
    client, sheets, _ = _client()
    sheets.error = HttpError(httplib2.Response({"status": "503"}), b"unavailable")

    with pytest.raises(SheetsApiError) as exc_info:
        client.delete_row("doc", 1, 2)

    assert exc_info.value.status == 503
    assert exc_info.value.operation == "delete_row"


def test_create_document_writes_headers_and_styles_them():
    client, sheets, _ = _client()
    tabs = [
        TabSpec(title="Kampagner", rows=[["Campaign Name", "Status"]]),
        TabSpec(title="Forklaring", rows=[["Tekst"]], header=False),
    ]

    created = client.create_document("Forår", tabs)

    assert created.document_id == "new-doc"
    assert created.url == "https://docs.google.com/spreadsheets/d/new-doc/edit"

    create_body = sheets.calls[0][1]
    frozen = [s["properties"]["gridProperties"]["frozenRowCount"] for s in create_body["sheets"]]
    assert frozen == [1, 0]

    write_body = sheets.calls[1][2]
    assert [d["range"] for d in write_body["data"]] == ["'Kampagner'!A1", "'Forklaring'!A1"]

    style_requests = sheets.calls[2][2]["requests"]
    assert len(style_requests) == 1
    repeat = style_requests[0]["repeatCell"]
    assert repeat["range"]["sheetId"] == 100
    assert repeat["cell"]["userEnteredFormat"]["textFormat"] == {"bold": True}


def test_drive_rename_and_delete():
    client, _, drive = _client()

    client.rename_document("doc", "Sommer")
    client.delete_document("doc")

    assert drive.calls == [
        ("update", "doc", {"name": "Sommer"}, True),
        ("delete", "doc", True),
    ]
