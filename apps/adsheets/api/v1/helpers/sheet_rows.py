from __future__ import annotations

from shared.constants import SHEET_HEADER_ROWS
from shared.ggSheet import SheetsClient, SheetsClientError, a1_cell
from shared.logger import get_logger
from apps.adsheets.api.v1.helpers.kinds import RecordKind

logger = get_logger("AdSheets Rows")


def valid_row_index(value: object) -> int | None:
    """Stored rowIndex as an int when it can address a data row, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        row = value
    elif isinstance(value, float) and value.is_integer():
        row = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        row = int(value.strip())
    else:
        return None
    return row if row > SHEET_HEADER_ROWS else None


def build_cell_writes(
    kind: RecordKind,
    tab: str,
    row_index: int,
    patch: dict,
) -> list[tuple[str, list[list[object]]]]:
    """One single-cell write per patched field that has a sheet column."""
    writes: list[tuple[str, list[list[object]]]] = []
    for name, column in kind.sheet_columns.items():
        if name not in patch:
            continue
        value = patch[name]
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        writes.append((a1_cell(tab, column, row_index), [[value]]))
    return writes


def project_update(
    sheets: SheetsClient,
    document_id: str,
    kind: RecordKind,
    tab: str,
    row_index: int,
    patch: dict,
) -> bool:
    """
    Mirror a stored update onto the sheet row. Failures are logged and
    reported as False; the stored record stays authoritative.
    """
    writes = build_cell_writes(kind, tab, row_index, patch)
    if not writes:
        return True

    try:
        sheets.write_ranges(document_id, writes)
    except SheetsClientError as exc:
        logger.warning(
            "Mirrored cell write failed",
            extra={
                "extra_fields": {
                    "kind": kind.key,
                    "document_id": document_id,
                    "tab": tab,
                    "row": row_index,
                    "ranges": [r for r, _ in writes],
                    "error": str(exc),
                }
            },
        )
        return False
    return True


def project_delete(
    sheets: SheetsClient,
    document_id: str,
    tab: str,
    row_index: int,
) -> bool:
    """
    Delete one physical row from the named tab. Returns False (after
    logging) when the tab is missing or any remote call fails.
    """
    try:
        tab_id = sheets.get_tab_ids(document_id).get(tab)
        if tab_id is None:
            logger.warning(
                "Tab not found for row delete",
                extra={
                    "extra_fields": {
                        "document_id": document_id,
                        "tab": tab,
                        "row": row_index,
                    }
                },
            )
            return False
        sheets.delete_row(document_id, tab_id, row_index)
    except SheetsClientError as exc:
        logger.warning(
            "Mirrored row delete failed",
            extra={
                "extra_fields": {
                    "document_id": document_id,
                    "tab": tab,
                    "row": row_index,
                    "error": str(exc),
                }
            },
        )
        return False
    return True
