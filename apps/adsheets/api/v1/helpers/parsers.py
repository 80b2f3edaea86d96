from __future__ import annotations

import math
from typing import Callable, Sequence

from shared.constants import (
    GGADS_ALLOWED_MATCH_TYPES,
    SHEET_HEADER_ROWS,
)
from shared.logger import get_logger
from apps.adsheets.api.v1.helpers.kinds import CAMPAIGN, KEYWORD, RecordKind
from apps.adsheets.api.v1.helpers.models import ParseResult, SkippedRow

logger = get_logger("AdSheets Parser")

FIRST_DATA_ROW = SHEET_HEADER_ROWS + 1

# AllResources columns A..O; P is the status column written back
RESOURCE_COLUMNS = (
    "resourceType",
    "id",
    "parentId",
    "name",
    "budget",
    "status",
    "startDate",
    "endDate",
    "headline1",
    "headline2",
    "description",
    "finalUrl",
    "keywordText",
    "matchType",
    "action",
)
RESOURCE_STATUS_COLUMN = "P"


# ============================================================
# CELL HELPERS
# ============================================================

def column_index(letter: str) -> int:
    """A -> 0, Z -> 25, AA -> 26"""
    index = 0
    for ch in letter.upper():
        index = index * 26 + (ord(ch) - 64)
    return index - 1


def cell(row: Sequence[object], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def parse_number(value: object) -> float | None:
    """Numeric cell value, or None when the cell is empty or not a number."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def normalize_campaign_status(value: object) -> str:
    text = str(value or "").strip().upper()
    return "PAUSED" if text == "PAUSED" else "ENABLED"


def normalize_match_type(value: object) -> str:
    text = str(value or "").strip().upper()
    return text if text in GGADS_ALLOWED_MATCH_TYPES else "BROAD"


# ============================================================
# KIND-SPECIFIC FINISHING
# ============================================================

def _finish_campaign(record: dict) -> None:
    record["status"] = normalize_campaign_status(record.get("status"))
    record["campaignId"] = str(record["rowIndex"])


def _finish_keyword(record: dict) -> None:
    record["matchType"] = normalize_match_type(record.get("matchType"))


_FINISHERS: dict[str, Callable[[dict], None]] = {
    CAMPAIGN.key: _finish_campaign,
    KEYWORD.key: _finish_keyword,
}


# ============================================================
# PARSERS
# ============================================================

def parse_rows(
    kind: RecordKind,
    rows: Sequence[Sequence[object]],
    *,
    tab: str | None = None,
) -> ParseResult:
    """
    Turn raw cell rows (starting at the first data row) into records.

    Rows missing a required field are dropped and reported, never raised.
    Each record keeps its physical sheet row as rowIndex.
    """
    result = ParseResult()
    columns = kind.sheet_columns
    numeric = set(kind.numeric_fields)

    for offset, row in enumerate(rows or []):
        row_index = FIRST_DATA_ROW + offset
        values = {name: cell(row, column_index(col)) for name, col in columns.items()}

        missing = [name for name in kind.required_fields if not values.get(name)]
        if missing:
            reason = "missing required fields: " + ", ".join(missing)
            result.skipped.append(SkippedRow(row_index=row_index, reason=reason))
            logger.warning(
                "Skipping sheet row",
                extra={
                    "extra_fields": {
                        "kind": kind.key,
                        "tab": tab,
                        "row": row_index,
                        "reason": reason,
                    }
                },
            )
            continue

        record: dict = {}
        for name, value in values.items():
            if name in numeric:
                record[name] = parse_number(value)
            else:
                record[name] = value or None
        record["rowIndex"] = row_index

        finish = _FINISHERS.get(kind.key)
        if finish:
            finish(record)
        result.records.append(record)

    return result


def parse_resource_rows(rows: Sequence[Sequence[object]]) -> list[dict]:
    """
    Consolidated resource rows keyed by column name. Nothing is dropped:
    every row gets a status written back at the same offset.
    """
    parsed: list[dict] = []
    for offset, row in enumerate(rows or []):
        item = {name: cell(row, idx) for idx, name in enumerate(RESOURCE_COLUMNS)}
        item["rowIndex"] = FIRST_DATA_ROW + offset
        parsed.append(item)
    return parsed
