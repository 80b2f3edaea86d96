from __future__ import annotations

import re
from dataclasses import dataclass

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def db_column(field_name: str) -> str:
    """startDate -> start_date"""
    return _CAMEL_RE.sub("_", field_name).lower()


@dataclass(frozen=True)
class FieldSpec:
    name: str
    column: str | None = None
    required: bool = False
    numeric: bool = False


@dataclass(frozen=True)
class RecordKind:
    key: str
    label: str
    table_key: str
    fields: tuple[FieldSpec, ...]
    read_range: str | None = None
    scope_fields: tuple[str, ...] = ("tenantId", "userId", "sheetId")
    positional: bool = True

    @property
    def data_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def all_fields(self) -> tuple[str, ...]:
        extra = ("rowIndex",) if self.positional else ()
        return ("id", *self.scope_fields, *self.data_fields, *extra, "createdAt")

    @property
    def sheet_columns(self) -> dict[str, str]:
        return {f.name: f.column for f in self.fields if f.column}

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    @property
    def numeric_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.numeric)


# ============================================================
# SHEET-BACKED KINDS
# ============================================================

CAMPAIGN = RecordKind(
    key="campaign",
    label="Campaign",
    table_key="CAMPAIGNS",
    read_range="A2:E",
    fields=(
        FieldSpec("name", "A", required=True),
        FieldSpec("status", "B"),
        FieldSpec("budget", "C", numeric=True),
        FieldSpec("startDate", "D", required=True),
        FieldSpec("endDate", "E", required=True),
        FieldSpec("campaignId"),
    ),
)

AD = RecordKind(
    key="ad",
    label="Ad",
    table_key="ADS",
    read_range="A2:G",
    fields=(
        FieldSpec("adGroup", "A", required=True),
        FieldSpec("headline1", "B", required=True),
        FieldSpec("headline2", "C"),
        FieldSpec("description", "D", required=True),
        FieldSpec("finalUrl", "E", required=True),
        FieldSpec("path1", "F"),
        FieldSpec("path2", "G"),
    ),
)

KEYWORD = RecordKind(
    key="keyword",
    label="Keyword",
    table_key="KEYWORDS",
    read_range="A2:D",
    fields=(
        FieldSpec("adGroup", "A", required=True),
        FieldSpec("keyword", "B", required=True),
        FieldSpec("matchType", "C"),
        FieldSpec("cpc", "D", numeric=True),
    ),
)

# ============================================================
# REGISTRY KIND
# ============================================================

SHEET = RecordKind(
    key="sheet",
    label="Sheet",
    table_key="SHEETS",
    fields=(
        FieldSpec("name", required=True),
        FieldSpec("sheetId", required=True),
        FieldSpec("sheetUrl"),
        FieldSpec("lastSynced"),
    ),
    scope_fields=("tenantId", "userId"),
    positional=False,
)

SHEET_KINDS = (CAMPAIGN, AD, KEYWORD)

# Header rows written into a new document, in sheet column order
SHEET_HEADERS = {
    "campaign": ["Campaign Name", "Status", "Budget", "Start Date", "End Date"],
    "ad": [
        "Ad Group",
        "Headline 1",
        "Headline 2",
        "Description",
        "Final URL",
        "Path 1",
        "Path 2",
    ],
    "keyword": ["Ad Group", "Keyword", "Match Type", "CPC"],
    "resources": [
        "Resource Type",
        "ID",
        "Parent ID",
        "Name",
        "Budget",
        "Status",
        "Start Date",
        "End Date",
        "Headline 1",
        "Headline 2",
        "Description",
        "Final URL",
        "Keyword",
        "Match Type",
        "Action",
        "Result",
    ],
}
