from __future__ import annotations

from dataclasses import dataclass, field

from apps.adsheets.api.v1.helpers.errors import ScopeError


@dataclass(frozen=True)
class Scope:
    """(tenantId, userId, sheetId): the partition every record belongs to."""

    tenant_id: str
    user_id: str
    sheet_id: str

    def __post_init__(self) -> None:
        missing = [
            name
            for name, value in (
                ("tenantId", self.tenant_id),
                ("userId", self.user_id),
                ("sheetId", self.sheet_id),
            )
            if value is None or not str(value).strip()
        ]
        if missing:
            raise ScopeError(f"Missing scope values: {', '.join(missing)}")

    def as_filter(self) -> dict[str, str]:
        return {
            "tenantId": self.tenant_id,
            "userId": self.user_id,
            "sheetId": self.sheet_id,
        }


@dataclass(frozen=True)
class OwnerScope:
    """(tenantId, userId): the partition of the sheet registry."""

    tenant_id: str
    user_id: str

    def __post_init__(self) -> None:
        if not str(self.tenant_id or "").strip():
            raise ScopeError("Missing scope values: tenantId")
        if not str(self.user_id or "").strip():
            raise ScopeError("Missing scope values: userId")

    def as_filter(self) -> dict[str, str]:
        return {"tenantId": self.tenant_id, "userId": self.user_id}


@dataclass(frozen=True)
class SkippedRow:
    row_index: int
    reason: str


@dataclass
class ParseResult:
    records: list[dict] = field(default_factory=list)
    skipped: list[SkippedRow] = field(default_factory=list)


@dataclass(frozen=True)
class SyncResult:
    """`synced` is the parsed count, `persisted` what the store confirmed."""

    kind: str
    synced: int
    persisted: int
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "synced": self.synced,
            "persisted": self.persisted,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class SyncAllResult:
    campaigns: SyncResult
    ads: SyncResult
    keywords: SyncResult

    def counts(self) -> dict[str, int]:
        return {
            "campaigns": self.campaigns.synced,
            "ads": self.ads.synced,
            "keywords": self.keywords.synced,
        }

    def persisted(self) -> dict[str, int]:
        return {
            "campaigns": self.campaigns.persisted,
            "ads": self.ads.persisted,
            "keywords": self.keywords.persisted,
        }
