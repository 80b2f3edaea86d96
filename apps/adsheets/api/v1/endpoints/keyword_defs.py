from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from apps.adsheets.api.v1.endpoints.record_defs import build_router
from apps.adsheets.api.v1.helpers.kinds import KEYWORD


class KeywordUpdate(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"examples": [{"keyword": "sko online", "matchType": "EXACT"}]},
    )
    adGroup: str | None = None
    keyword: str | None = None
    matchType: str | None = None
    cpc: float | str | None = None


router = build_router(KEYWORD.key, KeywordUpdate, "/keyword-defs")
