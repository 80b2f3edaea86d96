from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from apps.adsheets.api.v1.endpoints.record_defs import build_router
from apps.adsheets.api.v1.helpers.kinds import AD


class AdUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")
    adGroup: str | None = None
    headline1: str | None = None
    headline2: str | None = None
    description: str | None = None
    finalUrl: str | None = None
    path1: str | None = None
    path2: str | None = None


router = build_router(AD.key, AdUpdate, "/ad-defs")
