from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from apps.adsheets.api.v1.endpoints.record_defs import build_router
from apps.adsheets.api.v1.helpers.kinds import CAMPAIGN


class CampaignUpdate(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "examples": [{"name": "Forår 2026", "budget": 250, "status": "PAUSED"}]
        },
    )
    name: str | None = None
    status: str | None = None
    budget: float | str | None = None
    startDate: str | None = None
    endDate: str | None = None


router = build_router(CAMPAIGN.key, CampaignUpdate, "/campaign-defs")
