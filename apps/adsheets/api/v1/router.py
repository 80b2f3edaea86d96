from fastapi import APIRouter

from apps.adsheets.api.v1.endpoints import (
    ad_defs,
    campaign_defs,
    keyword_defs,
    sheets,
    sync,
)

router = APIRouter(prefix="/v1")
router.include_router(sheets.router, tags=["sheets"])
router.include_router(campaign_defs.router, tags=["campaigns"])
router.include_router(ad_defs.router, tags=["ads"])
router.include_router(keyword_defs.router, tags=["keywords"])
router.include_router(sync.router, tags=["sync"])
