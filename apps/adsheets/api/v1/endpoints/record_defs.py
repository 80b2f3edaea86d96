from fastapi import APIRouter, Body, Depends, Path
from pydantic import BaseModel

from apps.adsheets.api.v1.deps import get_scope, get_sync_services, http_errors
from apps.adsheets.api.v1.helpers.models import Scope
from apps.adsheets.api.v1.helpers.sync_service import SheetSyncService


def build_router(kind_key: str, update_model: type[BaseModel], prefix: str) -> APIRouter:
    """
    List / update / delete / sync-db routes for one sheet-backed record kind.
    Every route is scoped to the caller's tenant, user and sheetId.
    """
    router = APIRouter(prefix=prefix)

    def _service(
        services: dict[str, SheetSyncService] = Depends(get_sync_services),
    ) -> SheetSyncService:
        return services[kind_key]

    @router.get("/{sheetId}")
    def list_records(
        scope: Scope = Depends(get_scope),
        service: SheetSyncService = Depends(_service),
    ):
        with http_errors():
            return service.list(scope)

    @router.put("/{sheetId}/{record_id}")
    def update_record(
        record_id: str = Path(..., min_length=1),
        payload: update_model = Body(...),  # type: ignore[valid-type]
        scope: Scope = Depends(get_scope),
        service: SheetSyncService = Depends(_service),
    ):
        patch = payload.model_dump(exclude_unset=True)
        with http_errors():
            return service.update(scope, record_id, patch)

    @router.delete("/{sheetId}/{record_id}")
    def delete_record(
        record_id: str = Path(..., min_length=1),
        scope: Scope = Depends(get_scope),
        service: SheetSyncService = Depends(_service),
    ):
        with http_errors():
            return service.delete(scope, record_id)

    @router.post("/{sheetId}/sync-db")
    def sync_records(
        scope: Scope = Depends(get_scope),
        service: SheetSyncService = Depends(_service),
    ):
        """
        Replace every stored record of this kind for the sheet with what the
        tab currently holds.

        Example response:
        {
          "meta": {"timestamp": "2026-03-02T10:00:00+01:00", "duration_ms": 812},
          "data": {"synced": 4, "persisted": 4, "skipped": 1}
        }
        """
        with http_errors():
            return service.sync_from_sheet(scope).as_dict()

    return router
