from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from apps.adsheets.api.v1.deps import get_owner_scope, get_sheet_registry, http_errors
from apps.adsheets.api.v1.helpers.models import OwnerScope
from apps.adsheets.api.v1.helpers.sheets_registry import SheetRegistry

router = APIRouter(prefix="/sheets")


class SheetNameRequest(BaseModel):
    model_config = ConfigDict(json_schema_extra={"examples": [{"name": "Forår 2026"}]})
    name: str | None = None


# ============================================================
# SHEETS
# ============================================================

@router.post("", status_code=201)
def create_sheet(
    payload: SheetNameRequest,
    owner: OwnerScope = Depends(get_owner_scope),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    """
    Create a spreadsheet with the Kampagner, Annoncer, Keywords,
    AllResources and Forklaring tabs and register it for the caller.

    Example response:
    {
      "meta": {"timestamp": "2026-03-02T10:00:00+01:00", "duration_ms": 2210},
      "data": {
        "id": "4f9c...", "name": "Forår 2026",
        "sheetId": "1AbC...", "sheetUrl": "https://docs.google.com/spreadsheets/d/1AbC.../edit"
      }
    }
    """
    with http_errors():
        return registry.create(owner, payload.name)


@router.get("")
def list_sheets(
    owner: OwnerScope = Depends(get_owner_scope),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    with http_errors():
        return registry.list(owner)


@router.get("/{record_id}")
def get_sheet(
    record_id: str,
    owner: OwnerScope = Depends(get_owner_scope),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    with http_errors():
        return registry.get(owner, record_id)


@router.put("/{record_id}")
def rename_sheet(
    record_id: str,
    payload: SheetNameRequest,
    owner: OwnerScope = Depends(get_owner_scope),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    with http_errors():
        return registry.rename(owner, record_id, payload.name)


@router.delete("/{record_id}")
def delete_sheet(
    record_id: str,
    owner: OwnerScope = Depends(get_owner_scope),
    registry: SheetRegistry = Depends(get_sheet_registry),
):
    with http_errors():
        return registry.delete(owner, record_id)
