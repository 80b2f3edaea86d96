import pytest

from shared.ggSheet import a1_range
from apps.adsheets.api.v1.helpers.dispatch import resources_range

HEADERS = {"X-Tenant-Id": "acme", "X-User-Id": "u1"}
BASE = "/api/adsheets/v1"


def _campaign(record_id, row_index, tenant="acme", user="u1", sheet="doc-1", **values):
    return {
        "id": record_id,
        "tenantId": tenant,
        "userId": user,
        "sheetId": sheet,
        "name": f"Campaign {record_id}",
        "status": "ENABLED",
        "budget": 10.0,
        "startDate": "2026-03-01",
        "endDate": "2026-03-31",
        "campaignId": str(row_index),
        "rowIndex": row_index,
        **values,
    }


# ============================================================
# ROOT / TENANT CONTEXT
# ============================================================

def test_ping_is_public(client):
    response = client.get("/ping")

    assert response.status_code == 200
    body = response.json()
    assert body["data"] == {"status": "ok"}
    assert "request_id" in body["meta"]


def test_missing_tenant_header(client):
    response = client.get(f"{BASE}/campaign-defs/doc-1", headers={"X-User-Id": "u1"})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Missing X-Tenant-Id header"


def test_unknown_tenant(client):
    response = client.get(
        f"{BASE}/campaign-defs/doc-1",
        headers={"X-Tenant-Id": "ghost", "X-User-Id": "u1"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Tenant (ghost) not found!"


def test_invalid_tenant_config(client, tenant_dir):
    (tenant_dir / "empty.yaml").write_text("DB_HOST: h\n", encoding="utf-8")

    response = client.get(
        f"{BASE}/campaign-defs/doc-1",
        headers={"X-Tenant-Id": "empty", "X-User-Id": "u1"},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["app"] == "AdSheets"
    assert "DB_USER" in error["missing"]


def test_missing_user_header(client):
    response = client.get(f"{BASE}/campaign-defs/doc-1", headers={"X-Tenant-Id": "acme"})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Missing X-User-Id header"


# ============================================================
# RECORD ROUTES
# ============================================================

def test_list_is_scoped(client, backend):
    backend.stores.campaign.records = [
        _campaign("c1", 2),
        _campaign("c2", 3, tenant="beta"),
        _campaign("c3", 4, sheet="doc-2"),
    ]

    response = client.get(f"{BASE}/campaign-defs/doc-1", headers=HEADERS)

    assert response.status_code == 200
    assert [r["id"] for r in response.json()["data"]] == ["c1"]


def test_update_mirrors_cell(client, backend):
    backend.stores.campaign.records = [_campaign("c1", 3)]

    response = client.put(
        f"{BASE}/campaign-defs/doc-1/c1",
        headers=HEADERS,
        json={"name": "Forår"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Forår"
    assert backend.sheets.writes == [("doc-1", "'Kampagner'!A3", [["Forår"]])]


def test_update_rejects_unknown_field(client, backend):
    backend.stores.keyword.records = []

    response = client.put(
        f"{BASE}/keyword-defs/doc-1/k1",
        headers=HEADERS,
        json={"bid": 3},
    )

    assert response.status_code == 422


def test_update_rejects_empty_patch(client, backend):
    backend.stores.ad.records = []

    response = client.put(f"{BASE}/ad-defs/doc-1/a1", headers=HEADERS, json={})

    assert response.status_code == 400


def test_update_other_tenant_is_not_found(client, backend):
    backend.stores.campaign.records = [_campaign("c1", 3, tenant="beta")]

    response = client.put(
        f"{BASE}/campaign-defs/doc-1/c1",
        headers=HEADERS,
        json={"name": "Hijack"},
    )

    assert response.status_code == 404
    assert backend.stores.campaign.records[0]["name"] == "Campaign c1"


@pytest.mark.parametrize("owner", [{"tenant": "beta"}, {"user": "u2"}])
def test_delete_other_owner_is_not_found(client, backend, owner):
    backend.sheets.tab_ids = {"Kampagner": 7}
    backend.stores.campaign.records = [_campaign("c1", 3, **owner)]

    response = client.delete(f"{BASE}/campaign-defs/doc-1/c1", headers=HEADERS)

    assert response.status_code == 404
    assert backend.sheets.deleted_rows == []
    assert len(backend.stores.campaign.records) == 1


def test_delete_row(client, backend):
    backend.sheets.tab_ids = {"Kampagner": 7}
    backend.stores.campaign.records = [_campaign("c1", 2), _campaign("c2", 3)]

    response = client.delete(f"{BASE}/campaign-defs/doc-1/c1", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["data"]["rowsShifted"] == 1
    assert backend.sheets.deleted_rows == [("doc-1", 7, 2)]
    assert backend.stores.campaign.records[0]["rowIndex"] == 2


def test_delete_with_invalid_row_is_server_error(client, backend):
    backend.stores.campaign.records = [_campaign("c1", None)]

    response = client.delete(f"{BASE}/campaign-defs/doc-1/c1", headers=HEADERS)

    assert response.status_code == 500
    assert len(backend.stores.campaign.records) == 1


def test_sync_db_for_one_kind(client, backend):
    backend.sheets.ranges[a1_range("Keywords", "A2:D")] = [
        ["Group", "sko", "exact", "1.2"],
        ["Group", "", "", ""],
    ]

    response = client.post(f"{BASE}/keyword-defs/doc-1/sync-db", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["data"] == {"synced": 1, "persisted": 1, "skipped": 1}
    assert backend.stores.keyword.records[0]["matchType"] == "EXACT"


def test_sync_db_read_failure_is_bad_gateway(client, backend):
    backend.sheets.fail = {"read_range"}
    backend.stores.ad.records = [{"id": "a1", "tenantId": "acme", "userId": "u1", "sheetId": "doc-1"}]

    response = client.post(f"{BASE}/ad-defs/doc-1/sync-db", headers=HEADERS)

    assert response.status_code == 502
    assert len(backend.stores.ad.records) == 1


# ============================================================
# SYNC ROUTES
# ============================================================

def test_sync_all_counts_and_stamps_registry(client, backend):
    backend.sheets.ranges[a1_range("Kampagner", "A2:E")] = [
        ["Spring", "", "100", "2026-03-01", "2026-03-31"],
        ["Summer", "", "", "2026-06-01", "2026-06-30"],
    ]
    backend.sheets.ranges[a1_range("Annoncer", "A2:G")] = [
        ["Group", "Headline", "", "Desc", "https://example.dk"]
    ] * 5
    backend.stores.sheet.records = [
        {"id": "s1", "tenantId": "acme", "userId": "u1", "sheetId": "doc-1", "name": "Forår"}
    ]

    response = client.post(f"{BASE}/sync/doc-1", headers=HEADERS)

    assert response.status_code == 200
    data = response.json()["data"]
    assert {k: data[k] for k in ("campaigns", "ads", "keywords")} == {
        "campaigns": 2,
        "ads": 5,
        "keywords": 0,
    }
    assert data["persisted"]["ads"] == 5
    assert backend.stores.sheet.records[0]["lastSynced"] is not None


def test_dispatch_statuses(client, backend):
    backend.sheets.ranges[resources_range("AllResources")] = [
        ["campaign", "c1", "", "Spring", "100", "", "", "", "", "", "", "", "", "", "create"],
        ["keyword", "", "ag1", "", "", "", "", "", "", "", "", "", "sko"],
    ]

    response = client.post(f"{BASE}/sync/doc-1/ads", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["data"] == {"statuses": ["Pending", "No action"]}
    assert len(backend.platform.calls["create_campaigns"]) == 1


def test_dispatch_rejected_batch_is_bad_gateway(client, backend):
    backend.platform.fail = {"create_campaigns"}
    backend.sheets.ranges[resources_range("AllResources")] = [
        ["campaign", "c1", "", "Spring", "100", "", "", "", "", "", "", "", "", "", "create"],
    ]

    response = client.post(f"{BASE}/sync/doc-1/ads", headers=HEADERS)

    assert response.status_code == 502
    assert backend.sheets.writes == []


def test_all_ads(client, backend):
    backend.sheets.ranges[a1_range("Kampagner", "A2:E")] = [
        ["Spring", "", "100", "2026-03-01", "2026-03-31"],
    ]

    response = client.post(f"{BASE}/sync/doc-1/all-ads", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["data"] == {
        "campaignsSynced": 1,
        "adsSynced": 0,
        "keywordsSynced": 0,
        "adsStatuses": [],
    }


# ============================================================
# SHEET REGISTRY
# ============================================================

def test_sheet_lifecycle(client, backend):
    created = client.post(f"{BASE}/sheets", headers=HEADERS, json={"name": "Forår"})
    assert created.status_code == 201
    record = created.json()["data"]
    assert record["sheetId"] == "doc-1"
    assert [tab.title for tab in backend.sheets.created[0][1]][-1] == "Forklaring"

    duplicate = client.post(f"{BASE}/sheets", headers=HEADERS, json={"name": "Forår"})
    assert duplicate.status_code == 409
    assert len(backend.sheets.created) == 1

    listed = client.get(f"{BASE}/sheets", headers=HEADERS)
    assert [r["id"] for r in listed.json()["data"]] == [record["id"]]

    renamed = client.put(f"{BASE}/sheets/{record['id']}", headers=HEADERS, json={"name": "Sommer"})
    assert renamed.json()["data"]["name"] == "Sommer"
    assert backend.sheets.renamed == [("doc-1", "Sommer")]

    other_user = client.get(
        f"{BASE}/sheets/{record['id']}",
        headers={"X-Tenant-Id": "acme", "X-User-Id": "u2"},
    )
    assert other_user.status_code == 404

    deleted = client.delete(f"{BASE}/sheets/{record['id']}", headers=HEADERS)
    assert deleted.json()["data"] == {"id": record["id"], "deleted": True}
    assert backend.stores.sheet.records == []


def test_create_sheet_without_name(client):
    response = client.post(f"{BASE}/sheets", headers=HEADERS, json={})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "name is required"
