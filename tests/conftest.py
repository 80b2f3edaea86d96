from __future__ import annotations

import os

os.environ.setdefault("LOG_FILE_ENABLED", "false")

from types import SimpleNamespace
from uuid import uuid4

import pytest

import shared.tenant as tenant_module
from shared.ggSheet import CreatedDocument, SheetsApiError
from apps.adsheets.api.v1.deps import RecordStores
from apps.adsheets.api.v1.helpers.config import reset_validation_cache
from apps.adsheets.api.v1.helpers.errors import PlatformDispatchError
from apps.adsheets.api.v1.helpers.models import OwnerScope, Scope

TENANT_YAML = """\
TIMEZONE: Europe/Copenhagen
DB_HOST: localhost
DB_USER: adsheets
DB_NAME: adsheets
DB_TABLES:
  CAMPAIGNS: campaigns
  ADS: ads
  KEYWORDS: keywords
  SHEETS: sheets
"""


# ============================================================
# FAKE CAPABILITIES
# ============================================================

class FakeSheets:
    """In-memory SheetsClient. Operations named in `fail` raise SheetsApiError."""

    def __init__(self, ranges=None, tab_ids=None, fail=()):
        self.ranges = {key: [list(row) for row in rows] for key, rows in (ranges or {}).items()}
        self.tab_ids = dict(tab_ids or {})
        self.fail = set(fail)
        self.reads = []
        self.writes = []
        self.deleted_rows = []
        self.created = []
        self.renamed = []
        self.deleted_documents = []

    def _check(self, operation):
        if operation in self.fail:
            raise SheetsApiError(operation, RuntimeError("boom"))

    def read_range(self, document_id, range_spec):
        self._check("read_range")
        self.reads.append((document_id, range_spec))
        return [list(row) for row in self.ranges.get(range_spec, [])]

    def write_ranges(self, document_id, entries):
        self._check("write_ranges")
        for range_spec, values in entries:
            self.writes.append((document_id, range_spec, values))

    def write_range(self, document_id, range_spec, values):
        self._check("write_range")
        self.writes.append((document_id, range_spec, values))

    def get_tab_ids(self, document_id):
        self._check("get_tab_ids")
        return dict(self.tab_ids)

    def delete_row(self, document_id, tab_id, row_index):
        self._check("delete_row")
        self.deleted_rows.append((document_id, tab_id, row_index))

    def create_document(self, title, tabs):
        self._check("create_document")
        document_id = f"doc-{len(self.created) + 1}"
        self.created.append((title, list(tabs)))
        return CreatedDocument(
            document_id=document_id,
            url=f"https://docs.google.com/spreadsheets/d/{document_id}/edit",
        )

    def rename_document(self, document_id, name):
        self._check("rename_document")
        self.renamed.append((document_id, name))

    def delete_document(self, document_id):
        self._check("delete_document")
        self.deleted_documents.append(document_id)


def _matches(record, filters):
    return all(record.get(key) == value for key, value in filters.items())


class FakeRecordStore:
    """In-memory MySQLRecordStore with the same filter semantics."""

    def __init__(self, records=None, fail_inserts=()):
        self.records = [dict(record) for record in (records or [])]
        self.fail_inserts = set(fail_inserts)

    def _stamp(self, values):
        return {**values, "id": uuid4().hex, "createdAt": "2026-03-02T10:00:00"}

    def find_many(self, filters):
        found = [dict(r) for r in self.records if _matches(r, filters)]
        return sorted(found, key=lambda r: (r.get("rowIndex") is None, r.get("rowIndex") or 0))

    def find_one(self, filters):
        for record in self.records:
            if _matches(record, filters):
                return dict(record)
        return None

    def find_one_and_update(self, filters, values):
        for record in self.records:
            if _matches(record, filters):
                record.update(values)
                return dict(record)
        return None

    def delete_many(self, filters):
        before = len(self.records)
        self.records = [r for r in self.records if not _matches(r, filters)]
        return before - len(self.records)

    def delete_one(self, filters):
        for position, record in enumerate(self.records):
            if _matches(record, filters):
                del self.records[position]
                return 1
        return 0

    def insert_many(self, records):
        stored = 0
        for record in records:
            if record.get("rowIndex") in self.fail_inserts:
                continue
            self.records.append(self._stamp(record))
            stored += 1
        return stored

    def insert_one(self, values):
        record = self._stamp(values)
        self.records.append(record)
        return dict(record)

    def upsert_one(self, filters, values):
        for record in self.records:
            if _matches(record, filters):
                record.update(values)
                return dict(record)
        return self.insert_one({**filters, **values})

    def shift_row_indexes(self, filters, *, below):
        shifted = 0
        for record in self.records:
            row = record.get("rowIndex")
            if _matches(record, filters) and isinstance(row, int) and row > below:
                record["rowIndex"] = row - 1
                shifted += 1
        return shifted


class FakePlatform:
    """Records every batch; methods named in `fail` raise PlatformDispatchError."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.prepared = 0
        self.prepared_at_first_batch = None
        self.calls = {
            "create_campaigns": [],
            "create_ad_groups": [],
            "create_ads": [],
            "create_criteria": [],
        }

    def prepare(self):
        self.prepared += 1
        return object(), "1"

    def _create(self, method, ops):
        if not ops:
            return []
        if self.prepared_at_first_batch is None:
            self.prepared_at_first_batch = self.prepared
        if method in self.fail:
            raise PlatformDispatchError(method, "rejected")
        self.calls[method].append(list(ops))
        return [f"customers/1/{method}/{i}" for i, _ in enumerate(ops)]

    def create_campaigns(self, ops):
        return self._create("create_campaigns", ops)

    def create_ad_groups(self, ops):
        return self._create("create_ad_groups", ops)

    def create_ads(self, ops):
        return self._create("create_ads", ops)

    def create_criteria(self, ops):
        return self._create("create_criteria", ops)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scope():
    return Scope(tenant_id="acme", user_id="u1", sheet_id="doc-1")


@pytest.fixture
def owner():
    return OwnerScope(tenant_id="acme", user_id="u1")


@pytest.fixture
def tenant_dir(tmp_path, monkeypatch):
    for tenant in ("acme", "beta"):
        (tmp_path / f"{tenant}.yaml").write_text(TENANT_YAML, encoding="utf-8")
    monkeypatch.setattr(tenant_module, "SYSTEM_SECRETS_DIR", tmp_path)
    monkeypatch.setattr(tenant_module, "LOCAL_SECRETS_DIR", tmp_path)
    reset_validation_cache()
    yield tmp_path
    reset_validation_cache()


@pytest.fixture
def tenant_context(tenant_dir):
    token = tenant_module.set_tenant_context("acme")
    yield
    tenant_module.reset_tenant_context(token)


@pytest.fixture
def backend():
    return SimpleNamespace(
        sheets=FakeSheets(),
        stores=RecordStores(
            campaign=FakeRecordStore(),
            ad=FakeRecordStore(),
            keyword=FakeRecordStore(),
            sheet=FakeRecordStore(),
        ),
        platform=FakePlatform(),
    )


@pytest.fixture
def client(tenant_dir, backend):
    from fastapi.testclient import TestClient

    from main import app
    from apps.adsheets.api.main import app as adsheets_app
    from apps.adsheets.api.v1.deps import (
        get_ads_platform,
        get_record_stores,
        get_sheets_client,
    )

    adsheets_app.dependency_overrides[get_sheets_client] = lambda: backend.sheets
    adsheets_app.dependency_overrides[get_record_stores] = lambda: backend.stores
    adsheets_app.dependency_overrides[get_ads_platform] = lambda: backend.platform
    try:
        yield TestClient(app)
    finally:
        adsheets_app.dependency_overrides.clear()
