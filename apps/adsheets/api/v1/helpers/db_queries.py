from __future__ import annotations

from uuid import uuid4

from apps.adsheets.api.v1.helpers.config import get_db_tables
from apps.adsheets.api.v1.helpers.kinds import RecordKind, db_column
from shared.db import execute_each, execute_write, fetch_all, run_transaction
from shared.logger import get_logger
from shared.utils import now_local

logger = get_logger("AdSheets DB")


# ============================================================
# HELPERS
# ============================================================

def new_record_id() -> str:
    return uuid4().hex


def _to_record(kind: RecordKind, row: dict) -> dict:
    record = {name: row.get(db_column(name)) for name in kind.all_fields}
    if record.get("budget") is not None:
        record["budget"] = float(record["budget"])
    if record.get("cpc") is not None:
        record["cpc"] = float(record["cpc"])
    return record


class MySQLRecordStore:
    """
    Persistence for one record kind, backed by the tenant's table for it.

    Filters and values use record field names (camelCase) and are limited to
    the kind's known fields; column names are derived, never taken from input.
    """

    def __init__(self, kind: RecordKind) -> None:
        self.kind = kind

    # -------------------------------------------------
    # SQL building
    # -------------------------------------------------

    @property
    def table(self) -> str:
        return get_db_tables()[self.kind.table_key]

    def _check_fields(self, names) -> None:
        unknown = [name for name in names if name not in self.kind.all_fields]
        if unknown:
            raise ValueError(
                f"Unknown {self.kind.key} fields: {', '.join(sorted(unknown))}"
            )

    def _where(self, filters: dict) -> tuple[str, list[object]]:
        self._check_fields(filters.keys())
        if not filters:
            raise ValueError("Refusing to run an unfiltered statement")
        clauses: list[str] = []
        params: list[object] = []
        for name, value in filters.items():
            if value is None:
                clauses.append(f"{db_column(name)} IS NULL")
            else:
                clauses.append(f"{db_column(name)} = %s")
                params.append(value)
        return " WHERE " + " AND ".join(clauses), params

    def _select(self) -> str:
        columns = ", ".join(db_column(name) for name in self.kind.all_fields)
        return f"SELECT {columns} FROM {self.table}"

    def _insert_sql(self) -> str:
        columns = [db_column(name) for name in self.kind.all_fields]
        placeholders = ", ".join(["%s"] * len(columns))
        return f"INSERT INTO {self.table} ({', '.join(columns)}) VALUES ({placeholders})"

    def _insert_params(self, record: dict) -> tuple:
        return tuple(record.get(name) for name in self.kind.all_fields)

    def _stamp(self, values: dict) -> dict:
        record = {name: values.get(name) for name in self.kind.all_fields}
        record["id"] = new_record_id()
        record["createdAt"] = now_local()
        return record

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def find_many(self, filters: dict) -> list[dict]:
        where, params = self._where(filters)
        order = " ORDER BY row_index, created_at" if self.kind.positional else " ORDER BY created_at"
        rows = fetch_all(self._select() + where + order, tuple(params))
        return [_to_record(self.kind, row) for row in rows]

    def find_one(self, filters: dict) -> dict | None:
        where, params = self._where(filters)
        rows = fetch_all(self._select() + where + " LIMIT 1", tuple(params))
        return _to_record(self.kind, rows[0]) if rows else None

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def find_one_and_update(self, filters: dict, values: dict) -> dict | None:
        """Apply `values` to the single matching row; None when nothing matches."""
        self._check_fields(values.keys())
        where, where_params = self._where(filters)
        select_sql = self._select() + where + " LIMIT 1 FOR UPDATE"

        def _work(cursor) -> dict | None:
            cursor.execute(select_sql, tuple(where_params))
            row = cursor.fetchone()
            if row is None:
                return None
            if values:
                assignments = ", ".join(f"{db_column(name)} = %s" for name in values)
                cursor.execute(
                    f"UPDATE {self.table} SET {assignments} WHERE id = %s",
                    (*values.values(), row["id"]),
                )
            record = _to_record(self.kind, row)
            record.update(values)
            return record

        return run_transaction(_work, cursor_kwargs={"dictionary": True})

    def delete_many(self, filters: dict) -> int:
        where, params = self._where(filters)
        return execute_write(f"DELETE FROM {self.table}" + where, tuple(params))

    def delete_one(self, filters: dict) -> int:
        where, params = self._where(filters)
        return execute_write(f"DELETE FROM {self.table}" + where + " LIMIT 1", tuple(params))

    def insert_many(self, records: list[dict]) -> int:
        """
        Insert every record with a fresh id and creation timestamp.
        Failing rows are logged and skipped; returns how many were stored.
        """
        if not records:
            return 0

        stamped = [self._stamp(record) for record in records]
        succeeded, errors = execute_each(
            self._insert_sql(),
            [self._insert_params(record) for record in stamped],
        )
        for position, message in errors:
            logger.warning(
                "Record insert failed",
                extra={
                    "extra_fields": {
                        "kind": self.kind.key,
                        "rowIndex": stamped[position].get("rowIndex"),
                        "error": message,
                    }
                },
            )
        return succeeded

    def insert_one(self, values: dict) -> dict:
        self._check_fields(values.keys())
        record = self._stamp(values)
        execute_write(self._insert_sql(), self._insert_params(record))
        return record

    def upsert_one(self, filters: dict, values: dict) -> dict:
        self._check_fields(values.keys())
        where, where_params = self._where(filters)
        select_sql = self._select() + where + " LIMIT 1 FOR UPDATE"

        def _work(cursor) -> dict:
            cursor.execute(select_sql, tuple(where_params))
            row = cursor.fetchone()
            if row is not None:
                if values:
                    assignments = ", ".join(f"{db_column(name)} = %s" for name in values)
                    cursor.execute(
                        f"UPDATE {self.table} SET {assignments} WHERE id = %s",
                        (*values.values(), row["id"]),
                    )
                record = _to_record(self.kind, row)
                record.update(values)
                return record

            record = self._stamp({**filters, **values})
            cursor.execute(self._insert_sql(), self._insert_params(record))
            return record

        return run_transaction(_work, cursor_kwargs={"dictionary": True})

    def shift_row_indexes(self, filters: dict, *, below: int) -> int:
        """Move every record under sheet row `below` up by one row."""
        where, params = self._where(filters)
        return execute_write(
            f"UPDATE {self.table} SET row_index = row_index - 1"
            + where
            + " AND row_index > %s",
            (*params, below),
        )
