# shared/db.py

from typing import Callable, Sequence, TypeVar
import hashlib
import threading
import time
import random

import mysql.connector
from mysql.connector import pooling
from mysql.connector.errors import Error as MySQLError, PoolError

from shared.utils import load_env
from shared.tenant import get_env

load_env()

T = TypeVar("T")

_POOL_LOCK = threading.Lock()
_POOLS: dict[str, pooling.MySQLConnectionPool] = {}


# =====================================================
# CONNECTION SETTINGS
# =====================================================

def _env_flag(key: str, default: str) -> bool:
    value = get_env(key, default)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(key: str, default: int, minimum: int) -> int:
    raw = get_env(key, str(default))
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        value = default
    return max(value, minimum)


def _build_connection_kwargs() -> dict:
    return {
        "host": get_env("DB_HOST"),
        "port": _env_int("DB_PORT", 3306, 1),
        "user": get_env("DB_USER"),
        "password": get_env("DB_PASSWORD"),
        "database": get_env("DB_NAME"),
        "ssl_disabled": _env_flag("DB_SSL_DISABLED", "false"),
    }


def _pool_key(params: dict) -> str:
    signature = "|".join(
        str(params.get(k))
        for k in ("host", "port", "user", "password", "database", "ssl_disabled")
    )
    digest = hashlib.md5(signature.encode("utf-8")).hexdigest()[:12]
    return f"db_{digest}"


def _get_pool() -> pooling.MySQLConnectionPool:
    params = _build_connection_kwargs()
    key = _pool_key(params)
    with _POOL_LOCK:
        pool = _POOLS.get(key)
        if pool is None:
            pool = pooling.MySQLConnectionPool(
                pool_name=key,
                pool_size=_env_int("DB_POOL_SIZE", 5, 1),
                pool_reset_session=_env_flag("DB_POOL_RESET_SESSION", "true"),
                **params,
            )
            _POOLS[key] = pool
        return pool


def get_connection():
    """
    Connection for the current tenant. Pooled unless DB_POOL_ENABLED is off;
    an exhausted pool is retried with jittered backoff until the acquire
    timeout passes.
    """
    if not _env_flag("DB_POOL_ENABLED", "true"):
        return mysql.connector.connect(**_build_connection_kwargs())

    pool = _get_pool()
    timeout_ms = _env_int("DB_POOL_ACQUIRE_TIMEOUT_MS", 2000, 0)
    backoff_ms = _env_int("DB_POOL_ACQUIRE_BACKOFF_MS", 50, 1)
    max_backoff_ms = _env_int("DB_POOL_ACQUIRE_MAX_BACKOFF_MS", 500, 1)
    deadline = time.monotonic() + timeout_ms / 1000 if timeout_ms > 0 else None
    attempt = 0

    while True:
        try:
            return pool.get_connection()
        except PoolError as exc:
            message = str(exc).lower()
            if "exhausted" not in message and "failed getting connection" not in message:
                raise
            if deadline is not None and time.monotonic() >= deadline:
                raise
            attempt += 1
            sleep_ms = min(max_backoff_ms, backoff_ms * (1 + attempt * 0.2))
            sleep_ms *= random.uniform(0.75, 1.25)
            time.sleep(max(sleep_ms, 1) / 1000)


# =====================================================
# QUERY HELPERS
# =====================================================

def fetch_all(query: str, params: tuple | None = None) -> list[dict]:
    """
    Generic SELECT query executor.
    """
    conn = get_connection()
    cursor = conn.cursor(dictionary=True)

    try:
        cursor.execute(query, params)
        return cursor.fetchall()
    finally:
        cursor.close()
        conn.close()


def run_transaction(
    work: Callable[[mysql.connector.cursor.MySQLCursor], T],
    *,
    cursor_kwargs: dict | None = None,
) -> T:
    conn = get_connection()
    cursor = conn.cursor(**(cursor_kwargs or {}))
    try:
        conn.start_transaction()
        result = work(cursor)
        conn.commit()
        return result
    except Exception:
        conn.rollback()
        raise
    finally:
        cursor.close()
        conn.close()


def execute_write(query: str, params: tuple | None = None) -> int:
    def _work(cursor: mysql.connector.cursor.MySQLCursor) -> int:
        cursor.execute(query, params)
        return cursor.rowcount

    return run_transaction(_work)


def execute_each(
    query: str,
    rows: Sequence[tuple],
) -> tuple[int, list[tuple[int, str]]]:
    """
    Execute one statement per row inside a single transaction.

    A failing row is recorded and skipped instead of rolling back the rows
    before it. Returns (succeeded, [(row_position, error_message), ...]).
    """
    if not rows:
        return 0, []

    def _work(cursor: mysql.connector.cursor.MySQLCursor):
        succeeded = 0
        errors: list[tuple[int, str]] = []
        for position, row in enumerate(rows):
            try:
                cursor.execute(query, row)
            except MySQLError as exc:
                errors.append((position, str(exc)))
                continue
            succeeded += 1
        return succeeded, errors

    return run_transaction(_work)
