# shared/utils.py

from __future__ import annotations

from datetime import datetime
from contextvars import copy_context
from zoneinfo import ZoneInfo
import time
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, TypeVar, Any

from dotenv import load_dotenv

from shared.constants import PARALLEL_MAX_WORKERS
from shared.logger import get_logger
from shared.tenant import get_env, get_timezone

R = TypeVar("R")

ParallelTask = tuple[Callable[..., R], tuple[Any, ...]]

_utils_logger = None


def _get_logger():
    global _utils_logger
    if _utils_logger is None:
        _utils_logger = get_logger("Utils")
    return _utils_logger


LOCAL_ETC_DIR = Path(__file__).resolve().parents[1] / "etc"
LOCAL_SECRETS_DIR = LOCAL_ETC_DIR / "secrets"

# ======================================================
# DATE HELPERS
# ======================================================


def now_local() -> datetime:
    """
    Current wall-clock time in the tenant timezone, without tzinfo
    (MySQL DATETIME columns are naive).
    """
    return datetime.now(ZoneInfo(get_timezone())).replace(tzinfo=None)


# ======================================================
# VALIDATION
# ======================================================


def _validate_task(task: ParallelTask) -> None:
    if not isinstance(task, tuple) or len(task) != 2:
        raise TypeError("Task must be (callable, args_tuple)")

    func, args = task

    if not callable(func):
        raise TypeError("Task function must be callable")

    if not isinstance(args, tuple):
        raise TypeError("Args must be tuple")


def _task_name(func: Callable[..., Any]) -> str:
    return getattr(func, "__qualname__", None) or getattr(func, "__name__", repr(func))


# ======================================================
# SAFE PARAM LOGGING
# ======================================================


def _safe_serialize_args(args: tuple[Any, ...]) -> list[Any]:
    out: list[Any] = []
    for a in args:
        if isinstance(a, (str, int, float, bool)) or a is None:
            out.append(a)
        elif isinstance(a, list):
            out.append({"type": "list", "length": len(a), "sample": a[:3]})
        elif isinstance(a, dict):
            out.append({"type": "dict", "keys": list(a.keys())[:10]})
        else:
            out.append({"type": type(a).__name__})
    return out


# ======================================================
# TASK EXECUTION
# ======================================================


def _run_task(
    func: Callable[..., R],
    args: tuple[Any, ...],
    *,
    api_name: str,
) -> R:
    start = time.monotonic()
    summary = {
        "api": api_name,
        "function": _task_name(func),
        "params": _safe_serialize_args(args),
    }

    try:
        result = func(*args)
    except Exception as exc:
        _get_logger().error(
            "Task summary",
            extra={
                "extra_fields": {
                    **summary,
                    "status": "failed",
                    "duration_ms": int((time.monotonic() - start) * 1000),
                    "error": str(exc),
                }
            },
        )
        raise

    _get_logger().debug(
        "Task summary",
        extra={
            "extra_fields": {
                **summary,
                "status": "success",
                "duration_ms": int((time.monotonic() - start) * 1000),
            }
        },
    )
    return result


# ======================================================
# PARALLEL EXECUTION
# ======================================================


def run_parallel(
    *,
    tasks: Iterable[ParallelTask],
    api_name: str = "default",
    max_workers: int = PARALLEL_MAX_WORKERS,
) -> list[Any]:
    """
    Run (callable, args) tasks on a thread pool and return results in task order.

    - Context variables (tenant config, request id) are copied into each task
    - Every task runs once; the first failing task re-raises after all are joined
    """
    task_list = list(tasks)
    if not task_list:
        return []

    for t in task_list:
        _validate_task(t)

    results: list[Any] = [None] * len(task_list)
    first_error: BaseException | None = None

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(task_list)))) as executor:
        future_map = {
            executor.submit(
                copy_context().run,
                _run_task,
                func,
                args,
                api_name=api_name,
            ): idx
            for idx, (func, args) in enumerate(task_list)
        }

        for future in as_completed(future_map):
            idx = future_map[future]
            try:
                results[idx] = future.result()
            except Exception as exc:
                if first_error is None:
                    first_error = exc

    if first_error is not None:
        raise first_error

    return results


# ======================================================
# ROUTE META
# ======================================================


def format_hms(seconds: float) -> str:
    total_ms = int(seconds * 1000)
    s, ms = divmod(total_ms, 1000)
    m, s = divmod(s, 60)
    h, m = divmod(m, 60)
    return f"{h:02}:{m:02}:{s:02}.{ms:03}"


# ======================================================
# SECRET FILE RESOLUTION
# ======================================================


def load_env() -> None:
    for path in (Path("/etc/.env"), LOCAL_ETC_DIR / ".env"):
        if path.is_file():
            load_dotenv(path)
            return


def resolve_secret_path(
    env_var: str,
    filename: str,
    *,
    fallback_env_vars: tuple[str, ...] = (),
) -> str:
    env_value = None
    for key in (env_var, *fallback_env_vars):
        env_value = get_env(key)
        if env_value:
            break

    if env_value and Path(env_value).is_file():
        return env_value

    if env_value and not Path(env_value).is_absolute():
        for base in (Path("/etc/secrets"), LOCAL_SECRETS_DIR):
            candidate = base / env_value
            if candidate.is_file():
                return str(candidate)

    for base in (Path("/etc/secrets"), LOCAL_SECRETS_DIR):
        candidate = base / filename
        if candidate.is_file():
            return str(candidate)

    if env_value:
        return env_value

    raise RuntimeError(
        f"Secret file not found for {env_var}. "
        f"Tried {filename} in /etc/secrets and etc/secrets."
    )
