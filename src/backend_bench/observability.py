import glob
import hashlib
import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from .config import settings

logger = logging.getLogger(__name__)

MAX_ROTATED_LOGS = 5
_LOG_LOCK = threading.Lock()

# Keys whose string values are credentials and must be redacted.
_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "access_token",
        "refresh_token",
        "device_code",
        "token",
        "authorization",
    }
)

_SANITIZE_DEPTH_LIMIT = 6


def _make_placeholder(value: str) -> str:
    hex12 = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"[REDACTED len={len(value)} sha256={hex12}]"


def _sanitize_value(key: str, value: Any, depth: int) -> Any:
    if depth > _SANITIZE_DEPTH_LIMIT:
        return "[REDACTED depth_limit]"
    if isinstance(value, dict):
        return {k: _sanitize_value(k, v, depth + 1) for k, v in value.items()}
    if isinstance(value, list):
        return [_sanitize_value(key, item, depth + 1) for item in value]
    if isinstance(value, str) and key.lower() in _SENSITIVE_KEYS:
        return _make_placeholder(value)
    return value


def sanitize_event(event: dict[str, Any]) -> dict[str, Any]:
    if not settings.LOG_REDACT:
        return event
    return {k: _sanitize_value(k, v, 0) for k, v in event.items()}


def rotate_log_if_needed() -> None:
    try:
        log_path = settings.LOG_PATH
        if log_path.exists() and log_path.stat().st_size > settings.MAX_LOG_SIZE_BYTES:
            ts = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
            stem = log_path.stem
            suffix = log_path.suffix
            rotated_path = log_path.with_name(f"{stem}.{ts}{suffix}")
            log_path.rename(rotated_path)
            logger.debug("Rotated log file to %s", rotated_path)

            pattern = f"{glob.escape(stem)}.*{glob.escape(suffix)}"
            rotated_logs = sorted(log_path.parent.glob(pattern), reverse=True)
            for old_log in rotated_logs[MAX_ROTATED_LOGS:]:
                old_log.unlink(missing_ok=True)
                logger.debug("Cleaned up old log file: %s", old_log)
    except OSError as exc:
        logger.warning("Failed to rotate log file: %s", exc)


def log_event(event: dict[str, Any]) -> None:
    """Append a single JSON event to the local event log.

    Events are enriched with a timestamp and a level. Credentials are redacted
    unless BACKEND_BENCH_LOG_REDACT is off. No-op unless BACKEND_BENCH_LOGGING is on.
    """
    if not settings.BENCH_LOGGING:
        return

    event = dict(event)
    event.setdefault("timestamp", datetime.now(UTC).isoformat())
    if "level" not in event:
        kind = str(event.get("kind", "")).lower()
        event["level"] = "error" if kind.endswith("error") else "info"
    event = sanitize_event(event)

    try:
        with _LOG_LOCK:
            if settings.LOG_PATH.is_dir():
                logger.warning("Log path is a directory, skipping log write")
                return
            settings.LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
            rotate_log_if_needed()
            with open(settings.LOG_PATH, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    except OSError as exc:
        logger.warning("Failed to write event log: %s", exc)
