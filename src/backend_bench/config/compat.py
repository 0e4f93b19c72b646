import logging
import os

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})
_FALSY = frozenset({"0", "false", "no", "n", "off"})


def env_bool(name: str, *, default: bool) -> bool:
    """Read a boolean environment variable.

    Unrecognized values fall back to ``default`` with a warning.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    logger.warning("Invalid boolean for %s=%r, using default %s", name, raw, default)
    return default


def env_float(name: str, *, default: float) -> float:
    """Read a positive float environment variable.

    Unparseable or non-positive values fall back to ``default`` with a warning.
    """
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid number for %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Non-positive value for %s=%r, using default %s", name, raw, default)
        return default
    return value
