"""Configuration module for backend-bench."""

from .settings import (
    API_BASE_URL,
    AUTH_BASE_URL,
    CLIENT_ID,
    HTTP_TIMEOUT_SECONDS,
    LOG_DIR,
    LOG_PATH,
    MAX_LOG_SIZE_BYTES,
    RESULTS_ENDPOINT,
    TOKEN_DIR,
    WORKER_TIMEOUT_SECONDS,
    BenchConfig,
)

__all__ = [
    "API_BASE_URL",
    "AUTH_BASE_URL",
    "CLIENT_ID",
    "HTTP_TIMEOUT_SECONDS",
    "LOG_DIR",
    "LOG_PATH",
    "MAX_LOG_SIZE_BYTES",
    "RESULTS_ENDPOINT",
    "TOKEN_DIR",
    "WORKER_TIMEOUT_SECONDS",
    "BenchConfig",
]
