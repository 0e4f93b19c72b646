import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from platformdirs import user_cache_dir, user_state_dir

from .compat import env_bool, env_float

logger = logging.getLogger(__name__)

__all__ = [
    "RESULTS_ENDPOINT",
    "TOKEN_DIR",
    "BenchConfig",
]

APP_NAME = "backend-bench"
USER_AGENT = APP_NAME

# Identity provider (GitHub device flow)
CLIENT_ID = os.getenv("BACKEND_BENCH_CLIENT_ID", "") or "Iv1.84002254a02791f3"
AUTH_BASE_URL = os.getenv("BACKEND_BENCH_AUTH_BASE_URL", "") or "https://github.com/login"
API_BASE_URL = os.getenv("BACKEND_BENCH_API_BASE_URL", "") or "https://api.github.com"
GITHUB_API_VERSION_HEADER = "X-GitHub-Api-Version"
GITHUB_API_VERSION = "2022-11-28"

# RFC 8628: default interval when the provider omits one, and the slow_down increment
DEFAULT_POLL_INTERVAL_SECONDS = 5.0
SLOW_DOWN_INCREMENT_SECONDS = 5.0

# Results service (no default; sharing fails with an actionable message when unset)
RESULTS_ENDPOINT = os.getenv("BACKEND_BENCH_RESULTS_ENDPOINT", "").strip()

HTTP_TIMEOUT_SECONDS = env_float("BACKEND_BENCH_HTTP_TIMEOUT", default=30.0)
# Upper bound for one subprocess-isolated execution unit
WORKER_TIMEOUT_SECONDS = env_float("BACKEND_BENCH_WORKER_TIMEOUT", default=600.0)

# Token cache - cross-platform cache directory:
# - Linux: ~/.cache/backend-bench/auth
# - macOS: ~/Library/Caches/backend-bench/auth
# - Windows: %LOCALAPPDATA%\backend-bench\Cache\auth
CACHE_DIR = Path(
    os.getenv("BACKEND_BENCH_CACHE_DIR", "") or user_cache_dir(APP_NAME, appauthor=False)
)
TOKEN_DIR = CACHE_DIR / "auth"

# Local JSONL event log (default: off)
BENCH_LOGGING = env_bool("BACKEND_BENCH_LOGGING", default=False)
LOG_REDACT = env_bool("BACKEND_BENCH_LOG_REDACT", default=True)
# Note: Directory is created lazily in observability.py when actually writing logs
LOG_DIR = Path(user_state_dir(APP_NAME, appauthor=False))
LOG_PATH = LOG_DIR / "events.jsonl"
MAX_LOG_SIZE_BYTES = 10 * 1024 * 1024


def backend_command_override(backend: str) -> str:
    """Return the raw command override for a backend, e.g. BACKEND_BENCH_TCH_GPU_COMMAND."""
    key = "BACKEND_BENCH_" + backend.upper().replace("-", "_") + "_COMMAND"
    return os.getenv(key, "").strip()


@dataclass(frozen=True)
class BenchConfig:
    client_id: str = CLIENT_ID
    auth_base_url: str = AUTH_BASE_URL
    api_base_url: str = API_BASE_URL
    results_endpoint: str = RESULTS_ENDPOINT
    token_dir: Path = TOKEN_DIR
    http_timeout: float = HTTP_TIMEOUT_SECONDS
    worker_timeout: float = WORKER_TIMEOUT_SECONDS

    @property
    def provider_id(self) -> str:
        """Stable identity of the OAuth provider + application, used to key the token cache."""
        host = urlsplit(self.auth_base_url).netloc or self.auth_base_url
        return f"{host}/{self.client_id}"

    @classmethod
    def from_env(cls) -> "BenchConfig":
        """Build config from the environment as it is now (after any .env load).

        Raises:
            RuntimeError: If a numeric setting cannot be parsed.
        """
        results_endpoint = os.getenv("BACKEND_BENCH_RESULTS_ENDPOINT", "").strip()
        if not results_endpoint:
            logger.debug("BACKEND_BENCH_RESULTS_ENDPOINT not set; sharing is unavailable")

        cache_dir = os.getenv("BACKEND_BENCH_CACHE_DIR", "").strip()
        try:
            http_timeout = float(os.getenv("BACKEND_BENCH_HTTP_TIMEOUT", "") or HTTP_TIMEOUT_SECONDS)
            worker_timeout = float(
                os.getenv("BACKEND_BENCH_WORKER_TIMEOUT", "") or WORKER_TIMEOUT_SECONDS
            )
        except ValueError as exc:
            raise RuntimeError(f"Invalid timeout setting: {exc}") from exc
        if http_timeout <= 0 or worker_timeout <= 0:
            raise RuntimeError("Invalid timeout setting: timeouts must be positive")

        return cls(
            client_id=os.getenv("BACKEND_BENCH_CLIENT_ID", "").strip() or CLIENT_ID,
            auth_base_url=os.getenv("BACKEND_BENCH_AUTH_BASE_URL", "").strip() or AUTH_BASE_URL,
            api_base_url=os.getenv("BACKEND_BENCH_API_BASE_URL", "").strip() or API_BASE_URL,
            results_endpoint=results_endpoint,
            token_dir=Path(cache_dir) / "auth" if cache_dir else TOKEN_DIR,
            http_timeout=http_timeout,
            worker_timeout=worker_timeout,
        )
