import json
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from backend_bench.auth import TokenStore
from backend_bench.backends import BackendDescriptor
from backend_bench.benchmarks import Benchmark, BenchmarkFactory
from backend_bench.config import BenchConfig
from backend_bench.errors import ExecutionFailure
from backend_bench.registry import Registry


class _CountingBenchmark(Benchmark):
    warmup = 1
    samples = 3

    def shapes(self) -> list[list[int]]:
        return [[4, 4]]

    def prepare(self) -> Any:
        return list(range(16))

    def execute(self, args: Any) -> None:
        sum(args)


class _BrokenBenchmark(Benchmark):
    warmup = 0
    samples = 1

    def execute(self, args: Any) -> None:
        raise ExecutionFailure("kernel launch failed")


ALPHA = BenchmarkFactory(name="alpha", create=_CountingBenchmark, description="Sums a list")
BROKEN = BenchmarkFactory(name="broken", create=_BrokenBenchmark)
GAMMA = BenchmarkFactory(name="gamma", create=_CountingBenchmark)


class FakeClock:
    """Deterministic clock; ``sleep`` advances time instead of blocking."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.waits: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        return False


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in [
        "BACKEND_BENCH_CLIENT_ID",
        "BACKEND_BENCH_AUTH_BASE_URL",
        "BACKEND_BENCH_API_BASE_URL",
        "BACKEND_BENCH_RESULTS_ENDPOINT",
        "BACKEND_BENCH_CACHE_DIR",
        "BACKEND_BENCH_HTTP_TIMEOUT",
        "BACKEND_BENCH_WORKER_TIMEOUT",
        "BACKEND_BENCH_CPU_A_COMMAND",
        "BACKEND_BENCH_CPU_B_COMMAND",
    ]:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def mock_log_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Auto-mock LOG_PATH and enable the event log for all tests."""
    log_file = tmp_path / "events.jsonl"
    with (
        patch("backend_bench.config.settings.BENCH_LOGGING", True),
        patch("backend_bench.config.settings.LOG_PATH", log_file),
    ):
        yield log_file


@pytest.fixture
def bench_config(tmp_path: Path) -> BenchConfig:
    return BenchConfig(
        client_id="test-client-id",
        auth_base_url="https://github.test/login",
        api_base_url="https://api.github.test",
        results_endpoint="https://results.test/api/v1/benchmarks",
        token_dir=tmp_path / "auth",
        http_timeout=5.0,
        worker_timeout=30.0,
    )


@pytest.fixture
def token_store(bench_config: BenchConfig) -> TokenStore:
    return TokenStore(bench_config.token_dir)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_registry() -> Registry:
    return Registry(
        [ALPHA, BROKEN, GAMMA],
        [BackendDescriptor(name="cpu-a"), BackendDescriptor(name="cpu-b")],
    )


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Build a mocked httpx.Response."""

    def _make(status_code: int = 200, payload: Any = None, text: str | None = None) -> MagicMock:
        resp = MagicMock()
        resp.status_code = status_code
        resp.is_success = 200 <= status_code < 300
        resp.reason_phrase = "Error" if status_code >= 400 else "OK"
        resp.headers = {}
        if payload is None:
            resp.json.side_effect = ValueError("Expecting value")
            resp.text = text or ""
        else:
            resp.json.return_value = payload
            resp.text = text if text is not None else json.dumps(payload)
        return resp

    return _make


def _mock_sync_client() -> MagicMock:
    mock_client = MagicMock()
    mock_client.__enter__.return_value = mock_client
    mock_client.__exit__.return_value = None
    return mock_client


@pytest.fixture
def provider_http() -> Generator[MagicMock, None, None]:
    """Mock httpx.Client used for identity provider calls."""
    mock_client = _mock_sync_client()
    with patch("backend_bench.auth.device_flow.httpx.Client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def results_http() -> Generator[MagicMock, None, None]:
    """Mock httpx.Client used for results uploads."""
    mock_client = _mock_sync_client()
    with patch("backend_bench.clients.results.httpx.Client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def alpha() -> BenchmarkFactory:
    return ALPHA
