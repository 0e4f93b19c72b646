import json
import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from backend_bench.backends import BackendDescriptor, InProcessContext, SubprocessContext
from backend_bench.backends.base import WORKER_COMMAND
from backend_bench.benchmarks import BENCHMARKS, BenchmarkFactory
from backend_bench.errors import ExecutionFailure
from backend_bench.plan import ExecutionUnit
from backend_bench.registry import Registry
from backend_bench.results import ResultStatus
from backend_bench.runner import UnitRunner, measure_in_process


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.stderr = stderr
    proc.returncode = returncode
    return proc


class TestInProcessContext:
    """Test warmup/measurement loop of in-process backends."""

    def test_records_one_duration_per_sample(self, alpha: BenchmarkFactory) -> None:
        measurement = InProcessContext("cpu-a").run(alpha)
        assert len(measurement.durations_ns) == 3
        assert all(d >= 0 for d in measurement.durations_ns)
        assert measurement.shapes == [[4, 4]]

    @pytest.mark.parametrize("factory", BENCHMARKS, ids=lambda f: f.name)
    def test_builtin_benchmarks_execute(self, factory) -> None:
        benchmark = factory.instantiate(InProcessContext("ndarray"))
        args = benchmark.prepare()
        benchmark.execute(args)
        benchmark.sync()
        assert benchmark.shapes()
        assert benchmark.samples > 0


class TestSubprocessContext:
    """Test isolated backends launched as child processes."""

    def test_parses_last_json_line(self, alpha: BenchmarkFactory) -> None:
        stdout = 'compiling kernels...\n{"durations_ns": [10, 20, 30], "shapes": [[2, 2]]}\n'
        context = SubprocessContext("wgpu", ["runner", "--bench", "{benchmark}"], timeout=5.0)
        with patch(
            "backend_bench.backends.base.subprocess.run", return_value=_completed(stdout)
        ) as mock_run:
            measurement = context.run(alpha)

        assert measurement.durations_ns == (10, 20, 30)
        assert measurement.shapes == [[2, 2]]
        assert mock_run.call_args.args[0] == ["runner", "--bench", "alpha"]
        assert mock_run.call_args.kwargs["timeout"] == 5.0

    def test_reported_error(self, alpha: BenchmarkFactory) -> None:
        stdout = json.dumps({"error": "CUDA driver not found"})
        context = SubprocessContext("tch-gpu", ["runner"], timeout=5.0)
        with patch(
            "backend_bench.backends.base.subprocess.run",
            return_value=_completed(stdout, returncode=1),
        ):
            with pytest.raises(ExecutionFailure, match="CUDA driver not found"):
                context.run(alpha)

    def test_nonzero_exit_uses_stderr(self, alpha: BenchmarkFactory) -> None:
        context = SubprocessContext("wgpu", ["runner"], timeout=5.0)
        with patch(
            "backend_bench.backends.base.subprocess.run",
            return_value=_completed(stderr="panic\nadapter lost", returncode=101),
        ):
            with pytest.raises(ExecutionFailure, match="exit code 101: adapter lost"):
                context.run(alpha)

    def test_timeout(self, alpha: BenchmarkFactory) -> None:
        context = SubprocessContext("wgpu", ["runner"], timeout=2.0)
        with patch(
            "backend_bench.backends.base.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="runner", timeout=2.0),
        ):
            with pytest.raises(ExecutionFailure, match="timed out after 2s"):
                context.run(alpha)

    def test_missing_executable(self, alpha: BenchmarkFactory) -> None:
        context = SubprocessContext("candle-metal", ["metal-runner"], timeout=5.0)
        with patch(
            "backend_bench.backends.base.subprocess.run", side_effect=FileNotFoundError()
        ):
            with pytest.raises(ExecutionFailure, match="backend unavailable: metal-runner not found"):
                context.run(alpha)

    def test_malformed_durations(self, alpha: BenchmarkFactory) -> None:
        context = SubprocessContext("wgpu", ["runner"], timeout=5.0)
        stdout = json.dumps({"durations_ns": ["fast"]})
        with patch(
            "backend_bench.backends.base.subprocess.run", return_value=_completed(stdout)
        ):
            with pytest.raises(ExecutionFailure, match="malformed durations"):
                context.run(alpha)


class TestBackendLaunch:
    """Test BackendDescriptor.launch() context selection."""

    def test_host_backend_runs_in_process(self, clean_env: None) -> None:
        context = BackendDescriptor(name="cpu-a").launch()
        assert isinstance(context, InProcessContext)

    def test_isolated_backend_uses_worker(self, clean_env: None) -> None:
        context = BackendDescriptor(name="cpu-a", isolated=True).launch(timeout=12.0)
        assert isinstance(context, SubprocessContext)
        assert context.timeout == 12.0
        assert context.argv("alpha") == [
            sys.executable,
            "-m",
            "backend_bench",
            "worker",
            "--bench",
            "alpha",
            "--backend",
            "cpu-a",
        ]
        assert tuple(context.command) == WORKER_COMMAND

    def test_command_override(self, clean_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BACKEND_BENCH_CPU_A_COMMAND", "./bench-cpu --name '{benchmark}'")
        context = BackendDescriptor(name="cpu-a").launch()
        assert isinstance(context, SubprocessContext)
        assert context.argv("alpha") == ["./bench-cpu", "--name", "alpha"]


class TestUnitRunner:
    """Test UnitRunner failure isolation."""

    def test_success(self, test_registry: Registry, clean_env: None) -> None:
        result = UnitRunner(test_registry).run(ExecutionUnit("alpha", "cpu-a"))
        assert result.status is ResultStatus.SUCCEEDED
        assert len(result.durations_ns) == 3
        assert result.reason is None

    def test_execution_failure_becomes_result(
        self, test_registry: Registry, clean_env: None
    ) -> None:
        result = UnitRunner(test_registry).run(ExecutionUnit("broken", "cpu-a"))
        assert result.status is ResultStatus.FAILED
        assert result.reason == "kernel launch failed"
        assert result.durations_ns == []

    def test_unexpected_exception_becomes_result(
        self, test_registry: Registry, clean_env: None
    ) -> None:
        with patch.object(InProcessContext, "run", side_effect=ZeroDivisionError("division by zero")):
            result = UnitRunner(test_registry).run(ExecutionUnit("alpha", "cpu-a"))
        assert not result.ok
        assert result.reason == "ZeroDivisionError: division by zero"

    def test_out_of_memory_becomes_result(self, test_registry: Registry, clean_env: None) -> None:
        with patch.object(InProcessContext, "run", side_effect=MemoryError()):
            result = UnitRunner(test_registry).run(ExecutionUnit("alpha", "cpu-a"))
        assert result.reason == "resource exhaustion: out of memory"

    def test_keyboard_interrupt_propagates(self, test_registry: Registry, clean_env: None) -> None:
        with patch.object(InProcessContext, "run", side_effect=KeyboardInterrupt()):
            with pytest.raises(KeyboardInterrupt):
                UnitRunner(test_registry).run(ExecutionUnit("alpha", "cpu-a"))

    def test_failure_is_logged_as_event(
        self, test_registry: Registry, clean_env: None, mock_log_path
    ) -> None:
        UnitRunner(test_registry).run(ExecutionUnit("broken", "cpu-b"))
        events = [json.loads(line) for line in mock_log_path.read_text().splitlines()]
        assert events[-1]["kind"] == "unit_error"
        assert events[-1]["backend"] == "cpu-b"
        assert events[-1]["level"] == "error"

    def test_measure_in_process_ignores_isolation(self, alpha: BenchmarkFactory) -> None:
        registry = Registry([alpha], [BackendDescriptor(name="gpu", isolated=True)])
        with patch("backend_bench.backends.base.subprocess.run") as mock_run:
            measurement = measure_in_process(registry, "alpha", "gpu")
        mock_run.assert_not_called()
        assert len(measurement.durations_ns) == 3
