import json
import logging
import shlex
import subprocess  # nosec B404
import sys
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from backend_bench.config import settings
from backend_bench.errors import ExecutionFailure

if TYPE_CHECKING:
    from backend_bench.benchmarks.base import BenchmarkFactory

logger = logging.getLogger(__name__)

# Placeholders {benchmark} and {backend} are substituted per unit.
WORKER_COMMAND: tuple[str, ...] = (
    sys.executable,
    "-m",
    "backend_bench",
    "worker",
    "--bench",
    "{benchmark}",
    "--backend",
    "{backend}",
)


@dataclass(frozen=True)
class Measurement:
    durations_ns: tuple[int, ...]
    shapes: list[list[int]] = field(default_factory=list)


class InProcessContext:
    """Backend compiled into the running process."""

    def __init__(self, backend: str, device: str = "cpu") -> None:
        self.backend = backend
        self.device = device

    def sync(self) -> None:
        # Host execution is synchronous; nothing is queued on a device.
        return None

    def run(self, factory: "BenchmarkFactory") -> Measurement:
        benchmark = factory.instantiate(self)
        args = benchmark.prepare()

        for _ in range(benchmark.warmup):
            benchmark.execute(args)
            benchmark.sync()

        durations: list[int] = []
        for _ in range(benchmark.samples):
            started = time.perf_counter_ns()
            benchmark.execute(args)
            benchmark.sync()
            durations.append(time.perf_counter_ns() - started)

        return Measurement(durations_ns=tuple(durations), shapes=benchmark.shapes())


def _format_cli_error_detail(stdout: str, stderr: str) -> str:
    stdout_text = (stdout or "").strip()
    stderr_text = (stderr or "").strip()
    if stderr_text:
        return stderr_text.splitlines()[-1]
    if stdout_text:
        return stdout_text.splitlines()[-1]
    return "unknown error"


def _parse_worker_output(stdout: str) -> dict[str, Any] | None:
    for line in reversed((stdout or "").splitlines()):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            return None
        return data if isinstance(data, dict) else None
    return None


class SubprocessContext:
    """Backend that only exists in a separately built artifact.

    The command must print one JSON object as its last stdout line:
    ``{"durations_ns": [...], "shapes": [...]}`` on success or
    ``{"error": "..."}`` on failure.
    """

    def __init__(self, backend: str, command: list[str], timeout: float) -> None:
        self.backend = backend
        self.command = command
        self.timeout = timeout

    def argv(self, benchmark: str) -> list[str]:
        return [part.format(benchmark=benchmark, backend=self.backend) for part in self.command]

    def run(self, factory: "BenchmarkFactory") -> Measurement:
        argv = self.argv(factory.name)
        logger.debug("Launching %s/%s: %s", factory.name, self.backend, argv)
        try:
            completed = subprocess.run(  # nosec B603
                argv,
                capture_output=True,
                text=True,
                check=False,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ExecutionFailure(f"timed out after {self.timeout:.0f}s") from exc
        except FileNotFoundError as exc:
            cmd_name = argv[0] if argv else "unknown"
            raise ExecutionFailure(f"backend unavailable: {cmd_name} not found") from exc

        data = _parse_worker_output(completed.stdout)
        if data is not None and isinstance(data.get("error"), str):
            raise ExecutionFailure(data["error"])
        if completed.returncode != 0:
            detail = _format_cli_error_detail(completed.stdout, completed.stderr)
            raise ExecutionFailure(f"exit code {completed.returncode}: {detail}")
        if data is None:
            raise ExecutionFailure("worker produced no JSON result")

        durations = data.get("durations_ns")
        if not isinstance(durations, list) or not all(
            isinstance(d, int) and d >= 0 for d in durations
        ):
            raise ExecutionFailure("worker returned malformed durations")
        shapes = data.get("shapes")
        return Measurement(
            durations_ns=tuple(durations),
            shapes=shapes if isinstance(shapes, list) else [],
        )


ExecutionContext = InProcessContext | SubprocessContext


@dataclass(frozen=True)
class BackendDescriptor:
    """How to launch benchmarks against one backend."""

    name: str
    """Selector name (e.g., "wgpu-fusion")."""

    device: str = "cpu"
    """Device the backend targets (informational for in-process backends)."""

    feature: str = ""
    """Build feature that compiles this backend in."""

    isolated: bool = False
    """Run every unit in a separate process instead of in-process."""

    command: tuple[str, ...] = ()
    """Command for isolated units; defaults to the ``worker`` subcommand."""

    def launch(self, *, timeout: float | None = None) -> ExecutionContext:
        """Return the execution context for this backend.

        A ``BACKEND_BENCH_<NAME>_COMMAND`` override always selects subprocess
        isolation with that command.
        """
        effective_timeout = settings.WORKER_TIMEOUT_SECONDS if timeout is None else timeout
        override = settings.backend_command_override(self.name)
        if override:
            return SubprocessContext(self.name, shlex.split(override), effective_timeout)
        if self.isolated:
            command = list(self.command or WORKER_COMMAND)
            return SubprocessContext(self.name, command, effective_timeout)
        return self.local_context()

    def local_context(self) -> InProcessContext:
        return InProcessContext(self.name, self.device)
