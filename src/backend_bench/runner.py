import logging
import time

from .backends import Measurement
from .errors import ExecutionFailure
from .observability import log_event
from .plan import ExecutionUnit
from .registry import Registry
from .results import BenchmarkResult

logger = logging.getLogger(__name__)


class UnitRunner:
    """Runs one execution unit and converts every failure into a failed result.

    ``KeyboardInterrupt`` is not caught here; cancelling the run is the
    aggregator's job.
    """

    def __init__(self, registry: Registry, *, worker_timeout: float | None = None) -> None:
        self.registry = registry
        self.worker_timeout = worker_timeout

    def run(self, unit: ExecutionUnit) -> BenchmarkResult:
        started = time.perf_counter()
        try:
            factory = self.registry.resolve_benchmark(unit.benchmark)
            descriptor = self.registry.resolve_backend(unit.backend)
            context = descriptor.launch(timeout=self.worker_timeout)
            measurement = context.run(factory)
            if not measurement.durations_ns:
                raise ExecutionFailure("no samples recorded")
        except ExecutionFailure as exc:
            return self._failed(unit, exc.reason, started)
        except MemoryError:
            return self._failed(unit, "resource exhaustion: out of memory", started)
        except Exception as exc:
            logger.debug("Unit %s raised", unit, exc_info=True)
            return self._failed(unit, f"{type(exc).__name__}: {exc}", started)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Unit %s succeeded (%d samples, %.0fms)", unit, len(measurement.durations_ns), elapsed_ms
        )
        log_event(
            {
                "kind": "unit_complete",
                "benchmark": unit.benchmark,
                "backend": unit.backend,
                "samples": len(measurement.durations_ns),
                "latency_ms": int(elapsed_ms),
            }
        )
        return BenchmarkResult.succeeded(
            unit.benchmark, unit.backend, list(measurement.durations_ns), measurement.shapes
        )

    def _failed(self, unit: ExecutionUnit, reason: str, started: float) -> BenchmarkResult:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.warning("Unit %s failed: %s", unit, reason)
        log_event(
            {
                "kind": "unit_error",
                "benchmark": unit.benchmark,
                "backend": unit.backend,
                "error": reason,
                "latency_ms": int(elapsed_ms),
            }
        )
        return BenchmarkResult.failed(unit.benchmark, unit.backend, reason)


def measure_in_process(registry: Registry, benchmark: str, backend: str) -> Measurement:
    """Run one unit in this process regardless of the backend's isolation.

    Used by the ``worker`` command on the far side of a subprocess launch.
    """
    factory = registry.resolve_benchmark(benchmark)
    descriptor = registry.resolve_backend(backend)
    return descriptor.local_context().run(factory)
