from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from .registry import Registry


@dataclass(frozen=True)
class ExecutionUnit:
    benchmark: str
    backend: str

    def __str__(self) -> str:
        return f"{self.benchmark}/{self.backend}"


@dataclass(frozen=True)
class ExecutionPlan:
    """Immutable, ordered list of units for one invocation."""

    units: tuple[ExecutionUnit, ...]
    benchmarks: tuple[str, ...]
    backends: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.units)

    def __iter__(self) -> Iterator[ExecutionUnit]:
        return iter(self.units)

    def __getitem__(self, index: int) -> ExecutionUnit:
        return self.units[index]

    def describe(self) -> list[str]:
        lines = [
            "Executing the following benchmark and backend combinations "
            f"(Total: {len(self.units)}):"
        ]
        lines.extend(f"- Benchmark: {u.benchmark}, Backend: {u.backend}" for u in self.units)
        return lines


def _dedupe(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        if name not in seen:
            seen.add(name)
            ordered.append(name)
    return ordered


def build_plan(
    registry: Registry,
    benchmarks: Sequence[str] = (),
    backends: Sequence[str] = (),
) -> ExecutionPlan:
    """Expand selections into the ordered benchmark x backend plan.

    Empty selections default to every registered name. Repeated names keep
    their first position. Backends form the outer loop and benchmarks the
    inner one, matching the pre-run listing.

    Raises:
        UnknownSelector: If any name is not registered. No plan is produced.
    """
    selected_benchmarks = _dedupe(benchmarks) or registry.list_benchmarks()
    selected_backends = _dedupe(backends) or registry.list_backends()

    for name in selected_benchmarks:
        registry.resolve_benchmark(name)
    for name in selected_backends:
        registry.resolve_backend(name)

    units = tuple(
        ExecutionUnit(benchmark=bench, backend=backend)
        for backend in selected_backends
        for bench in selected_benchmarks
    )
    return ExecutionPlan(
        units=units,
        benchmarks=tuple(selected_benchmarks),
        backends=tuple(selected_backends),
    )
