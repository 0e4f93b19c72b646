import math
import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from backend_bench.backends.base import InProcessContext


def random_values(shape: Sequence[int], *, seed: int = 0) -> list[float]:
    """Flat list of standard-normal samples for a tensor of ``shape``."""
    rng = random.Random(seed)  # nosec B311
    return [rng.gauss(0.0, 1.0) for _ in range(math.prod(shape))]


class Benchmark:
    """A workload bound to one execution context.

    Subclasses implement ``prepare`` (untimed input construction) and
    ``execute`` (the timed body). ``warmup`` and ``samples`` are the
    benchmark's own iteration counts; the runner never overrides them.
    """

    name: str = ""
    warmup: int = 2
    samples: int = 10

    def __init__(self, context: "InProcessContext", *, num_repeats: int = 10) -> None:
        self.context = context
        self.num_repeats = num_repeats

    def shapes(self) -> list[list[int]]:
        return []

    def prepare(self) -> Any:
        return None

    def execute(self, args: Any) -> None:
        raise NotImplementedError

    def sync(self) -> None:
        self.context.sync()


@dataclass(frozen=True)
class BenchmarkFactory:
    """Registry entry for a benchmark.

    ``create`` binds a new benchmark instance to an execution context.
    """

    name: str
    """Selector name (e.g., "unary")."""

    create: Callable[["InProcessContext"], Benchmark]
    """Instantiate the benchmark against a backend context."""

    description: str = ""
    """One-line summary used by ``list --verbose``."""

    def instantiate(self, context: "InProcessContext") -> Benchmark:
        return self.create(context)
