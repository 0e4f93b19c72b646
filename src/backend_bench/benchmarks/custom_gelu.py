import math
from typing import Any

from .base import Benchmark, BenchmarkFactory, random_values

SHAPE = [32, 16, 64]
_SQRT_2 = math.sqrt(2.0)


def gelu(x: float) -> float:
    return 0.5 * x * (1.0 + math.erf(x / _SQRT_2))


class CustomGeluBenchmark(Benchmark):
    """GELU written out from primitive ops instead of a fused kernel."""

    name = "custom_gelu"

    def shapes(self) -> list[list[int]]:
        return [list(SHAPE)]

    def prepare(self) -> Any:
        return random_values(SHAPE, seed=5)

    def execute(self, args: Any) -> None:
        for _ in range(self.num_repeats):
            [gelu(x) for x in args]


CUSTOM_GELU = BenchmarkFactory(
    name="custom_gelu",
    create=CustomGeluBenchmark,
    description="GELU activation composed from erf",
)
