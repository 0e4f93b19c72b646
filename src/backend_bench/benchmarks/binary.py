from typing import Any

from .base import Benchmark, BenchmarkFactory, random_values

SHAPE = [32, 16, 64]


class BinaryBenchmark(Benchmark):
    name = "binary"

    def shapes(self) -> list[list[int]]:
        return [list(SHAPE), list(SHAPE)]

    def prepare(self) -> Any:
        return random_values(SHAPE, seed=1), random_values(SHAPE, seed=2)

    def execute(self, args: Any) -> None:
        lhs, rhs = args
        for _ in range(self.num_repeats):
            [a * b for a, b in zip(lhs, rhs, strict=True)]


BINARY = BenchmarkFactory(
    name="binary",
    create=BinaryBenchmark,
    description="Element-wise multiplication of two tensors",
)
