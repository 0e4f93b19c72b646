import math
from typing import Any

from .base import Benchmark, BenchmarkFactory, random_values

SHAPE = [32, 16, 64]


class UnaryBenchmark(Benchmark):
    name = "unary"

    def shapes(self) -> list[list[int]]:
        return [list(SHAPE)]

    def prepare(self) -> Any:
        return random_values(SHAPE)

    def execute(self, args: Any) -> None:
        # Choice of tanh is arbitrary
        for _ in range(self.num_repeats):
            [math.tanh(x) for x in args]


UNARY = BenchmarkFactory(
    name="unary",
    create=UnaryBenchmark,
    description="Element-wise tanh",
)
