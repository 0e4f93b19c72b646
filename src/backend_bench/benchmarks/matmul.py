from typing import Any

from .base import Benchmark, BenchmarkFactory, random_values

M, K, N = 48, 48, 48


class MatmulBenchmark(Benchmark):
    name = "matmul"
    samples = 5

    def __init__(self, context, *, num_repeats: int = 2) -> None:
        super().__init__(context, num_repeats=num_repeats)

    def shapes(self) -> list[list[int]]:
        return [[M, K], [K, N]]

    def prepare(self) -> Any:
        lhs = random_values([M, K], seed=3)
        rhs = random_values([K, N], seed=4)
        rows = [lhs[i * K : (i + 1) * K] for i in range(M)]
        cols = [rhs[j::N] for j in range(N)]
        return rows, cols

    def execute(self, args: Any) -> None:
        rows, cols = args
        for _ in range(self.num_repeats):
            [[sum(a * b for a, b in zip(row, col, strict=True)) for col in cols] for row in rows]


MATMUL = BenchmarkFactory(
    name="matmul",
    create=MatmulBenchmark,
    description="Dense matrix multiplication",
)
