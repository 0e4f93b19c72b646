import array
from typing import Any

from .base import Benchmark, BenchmarkFactory, random_values

SHAPE = [32, 32, 32]


class DataBenchmark(Benchmark):
    """Round-trips tensor data between host and device representations."""

    name = "data"

    def shapes(self) -> list[list[int]]:
        return [list(SHAPE)]

    def prepare(self) -> Any:
        return random_values(SHAPE, seed=6)

    def execute(self, args: Any) -> None:
        for _ in range(self.num_repeats):
            device = array.array("f", args)
            device.tolist()


DATA = BenchmarkFactory(
    name="data",
    create=DataBenchmark,
    description="Tensor creation from and conversion to host data",
)
