from backend_bench.benchmarks.base import Benchmark, BenchmarkFactory
from backend_bench.benchmarks.binary import BINARY
from backend_bench.benchmarks.custom_gelu import CUSTOM_GELU
from backend_bench.benchmarks.data import DATA
from backend_bench.benchmarks.matmul import MATMUL
from backend_bench.benchmarks.unary import UNARY

# Registry of built-in benchmarks
BENCHMARKS: tuple[BenchmarkFactory, ...] = (
    BINARY,
    CUSTOM_GELU,
    DATA,
    MATMUL,
    UNARY,
)

__all__ = [
    "BENCHMARKS",
    "Benchmark",
    "BenchmarkFactory",
]
