import pytest

from backend_bench.backends import BackendDescriptor
from backend_bench.benchmarks import BenchmarkFactory
from backend_bench.errors import UnknownSelector
from backend_bench.plan import ExecutionUnit, build_plan
from backend_bench.registry import Registry, default_registry


class TestRegistry:
    """Test the benchmark/backend name tables."""

    def test_builtin_names(self) -> None:
        registry = default_registry()
        assert registry.list_benchmarks() == ["binary", "custom_gelu", "data", "matmul", "unary"]
        assert registry.list_backends() == [
            "candle-cpu",
            "candle-cuda",
            "candle-metal",
            "ndarray",
            "ndarray-blas-accelerate",
            "ndarray-blas-netlib",
            "ndarray-blas-openblas",
            "tch-cpu",
            "tch-gpu",
            "wgpu",
            "wgpu-fusion",
        ]

    def test_default_registry_is_shared(self) -> None:
        assert default_registry() is default_registry()

    def test_listing_is_sorted(self, test_registry: Registry) -> None:
        assert test_registry.list_benchmarks() == ["alpha", "broken", "gamma"]
        assert test_registry.list_backends() == ["cpu-a", "cpu-b"]

    def test_resolve_unknown_raises(self, test_registry: Registry) -> None:
        with pytest.raises(UnknownSelector) as exc_info:
            test_registry.resolve_backend("quantum")
        assert exc_info.value.kind == "backend"
        assert exc_info.value.name == "quantum"

    def test_duplicate_registration_rejected(self) -> None:
        factory = BenchmarkFactory(name="dup", create=lambda ctx: None)  # type: ignore[arg-type, return-value]
        with pytest.raises(ValueError, match="Duplicate benchmark"):
            Registry([factory, factory], [BackendDescriptor(name="cpu")])

    def test_tables_are_read_only(self, test_registry: Registry) -> None:
        with pytest.raises(TypeError):
            test_registry.benchmarks["new"] = test_registry.benchmarks["alpha"]  # type: ignore[index]


class TestBuildPlan:
    """Test build_plan() expansion and validation."""

    def test_backend_major_order(self) -> None:
        """Two benchmarks on two backends produce four units, grouped by backend."""
        plan = build_plan(default_registry(), ["unary", "binary"], ["wgpu-fusion", "tch-gpu"])

        assert [str(u) for u in plan] == [
            "unary/wgpu-fusion",
            "binary/wgpu-fusion",
            "unary/tch-gpu",
            "binary/tch-gpu",
        ]
        assert len(plan) == 4

    def test_describe_lists_total_and_units(self) -> None:
        plan = build_plan(default_registry(), ["unary", "binary"], ["wgpu-fusion", "tch-gpu"])

        lines = plan.describe()
        assert lines[0] == (
            "Executing the following benchmark and backend combinations (Total: 4):"
        )
        assert lines[1] == "- Benchmark: unary, Backend: wgpu-fusion"
        assert len(lines) == 5

    def test_empty_selection_means_all(self, test_registry: Registry) -> None:
        plan = build_plan(test_registry)
        assert len(plan) == 6
        assert plan.benchmarks == ("alpha", "broken", "gamma")
        assert plan.backends == ("cpu-a", "cpu-b")

    def test_only_backends_selected(self, test_registry: Registry) -> None:
        plan = build_plan(test_registry, backends=["cpu-b"])
        assert [u.benchmark for u in plan] == ["alpha", "broken", "gamma"]
        assert {u.backend for u in plan} == {"cpu-b"}

    def test_duplicates_keep_first_position(self, test_registry: Registry) -> None:
        plan = build_plan(test_registry, ["gamma", "alpha", "gamma"], ["cpu-a"])
        assert plan.units == (
            ExecutionUnit("gamma", "cpu-a"),
            ExecutionUnit("alpha", "cpu-a"),
        )

    def test_every_unit_is_distinct(self) -> None:
        plan = build_plan(default_registry())
        assert len(plan) == 5 * 11
        assert len(set(plan.units)) == len(plan)

    def test_unknown_benchmark_raises(self, test_registry: Registry) -> None:
        with pytest.raises(UnknownSelector, match="Unknown benchmark: 'nope'"):
            build_plan(test_registry, ["alpha", "nope"], ["cpu-a"])

    def test_unknown_backend_raises(self, test_registry: Registry) -> None:
        with pytest.raises(UnknownSelector) as exc_info:
            build_plan(test_registry, ["alpha"], ["cpu-a", "tpu"])
        assert exc_info.value.kind == "backend"
        assert exc_info.value.name == "tpu"

    def test_plan_is_immutable(self, test_registry: Registry) -> None:
        plan = build_plan(test_registry)
        with pytest.raises(AttributeError):
            plan.units = ()  # type: ignore[misc]
        assert plan[0] == ExecutionUnit("alpha", "cpu-a")
