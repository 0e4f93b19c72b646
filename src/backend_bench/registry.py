import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .backends import BACKENDS, BackendDescriptor
from .benchmarks import BENCHMARKS, BenchmarkFactory
from .errors import UnknownSelector

logger = logging.getLogger(__name__)


class Registry:
    """Read-only name tables for benchmarks and backends.

    Built once at startup; single source of truth for ``list`` and the plan builder.
    """

    def __init__(
        self,
        benchmarks: Iterable[BenchmarkFactory],
        backends: Iterable[BackendDescriptor],
    ) -> None:
        self._benchmarks: Mapping[str, BenchmarkFactory] = MappingProxyType(
            _index("benchmark", benchmarks)
        )
        self._backends: Mapping[str, BackendDescriptor] = MappingProxyType(
            _index("backend", backends)
        )

    @property
    def benchmarks(self) -> Mapping[str, BenchmarkFactory]:
        return self._benchmarks

    @property
    def backends(self) -> Mapping[str, BackendDescriptor]:
        return self._backends

    def list_benchmarks(self) -> list[str]:
        return sorted(self._benchmarks)

    def list_backends(self) -> list[str]:
        return sorted(self._backends)

    def resolve_benchmark(self, name: str) -> BenchmarkFactory:
        try:
            return self._benchmarks[name]
        except KeyError:
            raise UnknownSelector("benchmark", name) from None

    def resolve_backend(self, name: str) -> BackendDescriptor:
        try:
            return self._backends[name]
        except KeyError:
            raise UnknownSelector("backend", name) from None


def _index(kind: str, entries: Iterable[BenchmarkFactory] | Iterable[BackendDescriptor]) -> dict:
    table: dict = {}
    for entry in entries:
        if entry.name in table:
            raise ValueError(f"Duplicate {kind} registration: {entry.name!r}")
        table[entry.name] = entry
    return table


_DEFAULT: Registry | None = None


def default_registry() -> Registry:
    """Registry of the built-in benchmarks and backends."""
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = Registry(BENCHMARKS, BACKENDS)
        logger.debug(
            "Registry loaded: %d benchmarks, %d backends",
            len(_DEFAULT.benchmarks),
            len(_DEFAULT.backends),
        )
    return _DEFAULT
