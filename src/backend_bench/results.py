import json
import statistics
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .utils import atomic_write


class ResultStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class DurationStats:
    mean_ns: float
    median_ns: float
    variance_ns: float
    min_ns: int
    max_ns: int

    @classmethod
    def from_samples(cls, samples: list[int]) -> "DurationStats | None":
        if not samples:
            return None
        return cls(
            mean_ns=statistics.fmean(samples),
            median_ns=float(statistics.median(samples)),
            variance_ns=statistics.pvariance(samples),
            min_ns=min(samples),
            max_ns=max(samples),
        )


def format_duration(ns: float) -> str:
    if ns >= 1e9:
        return f"{ns / 1e9:.3f}s"
    if ns >= 1e6:
        return f"{ns / 1e6:.3f}ms"
    if ns >= 1e3:
        return f"{ns / 1e3:.3f}µs"
    return f"{ns:.0f}ns"


@dataclass
class BenchmarkResult:
    benchmark: str
    backend: str
    status: ResultStatus
    durations_ns: list[int] = field(default_factory=list)
    shapes: list[list[int]] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def succeeded(
        cls, benchmark: str, backend: str, durations_ns: list[int], shapes: list[list[int]]
    ) -> "BenchmarkResult":
        return cls(
            benchmark=benchmark,
            backend=backend,
            status=ResultStatus.SUCCEEDED,
            durations_ns=list(durations_ns),
            shapes=shapes,
        )

    @classmethod
    def failed(cls, benchmark: str, backend: str, reason: str) -> "BenchmarkResult":
        return cls(benchmark=benchmark, backend=backend, status=ResultStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.SUCCEEDED

    @property
    def stats(self) -> DurationStats | None:
        return DurationStats.from_samples(self.durations_ns)

    def summary_line(self) -> str:
        unit = f"{self.benchmark}/{self.backend}"
        stats = self.stats
        if not self.ok or stats is None:
            return f"✗ {unit}: failed - {self.reason or 'unknown error'}"
        return (
            f"✓ {unit}: median {format_duration(stats.median_ns)} "
            f"(min {format_duration(stats.min_ns)}, max {format_duration(stats.max_ns)}, "
            f"n={len(self.durations_ns)})"
        )

    def to_dict(self) -> dict[str, Any]:
        stats = self.stats
        return {
            "benchmark": self.benchmark,
            "backend": self.backend,
            "status": self.status.value,
            "reason": self.reason,
            "shapes": self.shapes,
            "durations_ns": self.durations_ns,
            "stats": asdict(stats) if stats else None,
        }


@dataclass
class Report:
    metadata: dict[str, Any]
    results: list[BenchmarkResult]
    cancelled: bool = False

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def all_failed(self) -> bool:
        return bool(self.results) and self.succeeded == 0

    def set_user(self, login: str | None) -> None:
        self.metadata["user"] = login

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata,
            "cancelled": self.cancelled,
            "total_units": self.total,
            "succeeded_units": self.succeeded,
            "results": [r.to_dict() for r in self.results],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    def save(self, output_path: Path) -> Path:
        """Write the report JSON atomically. Returns the written path."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(output_path, self.to_json() + "\n")
        return output_path
