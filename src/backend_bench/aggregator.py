import logging
import platform
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from importlib import metadata as importlib_metadata
from typing import Any

from .auth import AuthManager, DeviceFlowSession
from .clients import ResultsClient
from .clients.results import MISSING_ENDPOINT_MESSAGE
from .errors import AuthFailure, UploadFailure
from .observability import log_event
from .plan import ExecutionPlan
from .results import BenchmarkResult, Report
from .runner import UnitRunner

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled"


def _tool_version() -> str | None:
    try:
        return importlib_metadata.version("backend-bench")
    except importlib_metadata.PackageNotFoundError:
        return None


def build_run_metadata(
    *,
    plan: ExecutionPlan,
    started_at: datetime,
    completed_at: datetime,
    duration_s: float,
    run_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Reproducibility metadata for one invocation (no secrets)."""
    return {
        "timestamp": started_at.isoformat(),
        "tool_version": _tool_version(),
        "user": None,
        "run": {
            **(run_config or {}),
            "benchmarks": list(plan.benchmarks),
            "backends": list(plan.backends),
            "started_at_utc": started_at.isoformat(),
            "completed_at_utc": completed_at.isoformat(),
            "duration_s": round(duration_s, 3),
        },
        "environment": {
            "python": sys.version,
            "platform": platform.platform(),
        },
    }


@dataclass
class ShareOutcome:
    uploaded: bool
    user: str | None = None
    response: dict[str, Any] = field(default_factory=dict)
    error: AuthFailure | UploadFailure | None = None

    @property
    def message(self) -> str:
        if self.uploaded:
            return "Results shared successfully."
        if self.error is None:
            return "Results were not shared."
        return f"Sharing failed: {self.error}. {self.error.recommended_action}"


class ResultAggregator:
    """Drives the runner over a plan, builds the report, and optionally shares it."""

    def __init__(
        self,
        runner: UnitRunner,
        *,
        auth: AuthManager | None = None,
        uploader: ResultsClient | None = None,
    ) -> None:
        self.runner = runner
        self.auth = auth
        self.uploader = uploader

    def run(
        self,
        plan: ExecutionPlan,
        *,
        on_result: Callable[[int, int, BenchmarkResult], None] | None = None,
        run_config: dict[str, Any] | None = None,
    ) -> Report:
        """Run every unit in plan order, one at a time.

        A Ctrl-C stops the run: units not yet finished are recorded as
        cancelled so the report still has one entry per unit.
        """
        started_at = datetime.now(UTC)
        wall_start = time.perf_counter()
        results: list[BenchmarkResult] = []
        total = len(plan)
        cancelled = False

        for i, unit in enumerate(plan):
            try:
                result = self.runner.run(unit)
            except KeyboardInterrupt:
                logger.warning("Interrupted; skipping %d remaining unit(s)", total - i)
                cancelled = True
                break
            results.append(result)
            if on_result is not None:
                on_result(i + 1, total, result)

        if cancelled:
            for unit in plan.units[len(results) :]:
                results.append(
                    BenchmarkResult.failed(unit.benchmark, unit.backend, CANCELLED_REASON)
                )

        completed_at = datetime.now(UTC)
        duration_s = time.perf_counter() - wall_start
        metadata = build_run_metadata(
            plan=plan,
            started_at=started_at,
            completed_at=completed_at,
            duration_s=duration_s,
            run_config=run_config,
        )
        report = Report(metadata=metadata, results=results, cancelled=cancelled)
        log_event(
            {
                "kind": "run_complete",
                "total_units": report.total,
                "succeeded_units": report.succeeded,
                "cancelled": cancelled,
                "duration_s": round(duration_s, 3),
            }
        )
        return report

    @staticmethod
    def summary_lines(report: Report) -> list[str]:
        lines = [r.summary_line() for r in report.results]
        lines.append(f"{report.succeeded}/{report.total} units succeeded")
        return lines

    def share(
        self,
        report: Report,
        *,
        on_prompt: Callable[[DeviceFlowSession], None] | None = None,
    ) -> ShareOutcome:
        """Authenticate and upload. Never raises auth/upload errors; never mutates results."""
        if self.auth is None or self.uploader is None:
            raise RuntimeError("Sharing requires an AuthManager and a ResultsClient")

        if not self.uploader.is_configured:
            logger.warning("Sharing skipped: %s", MISSING_ENDPOINT_MESSAGE)
            return ShareOutcome(uploaded=False, error=UploadFailure(MISSING_ENDPOINT_MESSAGE))

        try:
            token = self.auth.ensure_token(on_prompt)
        except AuthFailure as exc:
            logger.warning("Sharing skipped, authentication failed: %s", exc)
            return ShareOutcome(uploaded=False, error=exc)

        user = self.auth.whoami(token)
        report.set_user(user)

        try:
            response = self.uploader.upload(report, token.access_token)
        except UploadFailure as exc:
            return ShareOutcome(uploaded=False, user=user, error=exc)
        return ShareOutcome(uploaded=True, user=user, response=response)


def exit_code_for(report: Report) -> int:
    """Non-zero only when every unit failed."""
    return 1 if report.all_failed else 0
