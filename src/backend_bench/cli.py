import json
import logging
import os
import sys
from pathlib import Path

import click
import pyperclip
from dotenv import load_dotenv

from . import __version__
from .aggregator import ResultAggregator, exit_code_for
from .auth import AuthManager, DeviceFlowSession, TokenStore
from .clients import ResultsClient
from .config import BenchConfig
from .errors import AuthFailure, UnknownSelector
from .plan import build_plan
from .registry import default_registry
from .results import BenchmarkResult
from .runner import UnitRunner, measure_in_process

logger = logging.getLogger(__name__)

EXIT_INVALID_SELECTION = 2


def _load_env() -> None:
    dotenv_path = os.getenv("BACKEND_BENCH_DOTENV_PATH", "").strip()
    if dotenv_path:
        path = Path(dotenv_path).expanduser()
        if path.exists():
            load_dotenv(path)
            return
        click.echo(f"Warning: BACKEND_BENCH_DOTENV_PATH does not exist: {dotenv_path}", err=True)
    load_dotenv()


def _configure_logging() -> None:
    log_level_str = os.getenv("BACKEND_BENCH_LOG_LEVEL", "WARNING").upper()
    log_level = getattr(logging, log_level_str, logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def _load_config() -> BenchConfig:
    try:
        return BenchConfig.from_env()
    except RuntimeError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(1)


def _build_auth_manager(config: BenchConfig) -> AuthManager:
    return AuthManager(config, TokenStore(config.token_dir))


def _split_names(values: tuple[str, ...]) -> list[str]:
    names: list[str] = []
    for value in values:
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


def _print_device_prompt(session: DeviceFlowSession) -> None:
    click.echo(
        "🌐 Please visit the following URL in your browser "
        "(CTRL+click if your terminal supports it):"
    )
    click.echo(f"\n    {session.verification_uri}\n")
    click.echo(f"👉 And enter code: {session.user_code}")
    try:
        pyperclip.copy(session.user_code)
    except pyperclip.PyperclipException as exc:
        logger.debug("Clipboard unavailable: %s", exc)
    else:
        click.echo("📋 Code has been successfully copied to clipboard.")
    click.echo("Waiting for authorization (Ctrl-C to cancel)...")


@click.group()
@click.version_option(version=__version__, prog_name="backend-bench")
def main() -> None:
    """Run benchmarks across computation backends and share the results."""
    _load_env()
    _configure_logging()


@main.command("list")
@click.option("--verbose", "-v", is_flag=True, help="Show descriptions and launch modes")
def list_command(verbose: bool) -> None:
    """List all available benchmarks and backends."""
    registry = default_registry()
    click.echo("Available Backends:")
    for name in registry.list_backends():
        if verbose:
            backend = registry.backends[name]
            mode = "isolated" if backend.isolated else "in-process"
            click.echo(f"- {name} ({backend.device}, {mode})")
        else:
            click.echo(f"- {name}")
    click.echo("\nAvailable Benchmarks:")
    for name in registry.list_benchmarks():
        if verbose and registry.benchmarks[name].description:
            click.echo(f"- {name}: {registry.benchmarks[name].description}")
        else:
            click.echo(f"- {name}")


@main.command()
@click.option(
    "--benches",
    "-b",
    "benches",
    multiple=True,
    metavar="BENCH[,BENCH...]",
    help="Benchmarks to run (repeatable or comma-separated; default: all)",
)
@click.option(
    "--backends",
    "-B",
    "backends",
    multiple=True,
    metavar="BACKEND[,BACKEND...]",
    help="Backends to include (repeatable or comma-separated; default: all)",
)
@click.option("--share", is_flag=True, help="Upload results after authenticating")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the full report as JSON to this path",
)
@click.option("--verbose", "-v", is_flag=True, help="Log each unit as it runs")
def run(
    benches: tuple[str, ...],
    backends: tuple[str, ...],
    share: bool,
    output: Path | None,
    verbose: bool,
) -> None:
    """Run benchmarks."""
    if verbose:
        logging.getLogger("backend_bench").setLevel(logging.INFO)
    registry = default_registry()
    try:
        plan = build_plan(registry, _split_names(benches), _split_names(backends))
    except UnknownSelector as e:
        click.echo(f"Error: {e}", err=True)
        available = registry.list_benchmarks() if e.kind == "benchmark" else registry.list_backends()
        click.echo(f"Available {e.kind}s: {', '.join(available)}", err=True)
        sys.exit(EXIT_INVALID_SELECTION)

    for line in plan.describe():
        click.echo(line)

    config = _load_config()
    runner = UnitRunner(registry, worker_timeout=config.worker_timeout)
    aggregator = ResultAggregator(
        runner,
        auth=_build_auth_manager(config) if share else None,
        uploader=ResultsClient(config) if share else None,
    )

    def _progress(current: int, total: int, result: BenchmarkResult) -> None:
        status_icon = "✓" if result.ok else "✗"
        click.echo(f"[{current}/{total}] {status_icon} {result.benchmark}/{result.backend}")

    click.echo("\nRunning benchmarks...")
    report = aggregator.run(
        plan,
        on_result=_progress,
        run_config={"share": share},
    )

    click.echo("\n" + "=" * 50)
    click.echo("BENCHMARK SUMMARY")
    click.echo("=" * 50)
    for line in aggregator.summary_lines(report):
        click.echo(line)
    if report.cancelled:
        click.echo("Run interrupted; remaining units were skipped.", err=True)

    if output is not None:
        saved = report.save(output)
        click.echo(f"\nReport saved to {saved}")

    if share:
        outcome = aggregator.share(report, on_prompt=_print_device_prompt)
        click.echo(outcome.message, err=not outcome.uploaded)

    code = exit_code_for(report)
    if code:
        sys.exit(code)


@main.command()
@click.option("--logout", is_flag=True, help="Delete the cached token instead")
def auth(logout: bool) -> None:
    """Authenticate using GitHub."""
    config = _load_config()
    manager = _build_auth_manager(config)

    if logout:
        if manager.logout():
            click.echo(f"Removed cached token at {manager.token_path}")
        else:
            click.echo("No cached token to remove.")
        return

    try:
        token = manager.authenticate(_print_device_prompt)
    except AuthFailure as exc:
        click.echo(f"Authentication error: {exc}", err=True)
        click.echo(exc.recommended_action, err=True)
        sys.exit(1)

    click.echo(f"✅ Token saved at location: {manager.token_path}")
    user = manager.whoami(token)
    if user:
        click.echo(f"Logged in as {user}")


@main.command(hidden=True)
@click.option("--bench", "benchmark", required=True)
@click.option("--backend", required=True)
def worker(benchmark: str, backend: str) -> None:
    """Run one unit in this process and print its JSON outcome on stdout."""
    try:
        measurement = measure_in_process(default_registry(), benchmark, backend)
    except Exception as exc:
        click.echo(json.dumps({"error": f"{type(exc).__name__}: {exc}"}))
        sys.exit(1)
    click.echo(
        json.dumps(
            {
                "benchmark": benchmark,
                "backend": backend,
                "durations_ns": list(measurement.durations_ns),
                "shapes": measurement.shapes,
            }
        )
    )
