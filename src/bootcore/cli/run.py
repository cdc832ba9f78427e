"""bootcore CLI - Execute a bootstrap plan and its health probes."""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Optional

import click
import yaml
from pydantic import ValidationError

from bootcore.config import BootcoreConfig, get_config
from bootcore.errors import PlanConstructionError
from bootcore.execution.cancellation import CancellationToken
from bootcore.logger import configure_logging

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _config_from_options(
    endpoint: Optional[str],
    no_telemetry: bool,
    probe_concurrency: Optional[int],
    kube_context: Optional[str],
) -> BootcoreConfig:
    overrides: dict = {}
    if endpoint:
        overrides["otlp_endpoint"] = endpoint
    if no_telemetry:
        overrides["emit_telemetry"] = False
    if probe_concurrency is not None:
        overrides["probe_concurrency"] = probe_concurrency
    if kube_context:
        overrides["kube_context"] = kube_context
    return get_config(**overrides)


def _load_plan(plan_file: Path, config: BootcoreConfig):
    """Load and build a plan; exit 1 with the error if it is invalid."""
    from bootcore.cluster.kubectl import KubectlClusterClient
    from bootcore.plan.builder import PlanBuilder
    from bootcore.plan.loader import PlanLoader

    try:
        spec = PlanLoader().load(plan_file)
        client = KubectlClusterClient(config, base_dir=plan_file.resolve().parent)
        return PlanBuilder(client, config).build(spec)
    except yaml.YAMLError as e:
        click.echo(click.style("Invalid YAML: ", fg="red") + str(e), err=True)
    except ValidationError as e:
        click.echo(click.style("Invalid plan file: ", fg="red") + str(e), err=True)
    except PlanConstructionError as e:
        click.echo(click.style("Invalid plan: ", fg="red") + str(e), err=True)
    sys.exit(1)


def _install_signal_handlers(cancel: CancellationToken) -> dict:
    """Route SIGINT/SIGTERM to the cancellation token."""

    def handler(signum, frame):
        cancel.cancel(signal.Signals(signum).name)

    previous = {}
    for sig in _SIGNALS:
        try:
            previous[sig] = signal.signal(sig, handler)
        except ValueError:
            # Not on the main thread (e.g. embedded runners)
            pass
    return previous


def _restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


@click.command("run")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Overall run deadline in seconds (expiry cancels the run)",
)
@click.option(
    "--probes-only",
    is_flag=True,
    help="Skip the actions and only probe an already provisioned cluster",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option(
    "--no-telemetry",
    is_flag=True,
    help="Skip exporting traces",
)
@click.option(
    "--endpoint",
    "-e",
    envvar="OTEL_EXPORTER_OTLP_ENDPOINT",
    default=None,
    help="OTLP endpoint for telemetry export",
)
@click.option(
    "--probe-concurrency",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of probes running at once",
)
@click.option(
    "--context",
    "kube_context",
    default=None,
    help="kubeconfig context to target",
)
def run(plan_file, timeout, probes_only, output_format, no_telemetry, endpoint, probe_concurrency, kube_context):
    """Bootstrap a platform from PLAN_FILE and validate it.

    Installs components in dependency order, waits for each to become
    ready, applies follow-on manifests, then runs the health probes.

    Exit codes: 0 succeeded, 1 failed, 2 partial (only optional
    components failed), 130 cancelled.

    Examples:

        # Full bootstrap with a 30 minute deadline
        bootcore run plans/a1-platform.yaml --timeout 1800

        # Smoke tests only, JSON for automation
        bootcore run plans/a1-platform.yaml --probes-only --format json
    """
    from bootcore.execution.orchestrator import Orchestrator
    from bootcore.execution.otel import emit_run_report
    from bootcore.report.render import render_json, render_table
    from bootcore.telemetry import configure_tracing, flush_tracing, run_span

    config = _config_from_options(endpoint, no_telemetry, probe_concurrency, kube_context)
    configure_logging(config.log_level, config.log_format)

    built = _load_plan(plan_file, config)

    otel_configured = False
    if config.emit_telemetry:
        otel_configured = configure_tracing(config.otlp_endpoint, config.service_name)
        if otel_configured and output_format == "table":
            click.echo(f"Telemetry export configured to {config.otlp_endpoint}")

    cancel = CancellationToken.with_timeout(timeout)
    previous = _install_signal_handlers(cancel)
    try:
        with run_span(built.plan.plan_id, {"bootcore.probes_only": probes_only}):
            report = Orchestrator(config).run(
                built.plan,
                probes=built.probes,
                cancel=cancel,
                probes_only=probes_only,
            )
            emit_run_report(report)
    finally:
        _restore_signal_handlers(previous)
        if otel_configured:
            flush_tracing()

    if output_format == "json":
        click.echo(render_json(report))
    else:
        click.echo(render_table(report, color=sys.stdout.isatty()))

    sys.exit(report.exit_code)
