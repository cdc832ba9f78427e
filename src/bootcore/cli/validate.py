"""bootcore CLI - Validate a plan file without touching the cluster."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from bootcore.config import get_config
from bootcore.logger import configure_logging


@click.command("validate")
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(plan_file):
    """Check PLAN_FILE and print its execution order.

    Exits 1 on schema errors, duplicate or unknown actions and cycles.
    """
    from bootcore.cli.run import _load_plan

    config = get_config()
    configure_logging(config.log_level, config.log_format)
    built = _load_plan(plan_file, config)

    plan = built.plan
    click.echo(click.style(f"Plan {plan.plan_id} is valid", fg="green"))
    click.echo(f"\nExecution order ({len(plan)} actions):")
    for i, action in enumerate(plan, 1):
        flags = []
        if action.optional:
            flags.append("optional")
        if action.gate is not None:
            flags.append(f"gate: {action.gate.description}")
        if action.max_attempts > 1:
            flags.append(f"attempts: {action.max_attempts}")
        suffix = f"  ({'; '.join(flags)})" if flags else ""
        click.echo(f"  {i:2d}. {action.name} [{action.kind.value}]{suffix}")

    click.echo(f"\nProbes ({len(built.probes)}):")
    for probe in sorted(built.probes.probes, key=lambda p: p.name):
        requires = f"  requires: {', '.join(probe.requires)}" if probe.requires else ""
        click.echo(f"  - {probe.name} [{probe.kind}]{requires}")
    sys.exit(0)
