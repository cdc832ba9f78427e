"""
bootcore CLI - Bootstrap a platform from a dependency plan and validate it.

Commands:
    bootcore run        Execute a plan, wait for readiness, run probes
    bootcore validate   Check a plan file and print its execution order
"""

import click

from .run import run
from .validate import validate


@click.group()
@click.version_option(package_name="bootcore")
def main():
    """bootcore - Deterministic platform bootstrap and validation."""
    pass


main.add_command(run)
main.add_command(validate)


if __name__ == "__main__":
    main()
