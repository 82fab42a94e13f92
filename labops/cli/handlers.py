"""Handler discovery sub-command."""

from __future__ import annotations

import click

from labops.cli.common import CONTEXT_SETTINGS
from labops.core.handlers import list_handlers


@click.command(name="list-handlers", context_settings=CONTEXT_SETTINGS)
def list_tool_handlers() -> None:
    """List the discovered tool handlers and the executable each one runs."""
    for info in list_handlers():
        click.echo(f"{info['key']:<10} {info['version']:<8} {info['executable']}")
