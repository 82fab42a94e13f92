"""Helpers shared by the sub-commands."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Coroutine, Dict, Iterator, TypeVar

import click


T = TypeVar("T")

logger = logging.getLogger("labops.cli")

CONTEXT_SETTINGS: Dict[str, Any] = dict(
    help_option_names=["-h", "--help"],
    show_default=True,
    max_content_width=120,
)

# Caller-facing failures; anything else is a bug and keeps its traceback.
USER_ERRORS = (ValueError, FileNotFoundError, KeyError, RuntimeError, OSError)


@contextmanager
def user_errors() -> Iterator[None]:
    """Turn expected failures into `click.ClickException` (exit 1)."""
    try:
        yield
    except USER_ERRORS as exc:
        message = str(exc.args[0]) if isinstance(exc, KeyError) and exc.args else str(exc)
        logger.error("command_failed | error=%s", message)
        raise click.ClickException(message) from exc


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    with user_errors():
        return asyncio.run(coro)


def finish(ok: bool, success_message: str, failure_message: str) -> None:
    """Report the outcome and exit 1 on failure."""
    if ok:
        click.echo(success_message)
        return
    click.echo(failure_message, err=True)
    raise click.exceptions.Exit(1)
