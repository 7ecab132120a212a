"""Shared helpers for the command layer."""

from typing import NoReturn, Optional

import typer
from rich.console import Console

from ..model.runtime import RunContext
from ..utils.errors import is_cancellation
from ..utils.executor import redact_text
from ..utils.logger import get_logger

console = Console()
logger = get_logger(__name__)


def get_run_context(ctx: typer.Context, dry_run: bool = False) -> RunContext:
    """The RunContext built by the root callback, with per-command overrides."""
    run_ctx = ctx.obj if isinstance(ctx.obj, RunContext) else RunContext()
    if dry_run and not run_ctx.dry_run:
        run_ctx = run_ctx.model_copy(update={"dry_run": True})
    return run_ctx


def handle_error(error: BaseException, run_ctx: Optional[RunContext] = None) -> NoReturn:
    """Print ``error`` once and exit with status 1; cancellations exit quietly."""
    if is_cancellation(error):
        logger.debug(f"Cancelled: {error}")
        raise typer.Exit(1)

    message = redact_text(str(error))
    logger.debug(f"Command failed: {message}")
    console.print(f"[red]Error:[/red] {message}")
    if run_ctx is not None and run_ctx.verbose and error.__cause__ is not None:
        console.print(f"[dim]Caused by: {redact_text(str(error.__cause__))}[/dim]")
    raise typer.Exit(1)
