"""Console helpers that respect the current run mode."""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..model.runtime import RunContext, RunMode
from .errors import OperationCancelled


class _NullStatus:
    """Stand-in for ``rich.status.Status`` when spinners are suppressed."""

    def update(self, status: str = "") -> None:
        pass


class UI:
    """Spinners, prompts, boxes and tables for one CLI invocation.

    Prompts are only shown in interactive mode; elsewhere the supplied default
    is returned. Spinners and informational lines are suppressed in test mode
    and when ``--silent`` is set.
    """

    def __init__(self, ctx: Optional[RunContext] = None, console: Optional[Console] = None):
        self.ctx = ctx or RunContext()
        self.console = console or Console()

    @property
    def quiet(self) -> bool:
        return self.ctx.silent or self.ctx.mode == RunMode.TEST

    @contextmanager
    def status(self, message: str) -> Iterator:
        if self.quiet or not self.console.is_terminal:
            if not self.quiet:
                self.console.print(message)
            yield _NullStatus()
            return
        with self.console.status(f"[bold green]{message}") as status:
            yield status

    def print(self, *objects, **kwargs) -> None:
        if not self.ctx.silent:
            self.console.print(*objects, **kwargs)

    def info(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[cyan]ℹ[/cyan] {message}")

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if not self.ctx.silent:
            self.console.print(f"[yellow]⚠[/yellow]  {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]Error:[/red] {message}")

    def debug(self, message: str) -> None:
        if self.ctx.verbose:
            self.console.print(f"[dim]{message}[/dim]")

    def confirm(self, question: str, default: bool = True) -> bool:
        if not self.ctx.prompts_enabled:
            return default
        try:
            return Confirm.ask(question, default=default, console=self.console)
        except (KeyboardInterrupt, EOFError):
            raise OperationCancelled()

    def ask(
        self,
        question: str,
        default: str = "",
        choices: Optional[List[str]] = None,
        password: bool = False,
    ) -> str:
        if not self.ctx.prompts_enabled:
            return default
        try:
            answer = Prompt.ask(
                question,
                default=default or None,
                choices=choices,
                password=password,
                console=self.console,
            )
        except (KeyboardInterrupt, EOFError):
            raise OperationCancelled()
        return (answer or "").strip()

    def select(self, question: str, options: Sequence[str], default: Optional[str] = None) -> str:
        """Numbered choice; returns the selected option."""
        if not options:
            raise ValueError("no options to choose from")
        default = default if default in options else options[0]
        if not self.ctx.prompts_enabled or len(options) == 1:
            return default

        for index, option in enumerate(options, 1):
            self.console.print(f"  [cyan]{index}[/cyan]. {option}")
        choices = [str(i) for i in range(1, len(options) + 1)]
        answer = self.ask(question, default=str(options.index(default) + 1), choices=choices)
        return options[int(answer) - 1]

    def box(self, title: str, rows: Sequence[Tuple[str, str]], style: str = "blue") -> None:
        if self.ctx.silent:
            return
        width = max((len(label) for label, _ in rows), default=0)
        body = "\n".join(f"[bold]{label.ljust(width)}[/bold]  {value}" for label, value in rows)
        self.console.print(Panel(body, title=title, style=style, expand=False))

    def table(self, columns: Sequence[str], rows: Sequence[Sequence[str]], title: Optional[str] = None) -> None:
        if self.ctx.silent:
            return
        table = Table(title=title, show_header=True, header_style="bold magenta")
        for index, column in enumerate(columns):
            table.add_column(column, style="cyan" if index == 0 else "white")
        for row in rows:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)
