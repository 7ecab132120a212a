"""Command executor wrapping ``subprocess``."""

import os
import re
import subprocess
import threading
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple

from rich.console import Console

from ..model.command import CommandResult, ExecuteOptions
from .errors import CommandError, CommandTimeoutError, OperationCancelled
from .logger import get_logger

logger = get_logger(__name__)

REDACTED = "***"

_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-zA-Z][a-zA-Z0-9+.\-]*://)[^/\s@]+@")
_SECRET_ASSIGNMENT = re.compile(
    r"(?P<key>[\w.\-]*(?:password|passwd|token|secret|apikey|api-key)[\w.\-]*=)[^\s]+",
    re.IGNORECASE,
)
_SECRET_FLAGS = {"--password", "--token", "--secret", "--api-key"}


def redact_command(command: str, args: Sequence[str] = ()) -> str:
    """Render a command line with credentials removed."""
    parts: List[str] = []
    hide_next = False
    for part in [command, *args]:
        if hide_next:
            parts.append(REDACTED)
            hide_next = False
            continue
        if part in _SECRET_FLAGS:
            parts.append(part)
            hide_next = True
            continue
        parts.append(redact_text(part))
    return " ".join(parts)


def redact_text(text: str) -> str:
    """Strip URL credentials and ``key=secret`` values from free text."""
    text = _URL_CREDENTIALS.sub(lambda m: f"{m.group('scheme')}{REDACTED}@", text)
    return _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group('key')}{REDACTED}", text)


class CommandExecutor:
    """Run external tools and return structured results."""

    def __init__(
        self,
        dry_run: bool = False,
        verbose: bool = False,
        console: Optional[Console] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.dry_run = dry_run
        self.verbose = verbose
        self.console = console or Console(stderr=True)
        self.cancel = cancel

    def execute(self, command: str, *args: str) -> CommandResult:
        """Run ``command args...`` with default options."""
        return self.execute_with_options(ExecuteOptions(command=command, args=list(args)))

    def execute_with_options(self, options: ExecuteOptions) -> CommandResult:
        """Run a command, raising CommandError on a non-zero exit."""
        return self._run(options, capture=True)

    def run_interactive(self, options: ExecuteOptions) -> CommandResult:
        """Run a command attached to the terminal (output is not captured)."""
        return self._run(options, capture=False)

    def _run(self, options: ExecuteOptions, capture: bool) -> CommandResult:
        display = redact_command(options.command, options.args)

        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelled()

        if self.dry_run:
            if self.verbose:
                self.console.print(f"[dim]Would run: {display}[/dim]")
            logger.debug(f"Dry run: {display}")
            return CommandResult(exit_code=0)

        if self.verbose:
            self.console.print(f"[dim]Executing: {display}[/dim]")
        logger.debug(f"Executing: {display}")

        env = None
        if options.env:
            env = {**os.environ, **options.env}

        timeout = options.timeout if options.timeout and options.timeout > 0 else None
        start = time.monotonic()
        try:
            completed = subprocess.run(
                [options.command, *options.args],
                capture_output=capture,
                text=True,
                cwd=options.dir,
                env=env,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            # Partial output arrives as bytes even in text mode
            stderr = e.stderr or ""
            if isinstance(stderr, bytes):
                stderr = stderr.decode(errors="replace")
            raise CommandTimeoutError(display, timeout or 0, redact_text(stderr))
        except FileNotFoundError:
            raise CommandError(display, -1, cause=f"executable not found: {options.command}")
        except OSError as e:
            raise CommandError(display, -1, cause=str(e))

        result = CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=time.monotonic() - start,
        )

        if result.exit_code != 0:
            logger.debug(f"Command failed with exit code {result.exit_code}: {display}")
            raise CommandError(display, result.exit_code, redact_text(result.stderr))

        return result


def run_with_timeout(
    fn: Callable[[], Any],
    timeout: float,
    cancel: Optional[threading.Event] = None,
    poll_interval: float = 0.1,
) -> Tuple[bool, Any]:
    """Run ``fn`` in a worker thread and wait at most ``timeout`` seconds.

    Returns ``(True, result)`` when ``fn`` finished in time and ``(False, None)``
    when the timeout elapsed first; the worker is then left to finish on its
    own. Exceptions raised by ``fn`` are re-raised here. A set ``cancel`` event
    raises OperationCancelled.
    """
    outcome: dict = {}
    done = threading.Event()

    def _worker() -> None:
        try:
            outcome["result"] = fn()
        except BaseException as e:  # noqa: BLE001 - handed back to the caller
            outcome["error"] = e
        finally:
            done.set()

    worker = threading.Thread(target=_worker, name="openframe-worker", daemon=True)
    worker.start()

    deadline = time.monotonic() + timeout
    while not done.is_set():
        if cancel is not None and cancel.is_set():
            raise OperationCancelled()
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"Worker did not finish within {timeout:g}s")
            return False, None
        done.wait(min(poll_interval, remaining))

    if "error" in outcome:
        raise outcome["error"]
    return True, outcome.get("result")
