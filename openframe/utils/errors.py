"""Error types shared across openframe."""

from typing import Optional


class OpenFrameError(Exception):
    """Base class for openframe errors."""


class CommandError(OpenFrameError, RuntimeError):
    """An external command exited unsuccessfully."""

    def __init__(
        self,
        command: str,
        exit_code: int = -1,
        stderr: str = "",
        cause: Optional[str] = None,
    ):
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = cause or stderr.strip() or "no output"
        super().__init__(f"command failed: {command} (exit code: {exit_code}): {detail}")


class CommandTimeoutError(CommandError):
    """An external command was killed after exceeding its timeout."""

    def __init__(self, command: str, timeout: float, stderr: str = ""):
        self.timeout = timeout
        super().__init__(command, -1, stderr, cause=f"timed out after {timeout:g}s")


class ValidationError(OpenFrameError, ValueError):
    """User input rejected before any external command runs."""


class PrerequisiteError(OpenFrameError):
    """A required tool is missing or could not be installed."""


class BranchNotFoundError(OpenFrameError):
    """The requested branch does not exist in the chart repository."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(
            f"branch '{branch}' does not exist in repository. "
            "Please check if the branch name is correct or use 'main' branch"
        )


class OperationCancelled(OpenFrameError):
    """The user aborted the running operation."""

    def __init__(self, message: str = "operation cancelled"):
        super().__init__(message)


def is_cancellation(err: BaseException) -> bool:
    """True when ``err`` (or anything in its cause chain) is a cancellation."""
    current: Optional[BaseException] = err
    while current is not None:
        if isinstance(current, (OperationCancelled, KeyboardInterrupt)):
            return True
        current = current.__cause__
    return False
