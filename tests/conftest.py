"""Test configuration and fixtures."""

import io
from typing import Dict, List, Optional, Union

import pytest
from rich.console import Console

from openframe.model.command import CommandResult, ExecuteOptions
from openframe.model.runtime import RunContext, RunMode
from openframe.utils.errors import CommandError
from openframe.utils.executor import CommandExecutor
from openframe.utils.paths import PathResolver
from openframe.utils.ui import UI

Response = Union[str, CommandResult, BaseException, List]


class ScriptedExecutor(CommandExecutor):
    """Executor that answers from a table of command-line prefixes.

    The longest matching prefix wins. A response may be stdout text, a
    CommandResult, an exception to raise, or a list consumed one item per call
    (the last item repeats). Unmatched commands succeed with empty output.
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None, dry_run: bool = False):
        super().__init__(dry_run=dry_run, console=Console(file=io.StringIO()))
        self.responses = dict(responses or {})
        self.calls: List[str] = []
        self.options: List[ExecuteOptions] = []

    def _run(self, options: ExecuteOptions, capture: bool) -> CommandResult:
        line = " ".join([options.command, *options.args])
        self.calls.append(line)
        self.options.append(options)
        for prefix in sorted(self.responses, key=len, reverse=True):
            if line.startswith(prefix):
                return self._answer(prefix)
        return CommandResult()

    def _answer(self, prefix: str) -> CommandResult:
        response = self.responses[prefix]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, CommandResult):
            return response
        return CommandResult(stdout=response)

    def ran(self, prefix: str) -> bool:
        return any(call.startswith(prefix) for call in self.calls)

    def count(self, prefix: str) -> int:
        return sum(1 for call in self.calls if call.startswith(prefix))


def command_error(command: str = "tool", exit_code: int = 1, stderr: str = "boom") -> CommandError:
    return CommandError(command, exit_code, stderr)


@pytest.fixture
def executor():
    return ScriptedExecutor()


@pytest.fixture
def test_ctx():
    return RunContext(mode=RunMode.TEST)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def ui(test_ctx, output):
    return UI(test_ctx, Console(file=output, width=200))


@pytest.fixture
def non_interactive_ui(output):
    return UI(RunContext(mode=RunMode.NON_INTERACTIVE), Console(file=output, width=200))


@pytest.fixture
def resolver(tmp_path):
    return PathResolver(home=tmp_path / "home", workdir=tmp_path / "work")


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.openframe."""
    monkeypatch.setenv("OPENFRAME_HOME", str(tmp_path / "openframe-home"))
