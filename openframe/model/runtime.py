"""Run-mode configuration passed through every workflow."""

import threading
from enum import Enum

from pydantic import BaseModel, Field


class RunMode(str, Enum):
    """How the CLI may interact with the user."""

    INTERACTIVE = "interactive"
    NON_INTERACTIVE = "non-interactive"
    TEST = "test"


class RunContext(BaseModel):
    """Per-invocation settings shared by services, installers and UI helpers."""

    mode: RunMode = RunMode.INTERACTIVE
    verbose: bool = False
    silent: bool = False
    dry_run: bool = False
    cancel: threading.Event = Field(default_factory=threading.Event)

    model_config = {"arbitrary_types_allowed": True}

    @property
    def prompts_enabled(self) -> bool:
        return self.mode == RunMode.INTERACTIVE

    @property
    def non_interactive(self) -> bool:
        return self.mode != RunMode.INTERACTIVE

    @property
    def is_test(self) -> bool:
        return self.mode == RunMode.TEST

    @property
    def cancelled(self) -> bool:
        return self.cancel.is_set()

    def with_mode(self, mode: RunMode) -> "RunContext":
        """Copy of this context with a different mode; the cancel token is shared."""
        return self.model_copy(update={"mode": mode})
