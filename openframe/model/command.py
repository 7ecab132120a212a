"""Command execution models."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ExecuteOptions(BaseModel):
    """Parameters for a single external command invocation."""

    command: str
    args: List[str] = []
    dir: Optional[str] = None
    env: Dict[str, str] = {}
    timeout: Optional[float] = None


class CommandResult(BaseModel):
    """Outcome of an external command."""

    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    duration: float = Field(default=0.0, description="Wall-clock seconds")

    model_config = {"frozen": True}

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        if self.stderr:
            return f"{self.stdout}\n{self.stderr}"
        return self.stdout

    @property
    def success(self) -> bool:
        return self.exit_code == 0
