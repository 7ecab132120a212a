"""Generic prerequisite checking and installation."""

from typing import Callable, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..utils.errors import OpenFrameError, OperationCancelled, PrerequisiteError
from ..utils.logger import get_logger
from ..utils.ui import UI
from .tools import ToolChecker

logger = get_logger(__name__)


class Requirement(BaseModel):
    """A named capability check with an optional installer."""

    name: str
    command: str = ""
    is_installed: Callable[[], bool]
    install_help: Callable[[], str]
    installer: Optional[Callable[[], None]] = None
    installable: bool = True
    # Message shown instead of installing when ``installable`` is False
    warning: Optional[Callable[[], str]] = None
    # Tried before asking to install; returns True when the problem is fixed
    recover: Optional[Callable[[UI], bool]] = None

    @classmethod
    def from_checker(cls, checker: ToolChecker, **kwargs) -> "Requirement":
        return cls(
            name=checker.name,
            command=checker.command,
            is_installed=checker.is_installed,
            install_help=checker.get_install_help,
            installer=checker.install,
            **kwargs,
        )


class PrerequisiteSet:
    """An ordered list of requirements for one workflow."""

    def __init__(self, name: str, requirements: Sequence[Requirement]):
        self.name = name
        self.requirements = list(requirements)

    def check_all(self) -> Tuple[bool, List[str]]:
        """Check every requirement; missing names keep declaration order."""
        missing = [req.name for req in self.requirements if not req.is_installed()]
        return not missing, missing

    def get(self, name: str) -> Optional[Requirement]:
        for req in self.requirements:
            if req.name.lower() == name.lower():
                return req
        return None

    def get_install_instructions(self, missing: Sequence[str]) -> List[str]:
        """``"<name>: <help>"`` for each missing tool (names match case-insensitively)."""
        instructions = []
        for name in missing:
            req = self.get(name)
            if req is not None:
                instructions.append(f"{req.name}: {req.install_help()}")
        return instructions

    def installable(self, names: Sequence[str]) -> List[str]:
        result = []
        for name in names:
            req = self.get(name)
            if req is None or req.installable:
                result.append(name)
        return result


class PrerequisiteInstaller:
    """Check a prerequisite set, confirm with the user, install, then re-verify."""

    def __init__(self, prerequisites: PrerequisiteSet, ui: UI):
        self.prerequisites = prerequisites
        self.ui = ui

    @property
    def non_interactive(self) -> bool:
        return self.ui.ctx.non_interactive

    def check_and_install(self) -> None:
        all_present, missing = self.prerequisites.check_all()
        if all_present:
            logger.debug(f"All {self.prerequisites.name} prerequisites are present")
            return

        self._show_warnings(missing)
        to_install = self._recover(self.prerequisites.installable(missing))
        if not to_install:
            return

        self.ui.warning(f"Missing prerequisites: {', '.join(to_install)}")
        if not self.ui.confirm("Would you like to install them automatically?", default=True):
            self.show_manual_instructions(to_install)
            raise OperationCancelled("installation of prerequisites declined")

        self.install(to_install)
        self.verify()

    def _show_warnings(self, missing: Sequence[str]) -> None:
        for name in missing:
            req = self.prerequisites.get(name)
            if req is not None and not req.installable:
                message = req.warning() if req.warning else req.install_help()
                self.ui.warning(message)

    def _recover(self, missing: List[str]) -> List[str]:
        remaining = []
        for name in missing:
            req = self.prerequisites.get(name)
            if req is not None and req.recover is not None and req.recover(self.ui):
                continue
            remaining.append(name)
        return remaining

    def install(self, names: Sequence[str]) -> None:
        """Install tools strictly in the given order, one spinner at a time."""
        total = len(names)
        for index, name in enumerate(names, 1):
            req = self.prerequisites.get(name)
            if req is None or req.installer is None:
                continue
            try:
                with self.ui.status(f"[{index}/{total}] Installing {req.name}..."):
                    req.installer()
                self.ui.success(f"{req.name} installed")
            except OperationCancelled:
                raise
            except (OpenFrameError, OSError) as e:
                if self.non_interactive:
                    self.ui.warning(f"Failed to install {req.name}: {e}. Continuing")
                    logger.warning(f"Failed to install {req.name}: {e}")
                    continue
                raise PrerequisiteError(f"failed to install {req.name}: {e}") from e

    def verify(self) -> None:
        """Re-check every requirement after installation."""
        _, missing = self.prerequisites.check_all()
        still_missing = self.prerequisites.installable(missing)
        if not still_missing:
            self.ui.success("All prerequisites installed")
            return

        message = f"still missing after installation: {', '.join(still_missing)}"
        if self.non_interactive:
            self.ui.warning(message[0].upper() + message[1:])
            return
        self.show_manual_instructions(still_missing)
        raise PrerequisiteError(message)

    def show_manual_instructions(self, names: Sequence[str]) -> None:
        rows = []
        for instruction in self.prerequisites.get_install_instructions(names):
            tool, _, help_text = instruction.partition(": ")
            rows.append((tool, help_text))
        self.ui.print("\n[bold]Install the missing tools manually:[/bold]")
        self.ui.table(["Tool", "Installation"], rows)
