"""Checkers and installers for the external binaries openframe drives."""

import platform
import shutil
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..utils.errors import CommandError, PrerequisiteError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger

logger = get_logger(__name__)

DARWIN = "Darwin"
LINUX = "Linux"
WINDOWS = "Windows"

DOCKER_START_TIMEOUT = 60.0


def current_os() -> str:
    return platform.system()


def _shell(script: str) -> List[str]:
    return ["bash", "-c", script]


class ToolChecker(ABC):
    """Check, explain and install one prerequisite."""

    name: str = ""
    command: str = ""

    def __init__(self, executor: Optional[CommandExecutor] = None):
        self.executor = executor or CommandExecutor()

    @abstractmethod
    def is_installed(self) -> bool:
        """True when the tool is usable right now."""

    @abstractmethod
    def get_install_help(self) -> str:
        """Manual installation instructions for the current OS."""

    @abstractmethod
    def _install(self) -> None:
        """Perform the OS-specific installation."""

    def install(self) -> None:
        """Install the tool; a no-op when it is already present.

        Failures propagate unwrapped; the installer loop names the tool.
        """
        if self.is_installed():
            logger.debug(f"{self.name} already installed")
            return
        self._install()


class BinaryToolChecker(ToolChecker):
    """A tool installed from a per-OS list of commands and checked with ``--version``."""

    check_args: List[str] = ["--version"]
    # OS name -> list of argv lists run in order
    recipes: Dict[str, List[List[str]]] = {}
    help_text: Dict[str, str] = {}
    default_help: str = ""

    def is_installed(self) -> bool:
        try:
            self.executor.execute(self.command, *self.check_args)
            return True
        except CommandError:
            return False

    def get_install_help(self) -> str:
        return self.help_text.get(current_os(), self.default_help)

    def _install(self) -> None:
        system = current_os()
        steps = self.recipes.get(system)
        if not steps:
            raise PrerequisiteError(
                f"automatic installation of {self.name} is not supported on {system}. "
                f"{self.get_install_help()}"
            )
        if system == DARWIN and steps[0][0] == "brew" and not shutil.which("brew"):
            raise PrerequisiteError(
                f"Homebrew is required to install {self.name}. Install it from https://brew.sh"
            )
        for step in steps:
            self.executor.execute(step[0], *step[1:])


class KubectlChecker(BinaryToolChecker):
    name = "kubectl"
    command = "kubectl"
    check_args = ["version", "--client"]
    recipes = {
        DARWIN: [["brew", "install", "kubectl"]],
        LINUX: [
            _shell(
                'curl -fsSLO "https://dl.k8s.io/release/$(curl -fsSL https://dl.k8s.io/release/stable.txt)'
                '/bin/linux/$(uname -m | sed s/x86_64/amd64/ | sed s/aarch64/arm64/)/kubectl" '
                "&& chmod +x kubectl && sudo mv kubectl /usr/local/bin/kubectl"
            )
        ],
    }
    help_text = {
        DARWIN: "Install kubectl: brew install kubectl",
        LINUX: "Install kubectl: https://kubernetes.io/docs/tasks/tools/install-kubectl-linux/",
        WINDOWS: "Install kubectl: choco install kubernetes-cli",
    }
    default_help = "Install kubectl: https://kubernetes.io/docs/tasks/tools/"


class K3dChecker(BinaryToolChecker):
    name = "k3d"
    command = "k3d"
    check_args = ["version"]
    recipes = {
        DARWIN: [["brew", "install", "k3d"]],
        LINUX: [_shell("curl -fsSL https://raw.githubusercontent.com/k3d-io/k3d/main/install.sh | bash")],
    }
    help_text = {
        DARWIN: "Install k3d: brew install k3d",
        LINUX: "Install k3d: curl -s https://raw.githubusercontent.com/k3d-io/k3d/main/install.sh | bash",
        WINDOWS: "Install k3d: choco install k3d",
    }
    default_help = "Install k3d: https://k3d.io/#installation"


class HelmChecker(BinaryToolChecker):
    name = "Helm"
    command = "helm"
    check_args = ["version", "--short"]
    recipes = {
        DARWIN: [["brew", "install", "helm"]],
        LINUX: [
            _shell("curl -fsSL https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash")
        ],
    }
    help_text = {
        DARWIN: "Install Helm: brew install helm",
        LINUX: "Install Helm: curl https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash",
        WINDOWS: "Install Helm: choco install kubernetes-helm",
    }
    default_help = "Install Helm: https://helm.sh/docs/intro/install/"


class GitChecker(BinaryToolChecker):
    name = "Git"
    command = "git"
    recipes = {
        DARWIN: [["brew", "install", "git"]],
        LINUX: [_shell("sudo apt-get update && sudo apt-get install -y git")],
    }
    help_text = {
        DARWIN: "Install Git: brew install git (or xcode-select --install)",
        LINUX: "Install Git: sudo apt-get install git (or your distribution's package manager)",
        WINDOWS: "Install Git: https://git-scm.com/download/win",
    }
    default_help = "Install Git: https://git-scm.com/downloads"

    def _install(self) -> None:
        if current_os() == LINUX and not shutil.which("apt-get"):
            raise PrerequisiteError(
                f"automatic installation of Git requires apt-get. {self.get_install_help()}"
            )
        super()._install()


class TelepresenceChecker(BinaryToolChecker):
    name = "Telepresence"
    command = "telepresence"
    check_args = ["version"]
    recipes = {
        DARWIN: [["brew", "install", "telepresenceio/telepresence/telepresence-oss"]],
        LINUX: [
            _shell(
                "sudo curl -fL https://app.getambassador.io/download/tel2oss/releases/download/"
                "latest/telepresence-linux-amd64 -o /usr/local/bin/telepresence "
                "&& sudo chmod a+x /usr/local/bin/telepresence"
            )
        ],
    }
    help_text = {
        DARWIN: "Install Telepresence: brew install telepresenceio/telepresence/telepresence-oss",
        LINUX: "Install Telepresence: https://www.telepresence.io/docs/latest/install/",
        WINDOWS: "Install Telepresence: https://www.telepresence.io/docs/latest/install/",
    }
    default_help = "Install Telepresence: https://www.telepresence.io/docs/latest/install/"


class JqChecker(BinaryToolChecker):
    name = "jq"
    command = "jq"
    recipes = {
        DARWIN: [["brew", "install", "jq"]],
        LINUX: [_shell("sudo apt-get update && sudo apt-get install -y jq")],
    }
    help_text = {
        DARWIN: "Install jq: brew install jq",
        LINUX: "Install jq: sudo apt-get install jq",
        WINDOWS: "Install jq: choco install jq",
    }
    default_help = "Install jq: https://jqlang.github.io/jq/download/"


class SkaffoldChecker(BinaryToolChecker):
    name = "Skaffold"
    command = "skaffold"
    check_args = ["version"]
    recipes = {
        DARWIN: [["brew", "install", "skaffold"]],
        LINUX: [
            _shell(
                "curl -fLo skaffold https://storage.googleapis.com/skaffold/releases/latest/"
                "skaffold-linux-amd64 && sudo install skaffold /usr/local/bin/ && rm -f skaffold"
            )
        ],
    }
    help_text = {
        DARWIN: "Install Skaffold: brew install skaffold",
        LINUX: "Install Skaffold: https://skaffold.dev/docs/install/",
        WINDOWS: "Install Skaffold: choco install skaffold",
    }
    default_help = "Install Skaffold: https://skaffold.dev/docs/install/"


class DockerChecker(BinaryToolChecker):
    """Docker counts as installed only when the daemon answers."""

    name = "Docker"
    command = "docker"
    check_args = ["info"]
    recipes = {
        DARWIN: [["brew", "install", "--cask", "docker"]],
        LINUX: [_shell("curl -fsSL https://get.docker.com | sh")],
    }
    help_text = {
        DARWIN: "Install Docker Desktop: brew install --cask docker (then start Docker Desktop)",
        LINUX: "Install Docker: curl -fsSL https://get.docker.com | sh (then: sudo systemctl start docker)",
        WINDOWS: "Install Docker Desktop: https://docs.docker.com/desktop/install/windows-install/",
    }
    default_help = "Install Docker: https://docs.docker.com/get-docker/"

    def is_binary_present(self) -> bool:
        try:
            self.executor.execute("docker", "--version")
            return True
        except CommandError:
            return False

    def get_install_help(self) -> str:
        if self.is_binary_present():
            if current_os() == DARWIN:
                return "Docker is installed but not running. Start Docker Desktop: open -a Docker"
            return "Docker is installed but not running. Start it with: sudo systemctl start docker"
        return super().get_install_help()

    def _install(self) -> None:
        if not self.is_binary_present():
            super()._install()
        self.start()
        if not self.wait_until_running():
            raise PrerequisiteError("Docker was installed but did not start")

    def start(self) -> None:
        """Ask the OS to start the Docker daemon."""
        system = current_os()
        if system == DARWIN:
            self.executor.execute("open", "-a", "Docker")
        elif system == LINUX:
            self.executor.execute("sudo", "systemctl", "start", "docker")
        else:
            raise PrerequisiteError("Please start Docker Desktop manually")

    def wait_until_running(
        self, timeout: float = DOCKER_START_TIMEOUT, interval: float = 2.0
    ) -> bool:
        deadline = time.monotonic() + timeout
        while True:
            if self.is_installed():
                return True
            if time.monotonic() >= deadline:
                return False
            time.sleep(interval)
