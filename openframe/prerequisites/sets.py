"""Prerequisite sets for the cluster, chart and dev workflows."""

from typing import List, Optional

from ..utils.errors import CommandError, OpenFrameError, PrerequisiteError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from ..utils.paths import PathResolver
from ..utils.ui import UI
from .base import PrerequisiteInstaller, PrerequisiteSet, Requirement
from .system import CertificateChecker, MemoryChecker
from .tools import (
    DockerChecker,
    GitChecker,
    HelmChecker,
    JqChecker,
    K3dChecker,
    KubectlChecker,
    SkaffoldChecker,
    TelepresenceChecker,
)

logger = get_logger(__name__)

INTERCEPT = "intercept"
SCAFFOLD = "scaffold"

NO_CLUSTERS_MESSAGE = "No clusters found. Create a cluster first with: openframe cluster create"


def _docker_recover(docker: DockerChecker):
    """Offer to start an installed-but-stopped Docker daemon."""

    def recover(ui: UI) -> bool:
        if not docker.is_binary_present():
            return False
        ui.warning("Docker is installed but not running")
        if not ui.confirm("Start Docker now?", default=True):
            return False
        try:
            with ui.status("Starting Docker..."):
                docker.start()
                running = docker.wait_until_running()
        except (CommandError, PrerequisiteError) as e:
            ui.warning(f"Could not start Docker: {e}")
            return False
        if running:
            ui.success("Docker is running")
        else:
            ui.warning("Docker did not become ready in time")
        return running

    return recover


def cluster_prerequisites(executor: Optional[CommandExecutor] = None) -> PrerequisiteSet:
    executor = executor or CommandExecutor()
    docker = DockerChecker(executor)
    return PrerequisiteSet(
        "cluster",
        [
            Requirement.from_checker(docker, recover=_docker_recover(docker)),
            Requirement.from_checker(KubectlChecker(executor)),
            Requirement.from_checker(K3dChecker(executor)),
        ],
    )


def chart_prerequisites(
    executor: Optional[CommandExecutor] = None,
    non_interactive: bool = False,
    resolver: Optional[PathResolver] = None,
) -> PrerequisiteSet:
    executor = executor or CommandExecutor()
    memory = MemoryChecker(executor)

    def memory_warning() -> str:
        current, recommended, _ = memory.get_memory_info()
        return f"Memory Warning: {current} MB available, {recommended} MB recommended"

    requirements = [
        Requirement.from_checker(GitChecker(executor)),
        Requirement.from_checker(HelmChecker(executor)),
        Requirement.from_checker(memory, installable=False, warning=memory_warning),
    ]
    # Certificate trust needs a human at the keyboard
    if not non_interactive:
        requirements.append(Requirement.from_checker(CertificateChecker(executor, resolver)))
    return PrerequisiteSet("chart", requirements)


def dev_prerequisites(
    workflow: str, executor: Optional[CommandExecutor] = None
) -> PrerequisiteSet:
    executor = executor or CommandExecutor()
    if workflow == INTERCEPT:
        checkers = [TelepresenceChecker(executor), JqChecker(executor)]
    elif workflow == SCAFFOLD:
        checkers = [SkaffoldChecker(executor)]
    else:
        raise ValueError(f"unknown dev workflow: {workflow}")
    return PrerequisiteSet(workflow, [Requirement.from_checker(c) for c in checkers])


def check_cluster_availability(cluster_manager) -> List[str]:
    """Names of the existing clusters; the dev workflows need at least one."""
    try:
        clusters = [c.name for c in cluster_manager.list_clusters()]
    except OpenFrameError as e:
        logger.debug(f"Failed to list clusters: {e}")
        clusters = []
    if not clusters:
        raise OpenFrameError(NO_CLUSTERS_MESSAGE)
    return clusters


def regenerate_certificates(
    ui: UI,
    executor: Optional[CommandExecutor] = None,
    resolver: Optional[PathResolver] = None,
    cert_dir: Optional[str] = None,
) -> bool:
    """Refresh the localhost certificates; failure only produces a warning."""
    checker = CertificateChecker(executor, resolver, cert_dir)
    try:
        with ui.status("Refreshing certificates..."):
            checker.generate()
    except PrerequisiteError as e:
        logger.warning(f"Certificate generation failed: {e}")
        ui.warning("Certificate trust skipped (deployment would be unsecure)")
        return False
    ui.info("Certificates refreshed")
    return True


def check_prerequisites(prerequisites: PrerequisiteSet, ui: UI) -> None:
    """Run the full check, confirm, install and verify flow."""
    PrerequisiteInstaller(prerequisites, ui).check_and_install()
