"""Skaffold inner-loop development against an OpenFrame cluster."""

import os
import threading
from pathlib import Path
from typing import Callable, List, Optional

from tenacity import RetryError, Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from ..core.values import HelmValuesModifier
from ..k8s.k3d import K3dManager
from ..k8s.kubectl import KubectlProvider
from ..model.command import ExecuteOptions
from ..model.dev import DEFAULT_NAMESPACE, ScaffoldFlags, SkaffoldService
from ..model.runtime import RunContext
from ..prerequisites.sets import SCAFFOLD, check_cluster_availability, check_prerequisites, dev_prerequisites
from ..utils.errors import CommandError, OpenFrameError, OperationCancelled, is_cancellation
from ..utils.executor import CommandExecutor, run_with_timeout
from ..utils.interrupt import interrupt_sets
from ..utils.logger import get_logger
from ..utils.paths import PathResolver
from ..utils.ui import UI
from .chart_service import install_charts_with_defaults

logger = get_logger(__name__)

SKAFFOLD_FILES = ("skaffold.yaml", "skaffold.yml")
CHART_INSTALL_TIMEOUT = 150.0
SKAFFOLD_ATTEMPTS = 3
SKAFFOLD_RETRY_WAIT = 3.0

# Selection order; the first matching path fragment wins
CATEGORIES = [
    ("openframe/services", "OpenFrame Services"),
    ("integrated-tools", "Integrated Tools"),
    ("client", "Client Applications"),
    ("", "Other Services"),
]


def category_of(path: str) -> int:
    normalized = path.replace(os.sep, "/")
    for index, (fragment, _) in enumerate(CATEGORIES):
        if fragment and fragment in normalized:
            return index
    return len(CATEGORIES) - 1


def discover_skaffold_services(root: Path) -> List[SkaffoldService]:
    """Every skaffold.yaml below ``root``, named after its directory and grouped by category."""
    services = []
    for current, dirs, files in os.walk(root):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for filename in files:
            if filename not in SKAFFOLD_FILES:
                continue
            config_file = os.path.join(current, filename)
            directory = os.path.dirname(config_file)
            services.append(
                SkaffoldService(
                    name=os.path.basename(os.path.abspath(directory)),
                    directory=directory,
                    config_file=config_file,
                )
            )
    return sorted(services, key=lambda s: (category_of(os.path.relpath(s.config_file, root)), s.name))


class ScaffoldService:
    """Reinstall charts with autoSync off, then run ``skaffold dev`` for one service."""

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        chart_installer: Optional[Callable[..., None]] = None,
        ctx: Optional[RunContext] = None,
        ui: Optional[UI] = None,
        kubectl: Optional[KubectlProvider] = None,
        cluster_manager: Optional[K3dManager] = None,
        resolver: Optional[PathResolver] = None,
        root: Optional[Path] = None,
        install_timeout: float = CHART_INSTALL_TIMEOUT,
        retry_wait: float = SKAFFOLD_RETRY_WAIT,
    ):
        self.ctx = ctx or RunContext()
        self.executor = executor or CommandExecutor(
            dry_run=self.ctx.dry_run, verbose=self.ctx.verbose, cancel=self.ctx.cancel
        )
        self.chart_installer = chart_installer or install_charts_with_defaults
        self.ui = ui or UI(self.ctx)
        self.kubectl = kubectl or KubectlProvider(self.executor, self.ctx.verbose)
        self.cluster_manager = cluster_manager or K3dManager(self.executor, self.ctx.verbose)
        self.resolver = resolver or PathResolver()
        self.root = Path(root) if root else Path.cwd()
        self.install_timeout = install_timeout
        self.retry_wait = retry_wait
        self.modifier = HelmValuesModifier()
        self.is_running = False

    def run(self, cluster_name: Optional[str], flags: ScaffoldFlags) -> None:
        """Entry point for ``openframe dev scaffold``."""
        if not self.ctx.is_test:
            check_prerequisites(dev_prerequisites(SCAFFOLD, self.executor), self.ui)
        clusters = check_cluster_availability(self.cluster_manager)

        service = self.select_service()
        self.ui.info(f"Using skaffold configuration: {service.config_file}")

        cluster = self.get_cluster_name(cluster_name, clusters)

        if flags.skip_bootstrap:
            self.ui.info(f"Skipping chart install for cluster '{cluster}' (--skip-bootstrap flag provided)")
        elif not self.install_charts(cluster, flags):
            return

        self.run_skaffold_dev(service, flags)

    def select_service(self) -> SkaffoldService:
        services = discover_skaffold_services(self.root)
        if not services:
            self.ui.warning("No skaffold.yaml files found in project directory")
            self.ui.info("Create a skaffold.yaml file in your service directory to get started.")
            raise OpenFrameError("no skaffold files found")

        self.ui.success(f"Found {len(services)} skaffold configuration file(s)")
        names = [s.name for s in services]
        choice = self.ui.select("Which service would you like to use", names)
        return services[names.index(choice)]

    def get_cluster_name(self, cluster_name: Optional[str], clusters: Optional[List[str]] = None) -> str:
        if cluster_name:
            return cluster_name
        clusters = clusters or check_cluster_availability(self.cluster_manager)
        return self.ui.select("Select a cluster for scaffold", clusters)

    def install_charts(self, cluster: str, flags: ScaffoldFlags) -> bool:
        """Reinstall charts with autoSync disabled; False when the user cancelled."""
        self.ui.warning("OpenFrame chart needs to be reinstalled to disable autoSync for Skaffold usage...")
        values_file = self.resolver.get_helm_values_file()
        base = Path(flags.helm_values_file) if flags.helm_values_file else None
        if base is not None and not base.exists():
            raise OpenFrameError(f"helm values file not found: {base.resolve()}")
        try:
            self.modifier.create_dev_values_file(base, values_file)
        except OpenFrameError as e:
            raise OpenFrameError(f"failed to create development helm values: {e}") from e
        self.ui.debug("AutoSync is disabled for Skaffold development workflow")

        # Separate token so a timed-out install can be stopped without cancelling skaffold
        install_cancel = threading.Event()
        install_ctx = self.ctx.model_copy(update={"cancel": install_cancel})
        try:
            with interrupt_sets(install_cancel):
                finished, _ = run_with_timeout(
                    lambda: self.chart_installer(cluster, install_ctx),
                    self.install_timeout,
                    cancel=install_cancel,
                )
        except OperationCancelled:
            install_cancel.set()
            return False
        except OpenFrameError as e:
            if is_cancellation(e) or "cancelled" in str(e):
                return False
            raise OpenFrameError(f"chart install failed: {e}") from e

        if not finished:
            install_cancel.set()
        self.ui.success("ArgoCD Applications reinstalled")
        return True

    def determine_namespace(self, service: SkaffoldService, flags: ScaffoldFlags) -> str:
        if flags.namespace:
            return flags.namespace
        return self.kubectl.find_resource_namespace(service.name) or DEFAULT_NAMESPACE

    def build_skaffold_args(self, namespace: str) -> List[str]:
        args = ["dev", "--cache-artifacts=false", "-n", namespace]
        if self.ctx.verbose:
            args.extend(["--verbosity", "info"])
        return args

    def _on_interrupt(self) -> None:
        if self.is_running:
            self.ui.info("Received interrupt signal, stopping Skaffold...")
            self.is_running = False

    def run_skaffold_dev(self, service: SkaffoldService, flags: ScaffoldFlags) -> None:
        """Run ``skaffold dev`` with retries; the final failure is reported, not raised."""
        namespace = self.determine_namespace(service, flags)
        directory = os.path.abspath(service.directory)
        options = ExecuteOptions(command="skaffold", args=self.build_skaffold_args(namespace), dir=directory)

        self.ui.info(f"Running Skaffold commands (service: {service.name}, namespace: {namespace})...")
        retrying = Retrying(
            stop=stop_after_attempt(SKAFFOLD_ATTEMPTS),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_exception(lambda e: isinstance(e, CommandError) and self.is_running),
            before_sleep=lambda state: self.ui.warning(
                f"Skaffold attempt {state.attempt_number} failed: {state.outcome.exception()}"
            ),
        )

        self.is_running = True
        try:
            with interrupt_sets(threading.Event(), self._on_interrupt):
                for attempt in retrying:
                    with attempt:
                        if attempt.retry_state.attempt_number > 1:
                            self.ui.warning(
                                f"Skaffold attempt {attempt.retry_state.attempt_number}/{SKAFFOLD_ATTEMPTS} "
                                "(retrying after error)..."
                            )
                        self.executor.run_interactive(options)
        except RetryError as e:
            self.ui.error(
                f"Skaffold failed after {SKAFFOLD_ATTEMPTS} attempts: {e.last_attempt.exception()}"
            )
            return
        except CommandError as e:
            # An interrupted session ends with a non-zero exit from skaffold
            if self.is_running:
                raise
            logger.debug(f"Skaffold stopped: {e}")
        finally:
            self.is_running = False

        self.ui.warning("If you encounter issues after Skaffold command: delete and rebootstrap the cluster")
        self.ui.info("Skaffold development session completed")
