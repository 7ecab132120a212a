"""Chart installation workflows: ArgoCD plus the app-of-apps chart."""

import os
import threading
from pathlib import Path
from typing import List, Optional

from tenacity import (
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

from ..core.argocd import ArgoCDManager
from ..core.git import GitRepository
from ..core.helm import HelmManager
from ..core.validator import ConfigurationValidator
from ..core.values import HelmValuesModifier
from ..k8s.k3d import K3dManager
from ..model.chart import (
    DEFAULT_GITHUB_BRANCH,
    DEFAULT_GITHUB_REPO,
    AppOfAppsConfig,
    ChartConfiguration,
    ChartInstallConfig,
    DeploymentMode,
    InstallFlags,
)
from ..model.runtime import RunContext
from ..prerequisites.sets import chart_prerequisites, check_prerequisites, regenerate_certificates
from ..utils.errors import (
    BranchNotFoundError,
    OpenFrameError,
    OperationCancelled,
    ValidationError,
)
from ..utils.executor import CommandExecutor, redact_text
from ..utils.interrupt import interrupt_sets
from ..utils.logger import get_logger
from ..utils.paths import PathResolver
from ..utils.ui import UI
from .wizard import ConfigurationWizard

logger = get_logger(__name__)

INSTALL_ATTEMPTS = 3
INSTALL_RETRY_WAIT = 10
INSTALL_TIMEOUT = 60 * 60

NOT_RETRIED = (BranchNotFoundError, OperationCancelled, ValidationError, KeyboardInterrupt)


class ChartInstallError(OpenFrameError):
    """Chart installation failed."""


def inject_repository_token(url: str, token: str) -> str:
    """Embed an access token into an https clone URL."""
    if not token or not url.startswith("https://"):
        return url
    return url.replace("https://", f"https://{token}@", 1)


class AppOfAppsInstaller:
    """Clone the chart repository and install the app-of-apps chart from it."""

    def __init__(
        self,
        helm: HelmManager,
        git: GitRepository,
        resolver: Optional[PathResolver] = None,
        ui: Optional[UI] = None,
    ):
        self.helm = helm
        self.git = git
        self.resolver = resolver or PathResolver()
        self.ui = ui or UI()

    def install(self, config: ChartInstallConfig) -> None:
        app = config.app_of_apps
        if app is None:
            raise ValidationError("app-of-apps configuration is required")

        branch = app.github_branch or DEFAULT_GITHUB_BRANCH
        self.ui.info(f"Using branch: {branch}")
        clone = self.git.clone_chart_repository(app.model_copy(update={"github_branch": branch}))
        try:
            values_file = app.values_file
            if not values_file and self.resolver.get_helm_values_file().exists():
                values_file = str(self.resolver.get_helm_values_file())
            cert_file, key_file = self.resolver.get_certificate_files(app.cert_dir or None)
            local = config.model_copy(
                update={
                    "app_of_apps": app.model_copy(
                        update={"chart_path": clone.chart_path, "values_file": values_file}
                    )
                }
            )
            with self.ui.status("Installing app-of-apps chart..."):
                self.helm.install_app_of_apps(local, cert_file, key_file)
        finally:
            self.git.cleanup(clone.temp_dir)


class Installer:
    """ArgoCD first, then app-of-apps, then wait for the applications."""

    def __init__(
        self,
        helm: HelmManager,
        app_of_apps: AppOfAppsInstaller,
        argocd: ArgoCDManager,
        ui: Optional[UI] = None,
    ):
        self.helm = helm
        self.app_of_apps = app_of_apps
        self.argocd = argocd
        self.ui = ui or UI()

    def install(self, config: ChartInstallConfig, cancel: Optional[threading.Event] = None) -> None:
        with self.ui.status("Installing ArgoCD..."):
            self.helm.install_argocd(config)
        self.ui.success("ArgoCD installed")

        if not config.has_app_of_apps:
            return

        self.app_of_apps.install(config)
        self.ui.success("App-of-apps installed")
        self.argocd.wait_for_applications(config, cancel)


class ChartService:
    """The ``openframe chart install`` workflow."""

    def __init__(
        self,
        ctx: Optional[RunContext] = None,
        executor: Optional[CommandExecutor] = None,
        ui: Optional[UI] = None,
        resolver: Optional[PathResolver] = None,
        cluster_manager: Optional[K3dManager] = None,
        installer: Optional[Installer] = None,
        wizard: Optional[ConfigurationWizard] = None,
        retry_wait: float = INSTALL_RETRY_WAIT,
    ):
        self.ctx = ctx or RunContext()
        self.executor = executor or CommandExecutor(
            dry_run=self.ctx.dry_run, verbose=self.ctx.verbose, cancel=self.ctx.cancel
        )
        self.ui = ui or UI(self.ctx)
        self.resolver = resolver or PathResolver()
        self.cluster_manager = cluster_manager or K3dManager(self.executor, self.ctx.verbose)
        self.modifier = HelmValuesModifier()
        self.validator = ConfigurationValidator()
        self.wizard = wizard or ConfigurationWizard(self.ui, self.modifier)
        helm = HelmManager(self.executor)
        self.installer = installer or Installer(
            helm,
            AppOfAppsInstaller(helm, GitRepository(self.executor), self.resolver, self.ui),
            ArgoCDManager(self.executor, self.ui),
            self.ui,
        )
        self.retry_wait = retry_wait

    def install(
        self,
        cluster_name: Optional[str] = None,
        flags: Optional[InstallFlags] = None,
        deployment_mode: Optional[DeploymentMode] = None,
        non_interactive: bool = False,
    ) -> None:
        flags = flags or InstallFlags()
        if non_interactive and deployment_mode is None:
            raise ValidationError("--deployment-mode is required when using --non-interactive")

        with interrupt_sets(self.ctx.cancel):
            self._install(cluster_name, flags, deployment_mode, non_interactive)

    def _install(
        self,
        cluster_name: Optional[str],
        flags: InstallFlags,
        deployment_mode: Optional[DeploymentMode],
        non_interactive: bool,
    ) -> None:
        check_prerequisites(
            chart_prerequisites(self.executor, non_interactive, self.resolver), self.ui
        )

        chart_config = self.load_configuration(deployment_mode, non_interactive, flags.dry_run)
        try:
            cluster = self.select_cluster(cluster_name)
            if not cluster:
                return

            if not non_interactive and not self.ui.confirm(
                f"Install OpenFrame charts on cluster '{cluster}'?", default=True
            ):
                self.ui.info("Installation cancelled.")
                raise OperationCancelled("installation cancelled by user")

            if non_interactive:
                self.ui.warning("Skipping certificate regeneration (non-interactive mode)")
            elif not flags.dry_run:
                regenerate_certificates(self.ui, self.executor, self.resolver, flags.cert_dir or None)

            config = self.build_config(cluster, flags, chart_config, non_interactive)
            self.install_with_retry(config)
        finally:
            self._remove_temp_values(chart_config)

        if self.ctx.cancelled:
            raise OperationCancelled("installation cancelled by user")
        self.ui.success(f"OpenFrame charts installed on cluster '{cluster}'")

    def load_configuration(
        self,
        deployment_mode: Optional[DeploymentMode],
        non_interactive: bool,
        dry_run: bool,
    ) -> ChartConfiguration:
        base_path = self.resolver.get_helm_values_file()

        if dry_run:
            self.ui.info("Using existing configuration (dry-run mode)")
            values = self.modifier.load_or_create_base_values(base_path)
            return ChartConfiguration(
                base_values_path=str(base_path) if base_path.exists() else "",
                deployment_mode=deployment_mode or self.modifier.get_current_deployment_mode(values),
            )

        if non_interactive:
            self.ui.warning(f"Running in non-interactive mode with {deployment_mode.value} deployment")
            values = self.modifier.load_or_create_base_values(base_path)
            config = ChartConfiguration(base_values_path=str(base_path), deployment_mode=deployment_mode)
            self.modifier.apply_configuration(values, config)
            self.validator.validate(values, deployment_mode)
            config.temp_values_path = str(
                self.modifier.create_temporary_values_file(values, base_path.parent)
            )
            return config

        if deployment_mode is not None:
            self.ui.warning(f"Deployment mode pre-selected: {deployment_mode.value}")
        return self.wizard.run(base_path, deployment_mode)

    def select_cluster(self, cluster_name: Optional[str]) -> Optional[str]:
        clusters: List[str] = [c.name for c in self.cluster_manager.list_clusters()]
        if cluster_name:
            if clusters and cluster_name not in clusters:
                raise ValidationError(
                    f"cluster '{cluster_name}' not found. Available clusters: {', '.join(clusters)}"
                )
            return cluster_name
        if not clusters:
            self.ui.warning("No clusters found. Create a cluster first with: openframe cluster create")
            return None
        return self.ui.select("Select a cluster", clusters)

    def build_config(
        self,
        cluster_name: str,
        flags: InstallFlags,
        chart_config: ChartConfiguration,
        non_interactive: bool,
    ) -> ChartInstallConfig:
        mode = chart_config.deployment_mode
        repo = flags.github_repo or DEFAULT_GITHUB_REPO
        if mode is not None and repo == DEFAULT_GITHUB_REPO:
            repo = mode.repository_url
        if mode == DeploymentMode.SAAS_SHARED and chart_config.saas is not None:
            repo = inject_repository_token(repo, chart_config.saas.repository_password)

        branch = flags.github_branch or DEFAULT_GITHUB_BRANCH
        values_path = chart_config.temp_values_path or chart_config.base_values_path
        if branch == DEFAULT_GITHUB_BRANCH and values_path and Path(values_path).exists():
            values = self.modifier.load_or_create_base_values(Path(values_path))
            branch = self.modifier.get_branch_for_mode(values, mode) or branch
            if branch != DEFAULT_GITHUB_BRANCH:
                self.ui.info(f"Using branch '{branch}' from Helm values")

        logger.debug(f"Chart repository {redact_text(repo)} on branch {branch}")
        return ChartInstallConfig(
            cluster_name=cluster_name,
            force=flags.force,
            dry_run=flags.dry_run,
            verbose=self.ctx.verbose,
            silent=self.ctx.silent,
            non_interactive=non_interactive,
            app_of_apps=AppOfAppsConfig(
                github_repo=repo,
                github_branch=branch,
                values_file=values_path,
                cert_dir=flags.cert_dir or str(self.resolver.certificate_directory),
            ),
        )

    def install_with_retry(self, config: ChartInstallConfig) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(INSTALL_ATTEMPTS) | stop_after_delay(INSTALL_TIMEOUT),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_not_exception_type(NOT_RETRIED),
            reraise=True,
            before_sleep=lambda state: self.ui.warning(
                f"Installation attempt {state.attempt_number} failed: "
                f"{redact_text(str(state.outcome.exception()))}. Retrying..."
            ),
        )
        for attempt in retrying:
            with attempt:
                if self.ctx.cancelled:
                    raise OperationCancelled("installation cancelled by user")
                self._perform_installation(config)

    def _perform_installation(self, config: ChartInstallConfig) -> None:
        try:
            self.installer.install(config, self.ctx.cancel)
        except NOT_RETRIED:
            raise
        except OpenFrameError as e:
            raise ChartInstallError(
                f"chart installation failed on cluster {config.cluster_name}: {redact_text(str(e))}"
            ) from e

    def _remove_temp_values(self, chart_config: ChartConfiguration) -> None:
        path = chart_config.temp_values_path
        if not path:
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to remove temporary values file {path}: {e}")


def install_charts_with_defaults(
    cluster_name: str,
    ctx: RunContext,
    deployment_mode: Optional[DeploymentMode] = None,
    github_repo: str = DEFAULT_GITHUB_REPO,
    github_branch: str = DEFAULT_GITHUB_BRANCH,
    executor: Optional[CommandExecutor] = None,
    non_interactive: bool = False,
) -> None:
    """Install charts on ``cluster_name`` with default flags (used by bootstrap and scaffold)."""
    flags = InstallFlags(github_repo=github_repo, github_branch=github_branch, dry_run=ctx.dry_run)
    ChartService(ctx, executor=executor).install(cluster_name, flags, deployment_mode, non_interactive)
