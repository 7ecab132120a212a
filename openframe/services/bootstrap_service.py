"""``openframe bootstrap``: create a cluster and install charts on it."""

from typing import Callable, Optional

from ..model.chart import DEFAULT_GITHUB_BRANCH, DEFAULT_GITHUB_REPO, DeploymentMode, parse_deployment_mode
from ..model.cluster import (
    DEFAULT_CLUSTER_NAME,
    DEFAULT_NODE_COUNT,
    ClusterConfig,
    ClusterType,
    validate_cluster_name,
)
from ..model.runtime import RunContext, RunMode
from ..prerequisites.sets import check_prerequisites, cluster_prerequisites
from ..utils.errors import BranchNotFoundError, OpenFrameError, OperationCancelled, ValidationError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from ..utils.ui import UI
from .chart_service import install_charts_with_defaults
from .cluster_service import ClusterService

logger = get_logger(__name__)

PASS_THROUGH = (BranchNotFoundError, OperationCancelled)


class BootstrapService:
    """Cluster creation followed by chart installation."""

    def __init__(
        self,
        ctx: Optional[RunContext] = None,
        executor: Optional[CommandExecutor] = None,
        ui: Optional[UI] = None,
        cluster_service: Optional[ClusterService] = None,
        chart_installer: Optional[Callable[..., None]] = None,
    ):
        self.ctx = ctx or RunContext()
        self.executor = executor or CommandExecutor(
            dry_run=self.ctx.dry_run, verbose=self.ctx.verbose, cancel=self.ctx.cancel
        )
        self.ui = ui or UI(self.ctx)
        self.cluster_service = cluster_service or ClusterService(self.ctx, self.executor, ui=self.ui)
        self.chart_installer = chart_installer or install_charts_with_defaults

    def bootstrap(
        self,
        cluster_name: Optional[str] = None,
        deployment_mode: Optional[str] = None,
        non_interactive: bool = False,
    ) -> None:
        mode = parse_deployment_mode(deployment_mode)
        if non_interactive and mode is None:
            raise ValidationError("--deployment-mode is required when using --non-interactive")

        name = (cluster_name or "").strip() or DEFAULT_CLUSTER_NAME
        name = validate_cluster_name(name)

        ctx = self.ctx
        if non_interactive and ctx.mode == RunMode.INTERACTIVE:
            ctx = ctx.with_mode(RunMode.NON_INTERACTIVE)
            self.ui.ctx = ctx
        self.ui.info(f"Bootstrapping OpenFrame on cluster '{name}'")

        self.create_cluster(name)
        self.install_charts(name, mode, ctx, non_interactive)
        self.ui.success("OpenFrame bootstrap complete")

    def create_cluster(self, name: str) -> None:
        try:
            check_prerequisites(cluster_prerequisites(self.executor), self.ui)
            self.cluster_service.create_cluster(
                ClusterConfig(name=name, type=ClusterType.K3D, node_count=DEFAULT_NODE_COUNT)
            )
        except PASS_THROUGH:
            raise
        except OpenFrameError as e:
            raise OpenFrameError(f"failed to create cluster: {e}") from e

    def install_charts(
        self,
        name: str,
        mode: Optional[DeploymentMode],
        ctx: RunContext,
        non_interactive: bool = False,
    ) -> None:
        try:
            self.chart_installer(
                name,
                ctx,
                deployment_mode=mode,
                github_repo=DEFAULT_GITHUB_REPO,
                github_branch=DEFAULT_GITHUB_BRANCH,
                executor=self.executor,
                non_interactive=non_interactive,
            )
        except PASS_THROUGH:
            raise
        except OpenFrameError as e:
            raise OpenFrameError(f"failed to install charts: {e}") from e
