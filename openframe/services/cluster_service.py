"""Cluster lifecycle workflows."""

from datetime import datetime, timezone
from typing import List, Optional

from ..core.argocd import ArgoCDManager
from ..core.helm import HelmManager
from ..k8s.k3d import ClusterNotFoundError, K3dManager
from ..k8s.kubectl import KubectlProvider
from ..k8s.parsers import filter_cluster_node_containers, parse_lines
from ..model.cluster import ClusterConfig, ClusterInfo, ClusterType
from ..model.runtime import RunContext
from ..utils.errors import CommandError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from ..utils.ui import UI

logger = get_logger(__name__)

CLEANUP_NAMESPACES = ["argocd", "openframe"]
PRUNE_COMMANDS = [
    ["docker", "image", "prune", "-f", "--all"],
    ["docker", "container", "prune", "-f"],
    ["docker", "volume", "prune", "-f"],
    ["docker", "network", "prune", "-f"],
    ["docker", "system", "prune", "-f"],
]


def format_age(created_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human readable age: minutes under an hour, hours under a day, else days."""
    if created_at is None:
        return "unknown"
    now = now or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    seconds = max((now - created_at).total_seconds(), 0)
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h"
    return f"{int(seconds // 86400)}d"


class ClusterService:
    """Create, inspect, delete and clean up clusters with user feedback."""

    def __init__(
        self,
        ctx: Optional[RunContext] = None,
        executor: Optional[CommandExecutor] = None,
        manager: Optional[K3dManager] = None,
        ui: Optional[UI] = None,
    ):
        self.ctx = ctx or RunContext()
        self.executor = executor or CommandExecutor(
            dry_run=self.ctx.dry_run, verbose=self.ctx.verbose, cancel=self.ctx.cancel
        )
        self.manager = manager or K3dManager(self.executor, verbose=self.ctx.verbose)
        self.ui = ui or UI(self.ctx)

    def create_cluster(self, config: ClusterConfig) -> None:
        """Create a cluster; an existing cluster with the same name is left alone."""
        existing = self._find(config.name)
        if existing is not None:
            self.ui.warning(f"Cluster '{config.name}' already exists")
            self._show_cluster_box(existing, title="Existing cluster", style="yellow")
            return

        with self.ui.status(f"Creating {config.type.value} cluster '{config.name}'..."):
            self.manager.create_cluster(config)

        self.ui.success(f"Cluster '{config.name}' created")
        self.ui.box(
            "Cluster created",
            [
                ("Name", config.name),
                ("Type", config.type.value),
                ("Nodes", str(config.node_count)),
                ("Kubernetes", config.k8s_version),
                ("Context", f"k3d-{config.name}"),
            ],
            style="green",
        )
        self.show_next_steps()

    def show_next_steps(self) -> None:
        self.ui.print("\n[bold]Next steps:[/bold]")
        for label, command in [
            ("Bootstrap OpenFrame:", "openframe bootstrap"),
            ("Check cluster status:", "openframe cluster status"),
            ("List all clusters:", "openframe cluster list"),
            ("Access with kubectl:", "kubectl get nodes"),
        ]:
            self.ui.print(f"  [dim]{label.ljust(22)}[/dim] [cyan]{command}[/cyan]")

    def delete_cluster(self, name: str, cluster_type: ClusterType = ClusterType.K3D, force: bool = False) -> None:
        with self.ui.status(f"Deleting cluster '{name}'..."):
            self.manager.delete_cluster(name, cluster_type, force)
        self.ui.success(f"Cluster '{name}' deleted")

    def list_clusters(self) -> List[ClusterInfo]:
        return self.manager.list_clusters()

    def _find(self, name: str) -> Optional[ClusterInfo]:
        for cluster in self.manager.list_clusters():
            if cluster.name == name:
                return cluster
        return None

    def display_cluster_list(self, clusters: List[ClusterInfo], quiet: bool = False) -> None:
        if quiet:
            for cluster in clusters:
                self.ui.console.print(cluster.name)
            return

        if not clusters:
            self.ui.info("No clusters found. Create one with: openframe cluster create")
            return

        rows = [
            (c.name, c.type.value, c.status, str(c.node_count), format_age(c.created_at))
            for c in clusters
        ]
        self.ui.table(["Name", "Type", "Status", "Nodes", "Age"], rows, title="Clusters")

    def _show_cluster_box(self, cluster: ClusterInfo, title: str, style: str = "blue") -> None:
        if cluster.is_ready:
            health = f"Ready ({cluster.status})"
        else:
            health = f"Partial ({cluster.status})"
        self.ui.box(
            title,
            [
                ("Name", cluster.name),
                ("Type", cluster.type.value),
                ("Status", health),
                ("Nodes", str(cluster.node_count)),
                ("Age", format_age(cluster.created_at)),
            ],
            style=style,
        )

    def show_cluster_status(self, name: str, detailed: bool = False, skip_apps: bool = False) -> None:
        try:
            cluster = self.manager.get_cluster_status(name)
        except ClusterNotFoundError:
            self.ui.error(f"Cluster '{name}' not found")
            available = [c.name for c in self.manager.list_clusters()]
            if available:
                self.ui.print(f"Available clusters: {', '.join(available)}")
            raise

        self._show_cluster_box(cluster, title=f"Cluster {cluster.name}")

        if detailed and cluster.nodes:
            rows = [(n.name, n.role, n.status, format_age(n.created_at)) for n in cluster.nodes]
            self.ui.table(["Node", "Role", "Status", "Age"], rows)

        if not skip_apps:
            self._show_applications()

    def _show_applications(self) -> None:
        """ArgoCD application summary; silently absent when ArgoCD is not installed."""
        applications = ArgoCDManager(self.executor, self.ui).parse_applications(self.ctx.verbose)
        if not applications:
            self.ui.info("No ArgoCD applications found")
            return
        ready = sum(1 for app in applications if app.is_ready)
        self.ui.print(f"\n[bold]ArgoCD applications:[/bold] {ready}/{len(applications)} healthy and synced")
        if self.ctx.verbose:
            self.ui.table(
                ["Application", "Health", "Sync"],
                [(app.name, app.health, app.sync) for app in applications],
            )

    def cleanup_cluster(self, name: str, cluster_type: ClusterType = ClusterType.K3D, force: bool = False) -> None:
        """Free disk and memory used by a cluster without deleting it.

        Every step is best-effort: failures are reported as warnings.
        """
        if cluster_type != ClusterType.K3D:
            self.ui.warning(f"Cleanup is only supported for k3d clusters (got {cluster_type.value})")
            return

        with self.ui.status(f"Cleaning up cluster '{name}'..."):
            self._cleanup_helm_releases()
            self._cleanup_namespaces(force)
            self._prune_node_images(name, force)
        self.ui.success(f"Cleanup of cluster '{name}' finished")

    def _cleanup_helm_releases(self) -> None:
        helm = HelmManager(self.executor)
        if not helm.is_helm_installed():
            logger.debug("Helm not available, skipping release cleanup")
            return
        for release in helm.get_releases():
            try:
                helm.uninstall(release.name, release.namespace, ignore_not_found=True)
                logger.info(f"Uninstalled helm release {release.namespace}/{release.name}")
            except CommandError as e:
                self.ui.warning(f"Failed to uninstall {release.name}: {e}")

    def _cleanup_namespaces(self, force: bool) -> None:
        kubectl = KubectlProvider(self.executor, self.ctx.verbose)
        for namespace in CLEANUP_NAMESPACES:
            try:
                kubectl.delete_namespace(namespace)
            except CommandError as e:
                self.ui.warning(f"Failed to delete namespace {namespace}: {e}")
        if force:
            try:
                self.executor.execute(
                    "kubectl", "delete", "all", "--all", "-n", "kube-system", "--ignore-not-found"
                )
            except CommandError as e:
                self.ui.warning(f"Failed to clean kube-system: {e}")

    def _prune_node_images(self, name: str, force: bool) -> None:
        try:
            result = self.executor.execute(
                "docker",
                "ps",
                "--filter",
                f"label=k3d.cluster={name}",
                "--filter",
                "status=running",
                "--format",
                "{{.Names}}",
            )
        except CommandError as e:
            self.ui.warning(f"Could not list cluster nodes: {e}")
            return

        commands = list(PRUNE_COMMANDS)
        if force:
            commands.append(["docker", "builder", "prune", "-f", "--all"])

        for node in filter_cluster_node_containers(parse_lines(result.stdout), name):
            for command in commands:
                try:
                    self.executor.execute("docker", "exec", node, *command)
                except CommandError as e:
                    logger.warning(f"{' '.join(command)} on {node} failed: {e}")
