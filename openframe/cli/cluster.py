"""``openframe cluster`` commands."""

from typing import List, Optional

import typer

from ..model.cluster import (
    DEFAULT_CLUSTER_NAME,
    DEFAULT_K8S_VERSION,
    DEFAULT_NODE_COUNT,
    ClusterConfig,
    parse_cluster_type,
    validate_cluster_name,
)
from ..model.runtime import RunContext
from ..prerequisites.sets import check_prerequisites, cluster_prerequisites
from ..services.cluster_service import ClusterService
from ..utils.ui import UI
from .ui import get_run_context, handle_error

app = typer.Typer(help="Manage local Kubernetes clusters", no_args_is_help=True)


def _service(run_ctx: RunContext) -> ClusterService:
    return ClusterService(run_ctx)


def _select_cluster(service: ClusterService, name: Optional[str], action: str) -> Optional[str]:
    """Cluster named on the command line, or one picked from the existing clusters."""
    if name:
        return name.strip()
    clusters: List[str] = [c.name for c in service.list_clusters()]
    if not clusters:
        service.ui.warning("No clusters found. Create a cluster first with: openframe cluster create")
        return None
    return service.ui.select(f"Select a cluster to {action}", clusters)


def _ask_config(ui: UI, name: Optional[str], cluster_type: str, nodes: int, version: str) -> ClusterConfig:
    """Interactive cluster configuration; flags provide the defaults."""
    name = ui.ask("Cluster name", default=name or DEFAULT_CLUSTER_NAME)
    answer = ui.ask("Number of worker nodes", default=str(nodes))
    try:
        nodes = int(answer)
    except ValueError:
        raise typer.BadParameter(f"invalid node count: {answer}")
    version = ui.ask("Kubernetes version", default=version)
    return ClusterConfig(
        name=validate_cluster_name(name),
        type=parse_cluster_type(cluster_type),
        node_count=nodes,
        k8s_version=version,
    )


@app.command()
def create(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Cluster name (default: openframe-dev)"),
    cluster_type: str = typer.Option("k3d", "--type", "-t", help="Cluster type (k3d, gke)"),
    nodes: int = typer.Option(DEFAULT_NODE_COUNT, "--nodes", "-n", help="Number of worker nodes"),
    version: str = typer.Option(DEFAULT_K8S_VERSION, "--version", help="Kubernetes (k3s) version"),
    skip_wizard: bool = typer.Option(False, "--skip-wizard", help="Use flags and defaults without prompting"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without doing it"),
):
    """Create a new cluster."""
    run_ctx = get_run_context(ctx, dry_run)
    try:
        service = _service(run_ctx)
        if skip_wizard or not run_ctx.prompts_enabled:
            config = ClusterConfig(
                name=validate_cluster_name(name or DEFAULT_CLUSTER_NAME),
                type=parse_cluster_type(cluster_type),
                node_count=nodes,
                k8s_version=version,
            )
        else:
            config = _ask_config(service.ui, name, cluster_type, nodes, version)

        check_prerequisites(cluster_prerequisites(service.executor), service.ui)
        service.create_cluster(config)
    except Exception as e:
        handle_error(e, run_ctx)


@app.command("list")
def list_clusters(
    ctx: typer.Context,
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print cluster names"),
):
    """List clusters."""
    run_ctx = get_run_context(ctx)
    try:
        service = _service(run_ctx)
        service.display_cluster_list(service.list_clusters(), quiet=quiet)
    except Exception as e:
        handle_error(e, run_ctx)


@app.command()
def status(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Cluster name"),
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Show node details"),
    no_apps: bool = typer.Option(False, "--no-apps", help="Skip ArgoCD application summary"),
):
    """Show cluster status."""
    run_ctx = get_run_context(ctx)
    try:
        service = _service(run_ctx)
        selected = _select_cluster(service, name, "inspect")
        if selected:
            service.show_cluster_status(selected, detailed=detailed, skip_apps=no_apps)
    except Exception as e:
        handle_error(e, run_ctx)


@app.command()
def delete(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Cluster name"),
    force: bool = typer.Option(False, "--force", "-f", help="Delete without confirmation"),
):
    """Delete a cluster."""
    run_ctx = get_run_context(ctx)
    try:
        service = _service(run_ctx)
        selected = _select_cluster(service, name, "delete")
        if not selected:
            return
        if not force and not service.ui.confirm(f"Delete cluster '{selected}'?", default=False):
            service.ui.info("Deletion cancelled.")
            return
        service.delete_cluster(selected, service.manager.detect_cluster_type(selected), force)
    except Exception as e:
        handle_error(e, run_ctx)


@app.command()
def cleanup(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Cluster name"),
    force: bool = typer.Option(False, "--force", "-f", help="Also clean kube-system and the image build cache"),
):
    """Remove OpenFrame releases, namespaces and unused images from a cluster."""
    run_ctx = get_run_context(ctx)
    try:
        service = _service(run_ctx)
        selected = _select_cluster(service, name, "clean up")
        if selected:
            service.cleanup_cluster(selected, service.manager.detect_cluster_type(selected), force)
    except Exception as e:
        handle_error(e, run_ctx)
