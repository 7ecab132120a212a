"""Main CLI interface using Typer."""

from typing import Optional

import typer
from rich.console import Console

from .. import __build_date__, __commit__, __version__
from ..model.runtime import RunContext
from ..services.bootstrap_service import BootstrapService
from ..utils.logger import get_logger, set_log_level
from ..utils.paths import SystemService
from . import chart, cluster, dev
from .ui import get_run_context, handle_error

app = typer.Typer(
    name="openframe",
    help="Bootstrap and develop against a local OpenFrame Kubernetes environment",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()
logger = get_logger(__name__)

app.add_typer(cluster.app, name="cluster")
app.add_typer(cluster.app, name="k", hidden=True)
app.add_typer(chart.app, name="chart")
app.add_typer(dev.app, name="dev")
app.add_typer(dev.app, name="d", hidden=True)


def version_string() -> str:
    return f"openframe {__version__} ({__commit__}) built on {__build_date__}"


def _version_callback(value: bool) -> None:
    if value:
        console.print(version_string())
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show commands and debug output"),
    silent: bool = typer.Option(False, "--silent", help="Only print errors"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version information"
    ),
):
    """OpenFrame CLI: k3d clusters, ArgoCD charts and developer workflows."""
    set_log_level(verbose=verbose, silent=silent)
    if isinstance(ctx.obj, RunContext):
        # Supplied by the caller (tests); keep its mode
        ctx.obj = ctx.obj.model_copy(update={"verbose": verbose, "silent": silent})
    else:
        ctx.obj = RunContext(verbose=verbose, silent=silent)
    SystemService().initialize()


@app.command()
def bootstrap(
    ctx: typer.Context,
    cluster_name: Optional[str] = typer.Argument(None, help="Cluster name (default: openframe-dev)"),
    deployment_mode: Optional[str] = typer.Option(
        None, "--deployment-mode", help="oss-tenant, saas-tenant or saas-shared"
    ),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt; requires --deployment-mode"),
):
    """Create a cluster and install OpenFrame on it."""
    run_ctx = get_run_context(ctx)
    try:
        BootstrapService(run_ctx).bootstrap(cluster_name, deployment_mode, non_interactive)
    except Exception as e:
        handle_error(e, run_ctx)


if __name__ == "__main__":
    app()
