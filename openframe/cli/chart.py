"""``openframe chart`` commands."""

from typing import Optional

import typer

from ..model.chart import DEFAULT_GITHUB_BRANCH, DEFAULT_GITHUB_REPO, InstallFlags, parse_deployment_mode
from ..model.runtime import RunMode
from ..services.chart_service import ChartService
from .ui import get_run_context, handle_error

app = typer.Typer(help="Install ArgoCD and the OpenFrame app-of-apps chart", no_args_is_help=True)


@app.command()
def install(
    ctx: typer.Context,
    cluster_name: Optional[str] = typer.Argument(None, help="Cluster to install on"),
    force: bool = typer.Option(False, "--force", "-f", help="Reinstall even if already installed"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Render the installation without applying it"),
    github_repo: str = typer.Option(DEFAULT_GITHUB_REPO, "--github-repo", help="Repository holding the app-of-apps chart"),
    github_branch: str = typer.Option(DEFAULT_GITHUB_BRANCH, "--github-branch", help="Branch to clone"),
    cert_dir: str = typer.Option("", "--cert-dir", help="Directory with localhost.pem and localhost-key.pem"),
    deployment_mode: Optional[str] = typer.Option(
        None, "--deployment-mode", help="oss-tenant, saas-tenant or saas-shared"
    ),
    non_interactive: bool = typer.Option(False, "--non-interactive", help="Never prompt; requires --deployment-mode"),
):
    """Install ArgoCD and the app-of-apps chart on a cluster."""
    run_ctx = get_run_context(ctx, dry_run)
    try:
        mode = parse_deployment_mode(deployment_mode)
        if non_interactive and run_ctx.mode == RunMode.INTERACTIVE:
            run_ctx = run_ctx.with_mode(RunMode.NON_INTERACTIVE)
        flags = InstallFlags(
            force=force,
            dry_run=dry_run,
            github_repo=github_repo,
            github_branch=github_branch,
            cert_dir=cert_dir,
        )
        ChartService(run_ctx).install(cluster_name, flags, mode, non_interactive)
    except Exception as e:
        handle_error(e, run_ctx)
