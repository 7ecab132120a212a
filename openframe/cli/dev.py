"""``openframe dev`` commands."""

from typing import List, Optional

import typer

from ..model.dev import DEFAULT_INTERCEPT_PORT, DEFAULT_NAMESPACE, InterceptFlags, ScaffoldFlags
from ..services.intercept_service import InterceptService
from ..services.scaffold_service import ScaffoldService
from .ui import get_run_context, handle_error

app = typer.Typer(help="Developer workflows: Telepresence intercepts and Skaffold", no_args_is_help=True)


@app.command()
def intercept(
    ctx: typer.Context,
    service_name: Optional[str] = typer.Argument(None, help="Service to intercept (prompted when omitted)"),
    port: int = typer.Option(DEFAULT_INTERCEPT_PORT, "--port", help="Local port to forward traffic to"),
    namespace: str = typer.Option(DEFAULT_NAMESPACE, "--namespace", help="Kubernetes namespace of the service"),
    mount: Optional[str] = typer.Option(None, "--mount", help="Mount remote volumes to local path"),
    env_file: Optional[str] = typer.Option(None, "--env-file", help="Load environment variables from file"),
    global_intercept: bool = typer.Option(False, "--global", help="Intercept all traffic, not only matching headers"),
    headers: List[str] = typer.Option([], "--header", help="Only intercept traffic with this header (key=value)"),
    replace: bool = typer.Option(False, "--replace", help="Replace an existing intercept"),
    remote_port: Optional[str] = typer.Option(None, "--remote-port", help="Remote port name (default: local port)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without doing it"),
):
    """Route a cluster service's traffic to your machine with Telepresence."""
    run_ctx = get_run_context(ctx, dry_run)
    try:
        flags = InterceptFlags(
            port=port,
            namespace=namespace,
            mount=mount,
            env_file=env_file,
            global_intercept=global_intercept,
            headers=headers,
            replace=replace,
            remote_port_name=remote_port,
        )
        InterceptService(ctx=run_ctx).run(service_name, flags)
    except Exception as e:
        handle_error(e, run_ctx)


@app.command()
def scaffold(
    ctx: typer.Context,
    cluster_name: Optional[str] = typer.Argument(None, help="Cluster to deploy to (prompted when omitted)"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Kubernetes namespace to deploy to"),
    skip_bootstrap: bool = typer.Option(False, "--skip-bootstrap", help="Skip the chart reinstall"),
    helm_values: Optional[str] = typer.Option(None, "--helm-values", help="Custom Helm values file for the reinstall"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be done without doing it"),
):
    """Run Skaffold for a service with live reloading."""
    run_ctx = get_run_context(ctx, dry_run)
    try:
        flags = ScaffoldFlags(namespace=namespace, skip_bootstrap=skip_bootstrap, helm_values_file=helm_values)
        ScaffoldService(ctx=run_ctx).run(cluster_name, flags)
    except Exception as e:
        handle_error(e, run_ctx)
