"""Helm operations for ArgoCD and the app-of-apps chart."""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..k8s.parsers import parse_helm_releases, parse_helm_status
from ..model.chart import ARGOCD_NAMESPACE, ChartInstallConfig, HelmRelease
from ..utils.errors import CommandError, OpenFrameError, ValidationError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger

logger = get_logger(__name__)

ARGO_REPO_NAME = "argo"
ARGO_REPO_URL = "https://argoproj.github.io/argo-helm"
ARGOCD_RELEASE = "argo-cd"
ARGOCD_CHART = "argo/argo-cd"
ARGOCD_CHART_VERSION = "8.2.7"
ARGOCD_TIMEOUT = "5m"
APP_OF_APPS_RELEASE = "app-of-apps"
TLS_CERT_VALUE = "deployment.oss.ingress.localhost.tls.cert"
TLS_KEY_VALUE = "deployment.oss.ingress.localhost.tls.key"

ARGOCD_VALUES: Dict[str, Any] = {
    "fullnameOverride": "argocd",
    "configs": {
        "params": {"server.insecure": True},
        "cm": {"timeout.reconciliation": "60s"},
    },
    "dex": {"enabled": False},
    "notifications": {"enabled": False},
    "server": {"extraArgs": ["--insecure"]},
    "controller": {
        "resources": {"requests": {"cpu": "250m", "memory": "512Mi"}},
    },
    "repoServer": {
        "resources": {"requests": {"cpu": "100m", "memory": "256Mi"}},
    },
}


class HelmError(OpenFrameError):
    """A helm command failed."""


def _helm_failure(action: str, err: CommandError) -> HelmError:
    message = f"failed to {action}: {err}"
    if err.stderr:
        message += f"\nHelm output: {err.stderr.strip()}"
    return HelmError(message)


class HelmManager:
    """Install and inspect the charts openframe manages."""

    def __init__(self, executor: Optional[CommandExecutor] = None):
        self.executor = executor or CommandExecutor()

    def is_helm_installed(self) -> bool:
        try:
            self.executor.execute("helm", "version", "--short")
            return True
        except CommandError:
            return False

    def is_chart_installed(self, release: str, namespace: str) -> bool:
        try:
            result = self.executor.execute("helm", "list", "-q", "-n", namespace, "-f", release)
        except CommandError:
            return False
        return release in result.stdout.split()

    def get_releases(self) -> List[HelmRelease]:
        """All Helm releases across namespaces."""
        try:
            result = self.executor.execute("helm", "list", "--all-namespaces", "-o", "json")
        except CommandError as e:
            logger.warning(f"Could not list helm releases: {e}")
            return []
        return parse_helm_releases(result.stdout)

    def get_chart_status(self, release: str, namespace: str) -> Dict[str, Any]:
        try:
            result = self.executor.execute("helm", "status", release, "-n", namespace, "-o", "json")
        except CommandError as e:
            raise _helm_failure(f"get status of {release}", e) from e
        try:
            return parse_helm_status(result.stdout)
        except ValueError as e:
            raise HelmError(str(e)) from e

    def uninstall(self, release: str, namespace: str, ignore_not_found: bool = True) -> None:
        args = ["uninstall", release, "-n", namespace, "--no-hooks", "--wait"]
        if ignore_not_found:
            args.append("--ignore-not-found")
        self.executor.execute("helm", *args)

    def add_argo_repository(self) -> None:
        try:
            self.executor.execute("helm", "repo", "add", ARGO_REPO_NAME, ARGO_REPO_URL)
        except CommandError as e:
            if "already exists" not in (e.stderr or str(e)):
                raise _helm_failure("add argo repository", e) from e
            logger.debug("argo helm repository already configured")
        try:
            self.executor.execute("helm", "repo", "update")
        except CommandError as e:
            raise _helm_failure("update helm repositories", e) from e

    def install_argocd(self, config: ChartInstallConfig) -> None:
        """Install or upgrade ArgoCD; dry-run renders the release without applying it."""
        self.add_argo_repository()

        fd, values_path = tempfile.mkstemp(prefix="argocd-values-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(ARGOCD_VALUES, f, sort_keys=False)

            args = [
                "upgrade",
                "--install",
                ARGOCD_RELEASE,
                ARGOCD_CHART,
                f"--version={ARGOCD_CHART_VERSION}",
                "--namespace",
                ARGOCD_NAMESPACE,
                "--create-namespace",
                "--wait",
                "--timeout",
                ARGOCD_TIMEOUT,
                "-f",
                values_path,
            ]
            if config.dry_run:
                args.append("--dry-run")

            try:
                self.executor.execute("helm", *args)
            except CommandError as e:
                raise _helm_failure("install ArgoCD", e) from e
        finally:
            try:
                os.remove(values_path)
            except OSError as e:
                logger.debug(f"Could not remove {values_path}: {e}")

    def install_app_of_apps(self, config: ChartInstallConfig, cert_file: Path, key_file: Path) -> None:
        app = config.app_of_apps
        if app is None:
            raise ValidationError("app-of-apps configuration is required")
        if not app.chart_path:
            raise ValidationError("app-of-apps chart path is required")

        args = [
            "upgrade",
            "--install",
            APP_OF_APPS_RELEASE,
            app.chart_path,
            "--namespace",
            app.namespace,
            "--wait",
            "--timeout",
            app.timeout,
        ]
        if app.values_file:
            args.extend(["-f", app.values_file])
        args.extend(
            [
                "--set-file",
                f"{TLS_CERT_VALUE}={cert_file}",
                "--set-file",
                f"{TLS_KEY_VALUE}={key_file}",
            ]
        )
        if config.dry_run:
            args.append("--dry-run")

        try:
            self.executor.execute("helm", *args)
        except CommandError as e:
            raise _helm_failure("install app-of-apps", e) from e
