"""Chart installation models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from ..utils.errors import ValidationError

DEFAULT_GITHUB_REPO = "https://github.com/flamingo-stack/openframe-oss-tenant"
SAAS_SHARED_GITHUB_REPO = "https://github.com/flamingo-stack/openframe-saas-shared"
DEFAULT_GITHUB_BRANCH = "main"
DEFAULT_CHART_PATH = "manifests/app-of-apps"
ARGOCD_NAMESPACE = "argocd"
DEFAULT_APP_OF_APPS_TIMEOUT = "60m"


class DeploymentMode(str, Enum):
    """Which OpenFrame flavour the app-of-apps chart deploys."""

    OSS = "oss-tenant"
    SAAS = "saas-tenant"
    SAAS_SHARED = "saas-shared"

    @property
    def is_saas(self) -> bool:
        return self in (DeploymentMode.SAAS, DeploymentMode.SAAS_SHARED)

    @property
    def repository_url(self) -> str:
        if self == DeploymentMode.SAAS_SHARED:
            return SAAS_SHARED_GITHUB_REPO
        return DEFAULT_GITHUB_REPO


VALID_DEPLOYMENT_MODES: List[str] = [mode.value for mode in DeploymentMode]


def parse_deployment_mode(value: Optional[str]) -> Optional[DeploymentMode]:
    """Parse a --deployment-mode value; empty means not chosen yet."""
    if value is None or not value.strip():
        return None
    try:
        return DeploymentMode(value.strip())
    except ValueError:
        raise ValidationError(
            f"invalid deployment mode: {value}. Valid options: {', '.join(VALID_DEPLOYMENT_MODES)}"
        )


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    PROGRESSING = "Progressing"
    DEGRADED = "Degraded"
    MISSING = "Missing"
    UNKNOWN = "Unknown"


class SyncStatus(str, Enum):
    SYNCED = "Synced"
    OUT_OF_SYNC = "OutOfSync"
    UNKNOWN = "Unknown"


class Application(BaseModel):
    """ArgoCD application state from one poll."""

    name: str
    health: str = HealthStatus.UNKNOWN.value
    sync: str = SyncStatus.UNKNOWN.value

    model_config = {"frozen": True}

    @property
    def is_ready(self) -> bool:
        return self.health == HealthStatus.HEALTHY.value and self.sync == SyncStatus.SYNCED.value


class AppOfAppsConfig(BaseModel):
    """Where to fetch the app-of-apps chart from and how to install it."""

    github_repo: str = DEFAULT_GITHUB_REPO
    github_branch: str = DEFAULT_GITHUB_BRANCH
    chart_path: str = DEFAULT_CHART_PATH
    namespace: str = ARGOCD_NAMESPACE
    timeout: str = DEFAULT_APP_OF_APPS_TIMEOUT
    values_file: str = ""
    cert_dir: str = ""


class ChartInstallConfig(BaseModel):
    """Everything one chart installation needs."""

    cluster_name: str
    force: bool = False
    dry_run: bool = False
    verbose: bool = False
    silent: bool = False
    non_interactive: bool = False
    app_of_apps: Optional[AppOfAppsConfig] = None

    @property
    def has_app_of_apps(self) -> bool:
        return self.app_of_apps is not None and bool(self.app_of_apps.github_repo)


class InstallFlags(BaseModel):
    """Flags accepted by ``openframe chart install``."""

    force: bool = False
    dry_run: bool = False
    github_repo: str = DEFAULT_GITHUB_REPO
    github_branch: str = DEFAULT_GITHUB_BRANCH
    cert_dir: str = ""


class CloneResult(BaseModel):
    """A shallow clone on local disk."""

    temp_dir: str
    chart_path: str


class DockerRegistryConfig(BaseModel):
    username: str = ""
    password: str = ""
    email: str = ""


class SaaSConfig(BaseModel):
    repository_password: str = ""
    config_repository_password: str = ""
    saas_branch: str = DEFAULT_GITHUB_BRANCH
    oss_branch: str = DEFAULT_GITHUB_BRANCH


class ChartConfiguration(BaseModel):
    """Answers collected by the wizard (or flags) that modify helm values.

    ``None`` fields keep whatever the base values file already says.
    """

    base_values_path: str = ""
    temp_values_path: str = ""
    deployment_mode: Optional[DeploymentMode] = None
    branch: Optional[str] = None
    docker_registry: Optional[DockerRegistryConfig] = None
    saas: Optional[SaaSConfig] = None


class HelmRelease(BaseModel):
    """Helm release information."""

    name: str
    namespace: str
    revision: str = "1"
    status: str = "unknown"
    chart: str = ""
    app_version: Optional[str] = None
