"""Interactive collection of chart configuration."""

from pathlib import Path
from typing import Any, Dict, Optional

from ..core.values import HelmValuesModifier, get_path
from ..model.chart import (
    DEFAULT_GITHUB_BRANCH,
    VALID_DEPLOYMENT_MODES,
    ChartConfiguration,
    DeploymentMode,
    DockerRegistryConfig,
    SaaSConfig,
)
from ..utils.ui import UI

MODE_DESCRIPTIONS = {
    DeploymentMode.OSS: "oss-tenant   Open source OpenFrame",
    DeploymentMode.SAAS: "saas-tenant  SaaS tenant (private repositories)",
    DeploymentMode.SAAS_SHARED: "saas-shared  Shared SaaS platform",
}


class ConfigurationWizard:
    """Ask for deployment mode, branch and credentials, then write a values file."""

    def __init__(self, ui: UI, modifier: Optional[HelmValuesModifier] = None):
        self.ui = ui
        self.modifier = modifier or HelmValuesModifier()

    def run(self, base_values_path: Path, mode: Optional[DeploymentMode] = None) -> ChartConfiguration:
        """Full wizard, or a partial one when ``mode`` was already chosen by flag."""
        values = self.modifier.load_or_create_base_values(base_values_path)
        config = ChartConfiguration(base_values_path=str(base_values_path))

        self.ui.print("\n[bold blue]OpenFrame chart configuration[/bold blue]")
        config.deployment_mode = mode or self.ask_deployment_mode(values)

        if config.deployment_mode == DeploymentMode.OSS:
            config.branch = self.ask_branch(values)
        else:
            config.saas = self.ask_saas(values, config.deployment_mode)

        config.docker_registry = self.ask_registry(values, config.deployment_mode)

        self.modifier.apply_configuration(values, config)
        temp_path = self.modifier.create_temporary_values_file(values, Path(base_values_path).parent)
        config.temp_values_path = str(temp_path)
        return config

    def ask_deployment_mode(self, values: Dict[str, Any]) -> DeploymentMode:
        current = self.modifier.get_current_deployment_mode(values) or DeploymentMode.OSS
        options = [MODE_DESCRIPTIONS[DeploymentMode(m)] for m in VALID_DEPLOYMENT_MODES]
        answer = self.ui.select("Deployment mode", options, default=MODE_DESCRIPTIONS[current])
        return DeploymentMode(answer.split()[0])

    def ask_branch(self, values: Dict[str, Any]) -> str:
        current = self.modifier.get_current_oss_branch(values)
        return self.ui.ask("OpenFrame branch", default=current) or DEFAULT_GITHUB_BRANCH

    def ask_saas(self, values: Dict[str, Any], mode: DeploymentMode) -> SaaSConfig:
        saas = SaaSConfig(
            repository_password=get_path(values, "deployment.saas.repository.password") or "",
            config_repository_password=get_path(values, "deployment.saas.config.password") or "",
            saas_branch=get_path(values, "deployment.saas.repository.branch") or DEFAULT_GITHUB_BRANCH,
            oss_branch=self.modifier.get_current_oss_branch(values),
        )
        saas.repository_password = (
            self.ui.ask("SaaS repository token", default=saas.repository_password, password=True)
            or saas.repository_password
        )
        if mode == DeploymentMode.SAAS:
            saas.config_repository_password = (
                self.ui.ask(
                    "SaaS config repository token",
                    default=saas.config_repository_password,
                    password=True,
                )
                or saas.config_repository_password
            )
        saas.saas_branch = self.ui.ask("SaaS branch", default=saas.saas_branch) or saas.saas_branch
        saas.oss_branch = self.ui.ask("OSS branch", default=saas.oss_branch) or saas.oss_branch
        return saas

    def ask_registry(self, values: Dict[str, Any], mode: DeploymentMode) -> Optional[DockerRegistryConfig]:
        key = "ghcr" if mode.is_saas else "docker"
        existing = DockerRegistryConfig(
            username=get_path(values, f"registry.{key}.username") or "",
            password=get_path(values, f"registry.{key}.password") or "",
            email=get_path(values, f"registry.{key}.email") or "",
        )
        if not mode.is_saas and not self.ui.confirm("Configure Docker Hub credentials?", default=False):
            return None

        label = "GitHub Container Registry" if mode.is_saas else "Docker Hub"
        return DockerRegistryConfig(
            username=self.ui.ask(f"{label} username", default=existing.username) or existing.username,
            password=self.ui.ask(f"{label} password", default=existing.password, password=True)
            or existing.password,
            email=self.ui.ask(f"{label} email", default=existing.email) or existing.email,
        )
