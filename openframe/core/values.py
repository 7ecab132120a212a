"""Reading and modifying helm-values.yaml."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..model.chart import (
    DEFAULT_GITHUB_BRANCH,
    ChartConfiguration,
    DeploymentMode,
)
from ..utils.errors import OpenFrameError
from ..utils.logger import get_logger

logger = get_logger(__name__)

TEMP_VALUES_FILE = "helm-values-tmp.yaml"


def _section(values: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    """Return ``values[k1][k2]...``, creating (or replacing non-dict) sections on the way."""
    current = values
    for key in keys:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    return current


def get_path(values: Dict[str, Any], dotted: str) -> Any:
    """Look up ``a.b.c`` in nested dicts; None when any part is missing."""
    current: Any = values
    for key in dotted.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


class HelmValuesModifier:
    """Load helm values, apply wizard answers and write the result."""

    def load_existing_values(self, path: Path) -> Dict[str, Any]:
        path = Path(path)
        if not path.exists():
            raise OpenFrameError(f"helm values file not found at {path}")
        try:
            with open(path) as f:
                values = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise OpenFrameError(f"failed to parse helm values YAML: {e}") from e
        except OSError as e:
            raise OpenFrameError(f"failed to read helm values file: {e}") from e
        if values is None:
            return {}
        if not isinstance(values, dict):
            raise OpenFrameError(f"helm values file {path} must contain a mapping")
        return values

    def load_or_create_base_values(self, path: Path) -> Dict[str, Any]:
        if Path(path).exists():
            return self.load_existing_values(path)
        return {}

    def write_values(self, values: Dict[str, Any], path: Path) -> None:
        try:
            with open(path, "w") as f:
                yaml.safe_dump(values, f, sort_keys=False)
        except OSError as e:
            raise OpenFrameError(f"failed to write helm values file: {e}") from e

    def create_temporary_values_file(
        self, values: Dict[str, Any], directory: Optional[Path] = None
    ) -> Path:
        path = Path(directory or os.getcwd()) / TEMP_VALUES_FILE
        self.write_values(values, path)
        return path

    def apply_configuration(self, values: Dict[str, Any], config: ChartConfiguration) -> None:
        mode = config.deployment_mode
        if mode is not None:
            self.apply_deployment_mode(values, mode)

        if config.branch is not None and mode == DeploymentMode.OSS:
            _section(values, "deployment", "oss", "repository")["branch"] = config.branch

        if config.docker_registry is not None:
            registry_key = "ghcr" if mode is not None and mode.is_saas else "docker"
            registry = _section(values, "registry", registry_key)
            registry["username"] = config.docker_registry.username
            registry["password"] = config.docker_registry.password
            registry["email"] = config.docker_registry.email

        if config.saas is not None:
            saas_repo = _section(values, "deployment", "saas", "repository")
            saas_repo["password"] = config.saas.repository_password
            saas_repo["branch"] = config.saas.saas_branch
            if config.saas.config_repository_password:
                _section(values, "deployment", "saas", "config")["password"] = (
                    config.saas.config_repository_password
                )
            _section(values, "deployment", "oss", "repository")["branch"] = config.saas.oss_branch

    def apply_deployment_mode(self, values: Dict[str, Any], mode: DeploymentMode) -> None:
        _section(values, "deployment", "oss")["enabled"] = not mode.is_saas
        _section(values, "deployment", "saas")["enabled"] = mode.is_saas

    def get_current_oss_branch(self, values: Dict[str, Any]) -> str:
        branch = get_path(values, "deployment.oss.repository.branch")
        return branch if isinstance(branch, str) and branch else DEFAULT_GITHUB_BRANCH

    def get_current_branch(self, values: Dict[str, Any]) -> str:
        branch = self.get_current_oss_branch(values)
        if branch != DEFAULT_GITHUB_BRANCH:
            return branch
        global_branch = get_path(values, "global.repoBranch")
        if isinstance(global_branch, str) and global_branch:
            return global_branch
        return DEFAULT_GITHUB_BRANCH

    def get_branch_for_mode(self, values: Dict[str, Any], mode: Optional[DeploymentMode]) -> str:
        """Branch of the repository the given mode clones; empty when unset."""
        if mode == DeploymentMode.SAAS_SHARED:
            branch = get_path(values, "deployment.saas.repository.branch")
        elif mode is None and get_path(values, "deployment.saas.enabled"):
            branch = get_path(values, "deployment.saas.repository.branch")
        else:
            branch = get_path(values, "deployment.oss.repository.branch")
        return branch if isinstance(branch, str) else ""

    def get_current_deployment_mode(self, values: Dict[str, Any]) -> Optional[DeploymentMode]:
        if get_path(values, "deployment.saas.enabled"):
            return DeploymentMode.SAAS
        if get_path(values, "deployment.oss.enabled"):
            return DeploymentMode.OSS
        return None

    def create_dev_values_file(self, base_path: Path, output_path: Path) -> Path:
        """Write ``output_path`` with ``global.autoSync`` disabled for Skaffold work.

        Existing keys in ``output_path`` are kept and ``base_path`` is merged on
        top (shallow).
        """
        values: Dict[str, Any] = {}
        if Path(output_path).exists():
            try:
                values = self.load_existing_values(output_path)
            except OpenFrameError as e:
                logger.warning(f"Ignoring unreadable {output_path}: {e}")
                values = {}

        if base_path and Path(base_path) != Path(output_path):
            values.update(self.load_existing_values(base_path))

        _section(values, "global")["autoSync"] = False
        self.write_values(values, output_path)
        return Path(output_path)
