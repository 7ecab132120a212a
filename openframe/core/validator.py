"""Checks that a helm values file is complete for its deployment mode."""

from typing import Any, Dict, List

from ..model.chart import DeploymentMode
from ..utils.errors import ValidationError
from .values import get_path

REQUIRED_FIELDS: Dict[DeploymentMode, List[str]] = {
    DeploymentMode.OSS: ["deployment.oss.enabled"],
    DeploymentMode.SAAS: [
        "deployment.saas.enabled",
        "deployment.saas.repository.password",
        "deployment.saas.config.password",
        "registry.ghcr.username",
        "registry.ghcr.password",
    ],
    DeploymentMode.SAAS_SHARED: [
        "deployment.saas.enabled",
        "deployment.saas.repository.password",
        "registry.ghcr.username",
        "registry.ghcr.password",
    ],
}


class ConfigurationValidator:
    """Validate helm values against the fields a deployment mode needs."""

    def missing_fields(self, values: Dict[str, Any], mode: DeploymentMode) -> List[str]:
        missing = []
        for field in REQUIRED_FIELDS[mode]:
            value = get_path(values, field)
            if value is None or value is False or value == "":
                missing.append(field)
        return missing

    def validate(self, values: Dict[str, Any], mode: DeploymentMode) -> None:
        missing = self.missing_fields(values, mode)
        if missing:
            raise ValidationError(
                f"helm values are incomplete for {mode.value} deployment. "
                f"Missing or disabled: {', '.join(missing)}"
            )
