"""Chart installation building blocks."""

from .argocd import ArgoCDManager
from .git import GitRepository
from .helm import HelmError, HelmManager
from .validator import ConfigurationValidator
from .values import HelmValuesModifier

__all__ = [
    "ArgoCDManager",
    "GitRepository",
    "HelmError",
    "HelmManager",
    "ConfigurationValidator",
    "HelmValuesModifier",
]
