"""Workflow services behind the CLI commands."""

from .bootstrap_service import BootstrapService
from .chart_service import AppOfAppsInstaller, ChartService, Installer, install_charts_with_defaults
from .cluster_service import ClusterService
from .intercept_service import InterceptService
from .scaffold_service import ScaffoldService
from .wizard import ConfigurationWizard

__all__ = [
    "AppOfAppsInstaller",
    "BootstrapService",
    "ChartService",
    "ClusterService",
    "ConfigurationWizard",
    "InterceptService",
    "Installer",
    "ScaffoldService",
    "install_charts_with_defaults",
]
