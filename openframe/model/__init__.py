"""Data models."""

from .command import CommandResult, ExecuteOptions
from .runtime import RunContext, RunMode
from .cluster import (
    ClusterConfig,
    ClusterInfo,
    ClusterType,
    NodeInfo,
    parse_cluster_type,
    validate_cluster_name,
)
from .chart import (
    AppOfAppsConfig,
    Application,
    ChartConfiguration,
    ChartInstallConfig,
    CloneResult,
    DeploymentMode,
    InstallFlags,
    parse_deployment_mode,
)

__all__ = [
    "CommandResult",
    "ExecuteOptions",
    "RunContext",
    "RunMode",
    "ClusterConfig",
    "ClusterInfo",
    "ClusterType",
    "NodeInfo",
    "parse_cluster_type",
    "validate_cluster_name",
    "AppOfAppsConfig",
    "Application",
    "ChartConfiguration",
    "ChartInstallConfig",
    "CloneResult",
    "DeploymentMode",
    "InstallFlags",
    "parse_deployment_mode",
]
