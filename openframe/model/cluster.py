"""Cluster-related models."""

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from ..utils.errors import ValidationError

DEFAULT_CLUSTER_NAME = "openframe-dev"
DEFAULT_NODE_COUNT = 3
DEFAULT_K8S_VERSION = "v1.31.5-k3s1"
MAX_CLUSTER_NAME_LENGTH = 63

_SINGLE_CHAR_NAME = re.compile(r"^[a-zA-Z0-9]$")
_CLUSTER_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*[a-zA-Z0-9]$")


class ClusterType(str, Enum):
    """Supported cluster providers."""

    K3D = "k3d"
    GKE = "gke"


def parse_cluster_type(value: Optional[str]) -> ClusterType:
    """Parse a cluster type, falling back to k3d."""
    if not value:
        return ClusterType.K3D
    try:
        return ClusterType(value.strip().lower())
    except ValueError:
        return ClusterType.K3D


def validate_cluster_name(name: str) -> str:
    """Validate a cluster name and return it trimmed."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("cluster name cannot be empty or contain only whitespace")

    if len(name) > MAX_CLUSTER_NAME_LENGTH:
        raise ValidationError(
            f"cluster name is too long: {len(name)} characters (max {MAX_CLUSTER_NAME_LENGTH})"
        )

    if len(name) == 1:
        if not _SINGLE_CHAR_NAME.match(name):
            raise ValidationError("cluster name must be alphanumeric")
        return name

    if not _CLUSTER_NAME.match(name):
        raise ValidationError(
            "cluster name must start and end with an alphanumeric character "
            "and contain only letters, digits and hyphens"
        )

    return name


class NodeInfo(BaseModel):
    """Information about a cluster node."""

    name: str
    role: str
    status: str = "unknown"
    created_at: Optional[datetime] = None


class ClusterConfig(BaseModel):
    """User intent for a cluster to create."""

    name: str = DEFAULT_CLUSTER_NAME
    type: ClusterType = ClusterType.K3D
    node_count: int = DEFAULT_NODE_COUNT
    k8s_version: str = DEFAULT_K8S_VERSION


class ClusterInfo(BaseModel):
    """Observed state of a cluster."""

    name: str
    type: ClusterType = ClusterType.K3D
    status: str = ""
    node_count: int = 0
    created_at: Optional[datetime] = None
    nodes: List[NodeInfo] = []

    @property
    def servers_running(self) -> int:
        running, _, _ = self.status.partition("/")
        return int(running) if running.isdigit() else 0

    @property
    def servers_total(self) -> int:
        _, _, total = self.status.partition("/")
        return int(total) if total.isdigit() else 0

    @property
    def is_ready(self) -> bool:
        return self.servers_total > 0 and self.servers_running == self.servers_total
