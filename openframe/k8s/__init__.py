"""Kubernetes interaction module."""

from .k3d import ClusterNotFoundError, K3dManager
from .kubectl import KubectlProvider

__all__ = ["ClusterNotFoundError", "K3dManager", "KubectlProvider"]
