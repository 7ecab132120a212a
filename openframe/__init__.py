"""OpenFrame CLI: local Kubernetes bootstrap and developer workflows."""

__version__ = "dev"
__commit__ = "none"
__build_date__ = "unknown"
