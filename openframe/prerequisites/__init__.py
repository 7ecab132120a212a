"""Prerequisite tool checks and installation."""

from .base import PrerequisiteInstaller, PrerequisiteSet, Requirement
from .sets import (
    INTERCEPT,
    SCAFFOLD,
    chart_prerequisites,
    check_cluster_availability,
    check_prerequisites,
    cluster_prerequisites,
    dev_prerequisites,
    regenerate_certificates,
)

__all__ = [
    "PrerequisiteInstaller",
    "PrerequisiteSet",
    "Requirement",
    "INTERCEPT",
    "SCAFFOLD",
    "chart_prerequisites",
    "check_cluster_availability",
    "check_prerequisites",
    "cluster_prerequisites",
    "dev_prerequisites",
    "regenerate_certificates",
]
