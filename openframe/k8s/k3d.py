"""k3d cluster lifecycle management."""

import os
import socket
import tempfile
from typing import List, Optional, Set

import yaml

from ..model.cluster import (
    DEFAULT_K8S_VERSION,
    ClusterConfig,
    ClusterInfo,
    ClusterType,
)
from ..utils.errors import CommandError, OpenFrameError, ValidationError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from .parsers import parse_k3d_cluster_list, parse_k3d_used_ports

logger = get_logger(__name__)

K3S_IMAGE_REPOSITORY = "rancher/k3s"
CREATE_TIMEOUT = "300s"
DEFAULT_PORTS = [6550, 80, 443]
ALTERNATE_PORTS = [6551, 81, 444]
PORT_SCAN_RANGE = 1000


class ClusterNotFoundError(OpenFrameError):
    """No cluster with the requested name exists."""


class K3dManager:
    """Create, inspect and remove k3d clusters."""

    def __init__(self, executor: Optional[CommandExecutor] = None, verbose: bool = False):
        self.executor = executor or CommandExecutor()
        self.verbose = verbose

    def _validate(self, config: ClusterConfig) -> None:
        if not config.name:
            raise ValidationError("cluster name cannot be empty")
        if config.node_count < 1:
            raise ValidationError("node count must be at least 1")
        if config.type != ClusterType.K3D:
            raise ValidationError(f"provider not found for cluster type: {config.type.value}")

    def create_cluster(self, config: ClusterConfig) -> None:
        """Create a cluster from a generated k3d config file and switch kubectl to it."""
        self._validate(config)

        config_path = self.write_config_file(config)
        try:
            args = ["cluster", "create", "--config", config_path, "--timeout", CREATE_TIMEOUT]
            if self.verbose:
                args.append("--verbose")
            try:
                self.executor.execute("k3d", *args)
            except CommandError as e:
                raise OpenFrameError(f"failed to create cluster {config.name}: {e}") from e
        finally:
            try:
                os.remove(config_path)
            except OSError as e:
                logger.debug(f"Could not remove {config_path}: {e}")

        try:
            self.executor.execute("kubectl", "config", "use-context", f"k3d-{config.name}")
        except CommandError as e:
            logger.warning(f"Could not switch kubectl context to k3d-{config.name}: {e}")

    def build_config(self, config: ClusterConfig, ports: List[int]) -> dict:
        """Render the k3d ``Simple`` config as a dict."""
        api_port, http_port, https_port = ports
        version = config.k8s_version or DEFAULT_K8S_VERSION
        return {
            "apiVersion": "k3d.io/v1alpha5",
            "kind": "Simple",
            "metadata": {"name": config.name},
            "servers": 1,
            "agents": max(config.node_count, 1),
            "image": f"{K3S_IMAGE_REPOSITORY}:{version}",
            "kubeAPI": {
                "host": "127.0.0.1",
                "hostIP": "127.0.0.1",
                "hostPort": str(api_port),
            },
            "options": {
                "k3s": {
                    "extraArgs": [
                        {"arg": "--disable=traefik", "nodeFilters": ["server:*"]},
                        {"arg": "--kubelet-arg=eviction-hard=", "nodeFilters": ["all"]},
                        {"arg": "--kubelet-arg=eviction-soft=", "nodeFilters": ["all"]},
                    ]
                }
            },
            "ports": [
                {"port": f"{http_port}:80", "nodeFilters": ["loadbalancer"]},
                {"port": f"{https_port}:443", "nodeFilters": ["loadbalancer"]},
            ],
        }

    def write_config_file(self, config: ClusterConfig) -> str:
        ports = self.find_available_ports()
        fd, path = tempfile.mkstemp(prefix="k3d-config-", suffix=".yaml")
        with os.fdopen(fd, "w") as f:
            yaml.safe_dump(self.build_config(config, ports), f, sort_keys=False)
        logger.debug(f"Wrote k3d config to {path} (ports {ports})")
        return path

    def find_available_ports(self) -> List[int]:
        """Pick API, HTTP and HTTPS host ports not used by anything else."""
        used = self._used_ports()
        ports = []
        for default, alternate in zip(DEFAULT_PORTS, ALTERNATE_PORTS):
            port = self._first_free([default, alternate], used)
            if port is None:
                port = self._first_free(
                    range(alternate + 1, alternate + PORT_SCAN_RANGE), used
                )
            if port is None:
                raise OpenFrameError(f"could not find an available port near {default}")
            ports.append(port)
            used.add(port)
        return ports

    def _first_free(self, candidates, used: Set[int]) -> Optional[int]:
        for port in candidates:
            if port not in used and self.is_port_available(port):
                return port
        return None

    def _used_ports(self) -> Set[int]:
        try:
            result = self.executor.execute("k3d", "cluster", "list", "--output", "json")
        except CommandError:
            return set()
        return parse_k3d_used_ports(result.stdout)

    @staticmethod
    def is_port_available(port: int) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind(("", port))
            except OSError:
                return False
        return True

    def delete_cluster(self, name: str, cluster_type: ClusterType = ClusterType.K3D, force: bool = False) -> None:
        if not name:
            raise ValidationError("cluster name cannot be empty")
        if cluster_type != ClusterType.K3D:
            raise ValidationError(f"provider not found for cluster type: {cluster_type.value}")
        try:
            self.executor.execute("k3d", "cluster", "delete", name)
        except CommandError as e:
            raise OpenFrameError(f"failed to delete cluster {name}: {e}") from e

    def start_cluster(self, name: str) -> None:
        if not name:
            raise ValidationError("cluster name cannot be empty")
        try:
            self.executor.execute("k3d", "cluster", "start", name)
        except CommandError as e:
            raise OpenFrameError(f"failed to start cluster {name}: {e}") from e

    def list_clusters(self) -> List[ClusterInfo]:
        try:
            result = self.executor.execute("k3d", "cluster", "list", "--output", "json")
        except CommandError as e:
            raise OpenFrameError(f"failed to list clusters: {e}") from e
        try:
            return parse_k3d_cluster_list(result.stdout)
        except ValueError as e:
            raise OpenFrameError(str(e)) from e

    def get_cluster_status(self, name: str) -> ClusterInfo:
        if not name:
            raise ValidationError("cluster name cannot be empty")
        for cluster in self.list_clusters():
            if cluster.name == name:
                return cluster
        raise ClusterNotFoundError(f"cluster {name} not found")

    def detect_cluster_type(self, name: str) -> ClusterType:
        if not name:
            raise ValidationError("cluster name cannot be empty")
        try:
            self.executor.execute("k3d", "cluster", "get", name)
        except CommandError as e:
            raise ClusterNotFoundError(f"cluster {name} not found") from e
        return ClusterType.K3D

    def get_kubeconfig(self, name: str) -> str:
        if not name:
            raise ValidationError("cluster name cannot be empty")
        try:
            result = self.executor.execute("k3d", "kubeconfig", "get", name)
        except CommandError as e:
            raise OpenFrameError(f"failed to get kubeconfig for cluster {name}: {e}") from e
        return result.stdout
