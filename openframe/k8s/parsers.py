"""Parsers for the text and JSON printed by kubectl, helm, k3d, docker and telepresence.

Every function here takes raw tool output and returns plain data. Keeping them
in one place means a change in a tool's output format only touches this module.
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..model.chart import Application, HealthStatus, HelmRelease, SyncStatus
from ..model.cluster import ClusterInfo, ClusterType, NodeInfo
from ..model.dev import ServiceInfo, ServicePort

APPLICATIONS_PER_APPLICATIONSET = 7

_FRACTION = re.compile(r"\.(\d{6})\d+")


def parse_application_lines(output: str) -> List[Application]:
    """Parse ``name<TAB>health<TAB>sync`` lines; blanks become ``Unknown``."""
    applications = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        name = parts[0].strip()
        if not name:
            continue
        health = parts[1].strip() or HealthStatus.UNKNOWN.value
        sync = parts[2].strip() or SyncStatus.UNKNOWN.value
        applications.append(Application(name=name, health=health, sync=sync))
    return applications


def count_fields(output: str) -> int:
    """Count whitespace-separated names (jsonpath list output)."""
    return len(output.split())


def count_prefixed_lines(output: str, prefix: str) -> int:
    return sum(1 for line in output.strip().splitlines() if line.startswith(prefix))


def count_helm_value_markers(output: str) -> int:
    """Estimate application count from ``helm get values`` output.

    Each application entry carries a repoURL, a targetRevision and a name; the
    largest of the three counts wins.
    """
    markers = ("repoURL:", "targetRevision:", "- name:")
    return max(output.count(marker) for marker in markers)


def estimate_from_applicationsets(output: str) -> int:
    """Heuristic count of applications generated by ApplicationSets."""
    return count_fields(output) * APPLICATIONS_PER_APPLICATIONSET


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse RFC 3339 timestamps, including nanosecond precision."""
    if not value:
        return None
    text = _FRACTION.sub(lambda m: f".{m.group(1)}", value.strip())
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    # k3d reports the zero time for nodes it has not started
    if parsed.year <= 1:
        return None
    return parsed


def load_json(output: str) -> Any:
    try:
        return json.loads(output or "null")
    except json.JSONDecodeError as e:
        raise ValueError(f"failed to parse JSON output: {e}") from e


def _count(item: Dict[str, Any], key: str) -> int:
    # k3d reports null for counts it has not computed
    return int(item.get(key) or 0)


def _k3d_cluster(item: Any) -> ClusterInfo:
    if not isinstance(item, dict) or "name" not in item:
        raise ValueError("cluster entry without a name")

    nodes = []
    created_at: Optional[datetime] = None
    for node in item.get("nodes") or []:
        if not isinstance(node, dict):
            raise ValueError(f"node entry of cluster {item['name']} is not an object")
        node_created = parse_timestamp(node.get("created"))
        role = node.get("role", "")
        state = node.get("State") or {}
        nodes.append(
            NodeInfo(
                name=node.get("name", ""),
                role=role,
                status="running" if state.get("Running") else state.get("Status", "unknown"),
                created_at=node_created,
            )
        )
        if role == "server" and node_created is not None:
            if created_at is None or node_created < created_at:
                created_at = node_created

    servers_count = _count(item, "serversCount")
    return ClusterInfo(
        name=item["name"],
        type=ClusterType.K3D,
        status=f"{_count(item, 'serversRunning')}/{servers_count}",
        node_count=_count(item, "agentsCount") + servers_count,
        created_at=created_at,
        nodes=nodes,
    )


def parse_k3d_cluster_list(output: str) -> List[ClusterInfo]:
    """Parse ``k3d cluster list --output json``.

    Raises ValueError on malformed output rather than returning a partial list.
    """
    data = load_json(output)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("failed to parse cluster list JSON: expected a list")

    try:
        return [_k3d_cluster(item) for item in data]
    except (AttributeError, TypeError, ValueError) as e:
        raise ValueError(f"failed to parse cluster list JSON: {e}") from e


def parse_k3d_used_ports(output: str) -> Set[int]:
    """Host ports claimed by existing k3d clusters; empty on any parse problem."""
    try:
        data = load_json(output)
    except ValueError:
        return set()
    if not isinstance(data, list):
        return set()

    used: Set[int] = set()
    for cluster in data:
        if not isinstance(cluster, dict):
            continue
        for node in cluster.get("nodes") or []:
            if not isinstance(node, dict) or node.get("role") not in ("server", "loadbalancer"):
                continue
            api_port = (node.get("runtimeLabels") or {}).get("k3d.server.api.port")
            if api_port and str(api_port).isdigit():
                used.add(int(api_port))
            for mappings in (node.get("portMappings") or {}).values():
                for mapping in mappings or []:
                    host_port = str((mapping or {}).get("HostPort") or "")
                    if host_port.isdigit():
                        used.add(int(host_port))
    return used


def parse_helm_releases(output: str) -> List[HelmRelease]:
    """Parse ``helm list --all-namespaces -o json``; empty on malformed output."""
    try:
        data = load_json(output)
    except ValueError:
        return []
    if not isinstance(data, list):
        return []

    releases = []
    for item in data:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        releases.append(
            HelmRelease(
                name=item["name"],
                namespace=item.get("namespace", "default"),
                revision=str(item.get("revision", "1")),
                status=item.get("status", "unknown"),
                chart=item.get("chart", ""),
                app_version=item.get("app_version"),
            )
        )
    return releases


def parse_lines(output: str) -> List[str]:
    """Non-empty, stripped lines."""
    return [line.strip() for line in output.splitlines() if line.strip()]


def filter_cluster_node_containers(names: Iterable[str], cluster_name: str) -> List[str]:
    """Keep the k3d server and agent containers that belong to ``cluster_name``."""
    prefixes = (f"k3d-{cluster_name}-server-", f"k3d-{cluster_name}-agent-")
    return [name for name in names if name.startswith(prefixes)]


def parse_telepresence_namespace(output: str) -> str:
    """Namespace of the connected telepresence daemon; ``default`` when unknown."""
    try:
        data = load_json(output)
    except ValueError:
        return "default"
    if not isinstance(data, dict):
        return "default"
    namespace = (data.get("user_daemon") or {}).get("namespace")
    if not namespace or namespace == "null":
        return "default"
    return str(namespace)


def _target_port(value: Any) -> str:
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str):
        return value
    return ""


def service_from_json(item: Dict[str, Any], namespace: str) -> ServiceInfo:
    """Convert one ``kubectl get service -o json`` object."""
    spec = item.get("spec") or {}
    ports = []
    for port in spec.get("ports") or []:
        number = int(port.get("port", 0))
        ports.append(
            ServicePort(
                name=port.get("name") or str(number),
                port=number,
                target_port=_target_port(port.get("targetPort")),
                protocol=port.get("protocol", "TCP"),
            )
        )
    return ServiceInfo(
        name=(item.get("metadata") or {}).get("name", ""),
        namespace=namespace,
        type=spec.get("type", ""),
        ports=ports,
    )


def parse_service_list(output: str, namespace: str) -> List[ServiceInfo]:
    data = load_json(output)
    if not isinstance(data, dict):
        raise ValueError("failed to parse service list JSON: expected an object")
    return [service_from_json(item, namespace) for item in data.get("items") or []]


def parse_helm_status(output: str) -> Dict[str, Any]:
    """Pull the interesting fields out of ``helm status -o json``."""
    data = load_json(output)
    if not isinstance(data, dict):
        raise ValueError("failed to parse helm status JSON: expected an object")
    info = data.get("info") or {}
    chart_meta = ((data.get("chart") or {}).get("metadata")) or {}
    return {
        "name": data.get("name", ""),
        "namespace": data.get("namespace", ""),
        "revision": data.get("version", 0),
        "status": info.get("status", "unknown"),
        "chart": chart_meta.get("name", ""),
        "version": chart_meta.get("version", ""),
        "app_version": chart_meta.get("appVersion", ""),
        "updated": info.get("last_deployed", ""),
    }
