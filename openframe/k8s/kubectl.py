"""kubectl wrapper used by the dev workflows and cleanup."""

from typing import List, Optional

from ..model.dev import ServiceInfo
from ..utils.errors import CommandError, OpenFrameError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from .parsers import load_json, parse_lines, parse_service_list, service_from_json

logger = get_logger(__name__)


class KubectlProvider:
    """Thin wrapper for the kubectl calls openframe needs."""

    def __init__(self, executor: Optional[CommandExecutor] = None, verbose: bool = False):
        self.executor = executor or CommandExecutor()
        self.verbose = verbose

    def check_connection(self) -> None:
        try:
            self.executor.execute("kubectl", "cluster-info")
        except CommandError as e:
            raise OpenFrameError(f"kubectl is not connected to a cluster: {e}") from e

    def get_current_context(self) -> str:
        try:
            result = self.executor.execute("kubectl", "config", "current-context")
        except CommandError as e:
            raise OpenFrameError(f"failed to get current context: {e}") from e
        return result.stdout.strip()

    def set_context(self, context: str) -> None:
        try:
            self.executor.execute("kubectl", "config", "use-context", context)
        except CommandError as e:
            raise OpenFrameError(f"failed to switch context to {context}: {e}") from e

    def get_services(self, namespace: str) -> List[ServiceInfo]:
        try:
            result = self.executor.execute("kubectl", "get", "services", "-n", namespace, "-o", "json")
        except CommandError as e:
            raise OpenFrameError(f"failed to get services in namespace {namespace}: {e}") from e
        try:
            return parse_service_list(result.stdout, namespace)
        except ValueError as e:
            raise OpenFrameError(str(e)) from e

    def get_service(self, namespace: str, name: str) -> ServiceInfo:
        try:
            result = self.executor.execute(
                "kubectl", "get", "service", name, "-n", namespace, "-o", "json"
            )
        except CommandError as e:
            raise OpenFrameError(f"service '{name}' not found in namespace '{namespace}': {e}") from e
        try:
            data = load_json(result.stdout)
        except ValueError as e:
            raise OpenFrameError(str(e)) from e
        return service_from_json(data or {}, namespace)

    def validate_service(self, namespace: str, name: str) -> None:
        try:
            self.executor.execute("kubectl", "get", "service", name, "-n", namespace)
        except CommandError as e:
            raise OpenFrameError(f"service '{name}' not found in namespace '{namespace}'") from e

    def get_namespaces(self) -> List[str]:
        try:
            result = self.executor.execute(
                "kubectl", "get", "namespaces", "-o", "jsonpath={.items[*].metadata.name}"
            )
        except CommandError as e:
            raise OpenFrameError(f"failed to list namespaces: {e}") from e
        return result.stdout.split()

    def find_resource_namespace(self, name: str, kind: str = "service") -> Optional[str]:
        """Namespace of the first ``kind`` named ``name`` across all namespaces."""
        try:
            result = self.executor.execute(
                "kubectl",
                "get",
                kind,
                "--all-namespaces",
                "--field-selector",
                f"metadata.name={name}",
                "-o",
                "jsonpath={range .items[*]}{.metadata.namespace}{\"\\n\"}{end}",
            )
        except CommandError as e:
            logger.debug(f"Namespace lookup for {kind}/{name} failed: {e}")
            return None
        namespaces = parse_lines(result.stdout)
        return namespaces[0] if namespaces else None

    def find_service_namespace(self, name: str) -> Optional[str]:
        """Namespace of service ``name``, checking each namespace when the cluster-wide lookup finds nothing."""
        namespace = self.find_resource_namespace(name)
        if namespace is not None:
            return namespace
        try:
            candidates = self.get_namespaces()
        except OpenFrameError as e:
            logger.debug(f"Namespace listing failed: {e}")
            return None
        for candidate in candidates:
            try:
                self.validate_service(candidate, name)
            except OpenFrameError:
                continue
            return candidate
        return None

    def delete_namespace(self, namespace: str, wait: bool = False) -> None:
        self.executor.execute(
            "kubectl", "delete", "namespace", namespace, "--ignore-not-found", f"--wait={str(wait).lower()}"
        )
