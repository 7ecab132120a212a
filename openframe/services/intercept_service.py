"""Telepresence intercepts: route a cluster service's traffic to a local port."""

import os
import threading
import time
from typing import List, Optional, Tuple

from ..k8s.k3d import K3dManager
from ..k8s.kubectl import KubectlProvider
from ..k8s.parsers import parse_telepresence_namespace
from ..model.dev import DEFAULT_NAMESPACE, InterceptFlags, ServicePort
from ..model.runtime import RunContext
from ..prerequisites.sets import INTERCEPT, check_cluster_availability, check_prerequisites, dev_prerequisites
from ..utils.errors import CommandError, OpenFrameError, ValidationError
from ..utils.executor import CommandExecutor
from ..utils.interrupt import interrupt_sets
from ..utils.logger import get_logger
from ..utils.ui import UI

logger = get_logger(__name__)

SETTLE_DELAY = 1.0


def validate_inputs(service_name: str, flags: InterceptFlags) -> None:
    if not service_name or not service_name.strip():
        raise ValidationError("service name cannot be empty")
    if flags.port <= 0 or flags.port > 65535:
        raise ValidationError(f"invalid port: {flags.port} (must be between 1-65535)")
    if not flags.namespace:
        flags.namespace = DEFAULT_NAMESPACE
    if flags.env_file and not os.path.exists(flags.env_file):
        raise ValidationError(f"environment file not found: {flags.env_file}")
    for header in flags.headers:
        if "=" not in header:
            raise ValidationError(f"invalid header format: {header} (expected key=value)")


def remote_port_name(flags: InterceptFlags) -> str:
    return flags.remote_port_name or str(flags.port)


def build_intercept_args(service_name: str, flags: InterceptFlags) -> List[str]:
    """Arguments for ``telepresence intercept``."""
    args = ["intercept", service_name, "--port", f"{flags.port}:{remote_port_name(flags)}"]
    if flags.mount:
        args.extend(["--mount", flags.mount])
    else:
        args.append("--mount=false")
    if flags.env_file:
        args.extend(["--env-file", flags.env_file])
    if flags.global_intercept:
        args.append("--global")
    for header in flags.headers:
        args.extend(["--http-header", header])
    if flags.replace:
        args.append("--replace")
    return args


class InterceptService:
    """Connect Telepresence to the right namespace, intercept, and clean up on Ctrl+C."""

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        kubectl: Optional[KubectlProvider] = None,
        ctx: Optional[RunContext] = None,
        ui: Optional[UI] = None,
        cluster_manager: Optional[K3dManager] = None,
        settle_delay: float = SETTLE_DELAY,
    ):
        self.ctx = ctx or RunContext()
        self.executor = executor or CommandExecutor(
            dry_run=self.ctx.dry_run, verbose=self.ctx.verbose, cancel=self.ctx.cancel
        )
        self.kubectl = kubectl or KubectlProvider(self.executor, self.ctx.verbose)
        self.ui = ui or UI(self.ctx)
        self.cluster_manager = cluster_manager or K3dManager(self.executor, self.ctx.verbose)
        self.settle_delay = settle_delay

        self.current_service = ""
        self.current_namespace = ""
        self.original_namespace = ""
        self.is_intercepting = False
        self._stop = threading.Event()

    def run(self, service_name: Optional[str], flags: InterceptFlags) -> None:
        """Entry point for ``openframe dev intercept``."""
        if not self.ctx.is_test:
            check_prerequisites(dev_prerequisites(INTERCEPT, self.executor), self.ui)
        clusters = check_cluster_availability(self.cluster_manager)

        if not service_name:
            service_name, flags = self.interactive_setup(clusters)

        self.start_intercept(service_name, flags)

    def interactive_setup(self, clusters: Optional[List[str]] = None) -> Tuple[str, InterceptFlags]:
        """Pick a cluster, a service and its port by prompt."""
        clusters = clusters or check_cluster_availability(self.cluster_manager)
        cluster = self.ui.select("Select a cluster for intercept", clusters)
        self.kubectl.set_context(f"k3d-{cluster}")
        self.kubectl.check_connection()

        service_name = self.ui.ask("Service name to intercept")
        if not service_name:
            raise ValidationError("service name cannot be empty")
        namespace = self.kubectl.find_service_namespace(service_name)
        if namespace is None:
            raise OpenFrameError(
                f"Service '{service_name}' not found in the cluster. "
                "Make sure the service name is correct and deployed"
            )
        self.ui.success(f"Service '{service_name}' found in namespace '{namespace}'")

        service = self.kubectl.get_service(namespace, service_name)
        port = self.select_port(service.ports)
        local_port = self.ui.ask("Local port", default=str(port.port if port else 8080))
        try:
            local = int(local_port)
        except ValueError:
            raise ValidationError(f"invalid port: {local_port}")

        flags = InterceptFlags(
            port=local,
            namespace=namespace,
            remote_port_name=(port.name or str(port.port)) if port else None,
        )
        return service_name, flags

    def select_port(self, ports: List[ServicePort]) -> Optional[ServicePort]:
        if not ports:
            return None
        if len(ports) == 1:
            self.ui.info(f"Using Kubernetes port: {ports[0].name or ports[0].port}")
            return ports[0]
        labels = [f"{p.name or p.port} ({p.port}/{p.protocol})" for p in ports]
        choice = self.ui.select("Which Kubernetes port should be intercepted", labels)
        return ports[labels.index(choice)]

    def start_intercept(self, service_name: str, flags: InterceptFlags) -> None:
        validate_inputs(service_name, flags)
        self.check_kubernetes_context()

        self.ui.info("Setting up intercept...")
        with interrupt_sets(self._stop):
            try:
                self.ensure_correct_namespace(flags.namespace)
                self.current_service = service_name
                self.current_namespace = flags.namespace
                time.sleep(self.settle_delay)

                self.create_intercept(service_name, flags)
                self.is_intercepting = True
                self.ui.success(f"Intercepting {service_name}. Press Ctrl+C to stop...")

                if self.ctx.dry_run:
                    return
                self.wait_for_interrupt()
            finally:
                self.cleanup()

    def check_kubernetes_context(self) -> None:
        try:
            context = self.kubectl.get_current_context()
        except OpenFrameError as e:
            cause = str(e)
            if "executable not found" in cause:
                self.ui.error("kubectl not found. Please install kubectl to use intercept functionality.")
                raise OpenFrameError("kubectl not available") from e
            if "current-context is not set" in cause or "no current context" in cause:
                context = ""
            else:
                raise OpenFrameError(f"failed to get kubectl context: {e}") from e

        if not context and not self.ctx.dry_run:
            self.ui.error(
                "No active kubectl context found. "
                "Please set a context with: kubectl config use-context <context-name>"
            )
            raise OpenFrameError("no active kubectl context")
        self.ui.debug(f"Using kubectl context: {context}")

        try:
            self.kubectl.check_connection()
        except OpenFrameError as e:
            self.ui.error(
                f"Cannot connect to Kubernetes cluster '{context}'. Please check your cluster connection."
            )
            raise OpenFrameError(f"cluster connection failed: {e}") from e

    def get_current_namespace(self) -> str:
        result = self.executor.execute("telepresence", "status", "--output", "json")
        return parse_telepresence_namespace(result.stdout)

    def ensure_correct_namespace(self, target: str) -> None:
        try:
            current = self.get_current_namespace()
        except (CommandError, ValueError) as e:
            self.ui.debug(f"Could not get current namespace, assuming default: {e}")
            current = DEFAULT_NAMESPACE

        self.original_namespace = current
        if current == target:
            self.ui.debug(f"Telepresence already connected to {target}")
            return

        self.ui.debug(f"Switching Telepresence from {current} to {target}")
        self._best_effort("telepresence", "quit")
        try:
            self.executor.execute("telepresence", "connect", "--namespace", target)
        except CommandError as e:
            raise OpenFrameError(f"failed to connect to namespace {target}: {e}") from e

    def create_intercept(self, service_name: str, flags: InterceptFlags) -> None:
        args = build_intercept_args(service_name, flags)
        try:
            self.executor.execute("telepresence", *args)
        except CommandError as e:
            raise OpenFrameError(f"failed to create intercept: {e}") from e

    def wait_for_interrupt(self) -> None:
        # Short waits keep the main thread responsive to signals
        while not self._stop.wait(0.5):
            pass

    def stop(self) -> None:
        self._stop.set()

    def cleanup(self) -> None:
        """Leave the intercept and restore the original namespace, ignoring failures."""
        if not self.is_intercepting:
            return
        self.ui.info(f"Stopping intercept for {self.current_service}...")
        self._best_effort("telepresence", "leave", self.current_service)
        self._best_effort("telepresence", "quit")
        if self.original_namespace and self.original_namespace != self.current_namespace:
            self._best_effort("telepresence", "connect", "--namespace", self.original_namespace)
        self.is_intercepting = False
        self.ui.success("Intercept stopped")

    def _best_effort(self, command: str, *args: str) -> None:
        try:
            self.executor.execute(command, *args)
        except CommandError as e:
            logger.warning(f"{command} {' '.join(args)} failed: {e}")
