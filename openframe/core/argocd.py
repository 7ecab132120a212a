"""ArgoCD application discovery and readiness polling."""

import threading
import time
from typing import FrozenSet, List, Optional, Tuple

from ..k8s.parsers import (
    count_fields,
    count_helm_value_markers,
    count_prefixed_lines,
    estimate_from_applicationsets,
    parse_application_lines,
)
from ..model.chart import ARGOCD_NAMESPACE, Application, ChartInstallConfig
from ..utils.errors import CommandError, OperationCancelled
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from ..utils.ui import UI

logger = get_logger(__name__)

APP_OF_APPS = "app-of-apps"
APPLICATIONS_RESOURCE = "applications.argoproj.io"
APPLICATIONSETS_RESOURCE = "applicationsets.argoproj.io"

APPLICATIONS_JSONPATH = (
    "jsonpath={range .items[*]}{.metadata.name}{\"\\t\"}{.status.health.status}"
    "{\"\\t\"}{.status.sync.status}{\"\\n\"}{end}"
)
PLANNED_APPLICATIONS_JSONPATH = "jsonpath={.status.resources[?(@.kind=='Application')].name}"
RESOURCE_KINDS_JSONPATH = "jsonpath={range .status.resources[*]}{.kind}{\":\"}{.name}{\"\\n\"}{end}"

POLL_INTERVAL = 5.0
BOOTSTRAP_DELAY = 30.0
MAX_WAIT = 60 * 60.0
MIN_USEFUL_WAIT = 5.0
# Unchanged all-ready polls that end the wait when the expected count is estimated
STABLE_POLLS = 3


class ArgoCDManager:
    """Query ArgoCD Application resources through kubectl."""

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        ui: Optional[UI] = None,
        poll_interval: float = POLL_INTERVAL,
        bootstrap_delay: float = BOOTSTRAP_DELAY,
        max_wait: float = MAX_WAIT,
    ):
        self.executor = executor or CommandExecutor()
        self.ui = ui or UI()
        self.poll_interval = poll_interval
        self.bootstrap_delay = bootstrap_delay
        self.max_wait = max_wait

    def _kubectl(self, *args: str) -> str:
        return self.executor.execute("kubectl", "-n", ARGOCD_NAMESPACE, *args).stdout

    def parse_applications(self, verbose: bool = False) -> List[Application]:
        """Current applications; an empty list while none exist yet."""
        try:
            output = self._kubectl("get", APPLICATIONS_RESOURCE, "-o", APPLICATIONS_JSONPATH)
        except CommandError as e:
            if verbose:
                logger.debug(f"Could not list applications: {e}")
            return []
        return parse_application_lines(output)

    def get_total_expected_applications(self, config: ChartInstallConfig) -> int:
        """Best-effort count of applications the app-of-apps will eventually create.

        Tries, in order: the Application resources listed in the app-of-apps
        status, the helm values of the app-of-apps release, and the
        ApplicationSet count. Returns 0 when nothing is known yet.
        """
        return self.estimate_expected_applications(config)[0]

    def estimate_expected_applications(self, config: ChartInstallConfig) -> Tuple[int, bool]:
        """Return (count, exact); counts read from the app-of-apps resource are exact."""
        methods = [
            (
                "app-of-apps status",
                True,
                lambda: count_fields(
                    self._kubectl(
                        "get", APPLICATIONS_RESOURCE, APP_OF_APPS, "-o", PLANNED_APPLICATIONS_JSONPATH
                    )
                ),
            ),
            (
                "app-of-apps resource list",
                True,
                lambda: count_prefixed_lines(
                    self._kubectl(
                        "get", APPLICATIONS_RESOURCE, APP_OF_APPS, "-o", RESOURCE_KINDS_JSONPATH
                    ),
                    "Application:",
                ),
            ),
            (
                "helm values",
                False,
                lambda: count_helm_value_markers(
                    self.executor.execute(
                        "helm", "get", "values", APP_OF_APPS, "-n", ARGOCD_NAMESPACE
                    ).stdout
                ),
            ),
            (
                "ApplicationSets",
                False,
                lambda: estimate_from_applicationsets(
                    self._kubectl(
                        "get", APPLICATIONSETS_RESOURCE, "-o", "jsonpath={.items[*].metadata.name}"
                    )
                ),
            ),
        ]

        for source, exact, method in methods:
            try:
                count = method()
            except CommandError as e:
                logger.debug(f"Counting applications from {source} failed: {e}")
                continue
            if count > 0:
                logger.debug(f"Expecting {count} applications (from {source})")
                return count, exact

        return 0, False

    def _sleep(self, seconds: float, cancel: Optional[threading.Event]) -> None:
        if cancel is None:
            time.sleep(seconds)
        elif cancel.wait(seconds):
            raise OperationCancelled("waiting for applications cancelled")

    def wait_for_applications(
        self,
        config: ChartInstallConfig,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Poll until every application is Healthy and Synced.

        An exact expected count must be reached. An estimated count is only a
        hint: once every listed application is ready and the list has not
        changed for ``STABLE_POLLS`` polls, the wait ends.

        Returns early in dry-run mode or when less than a few seconds of budget
        remain. Running out of time is reported as a warning, not an error.
        """
        if config.dry_run:
            return

        budget = self.max_wait if timeout is None else min(timeout, self.max_wait)
        if budget < MIN_USEFUL_WAIT:
            return

        deadline = time.monotonic() + budget
        self._sleep(min(self.bootstrap_delay, budget), cancel)

        previous: Optional[FrozenSet[str]] = None
        stable = 0
        with self.ui.status("Waiting for ArgoCD applications...") as status:
            while True:
                if cancel is not None and cancel.is_set():
                    raise OperationCancelled("waiting for applications cancelled")

                expected, exact = self.estimate_expected_applications(config)
                applications = self.parse_applications(config.verbose)
                ready = sum(1 for app in applications if app.is_ready)
                total = max(expected, len(applications))
                status.update(f"[bold green]Applications ready: {ready}/{total}")

                names = frozenset(app.name for app in applications)
                all_ready = bool(applications) and ready == len(applications)
                stable = stable + 1 if all_ready and names == previous else 0
                previous = names

                if all_ready and (ready >= expected or (not exact and stable >= STABLE_POLLS)):
                    self.ui.success(f"All {ready} ArgoCD applications are Healthy and Synced")
                    return

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    pending = [app.name for app in applications if not app.is_ready]
                    if not pending and total > len(applications):
                        pending_text = f"{total - len(applications)} not created yet"
                    else:
                        pending_text = ", ".join(pending) or "none"
                    self.ui.warning(
                        f"Timed out waiting for applications ({ready}/{total} ready). "
                        f"Still pending: {pending_text}"
                    )
                    return
                self._sleep(min(self.poll_interval, remaining), cancel)
