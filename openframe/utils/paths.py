"""Filesystem locations used by openframe."""

import os
from pathlib import Path
from typing import Optional, Tuple

from .logger import add_file_handler, get_logger

logger = get_logger(__name__)

HOME_ENV_VAR = "OPENFRAME_HOME"
HELM_VALUES_FILE = "helm-values.yaml"
CERT_FILE = "localhost.pem"
KEY_FILE = "localhost-key.pem"


class PathResolver:
    """Resolve openframe's home, log, certificate and values file paths."""

    def __init__(self, home: Optional[Path] = None, workdir: Optional[Path] = None):
        if home is None:
            env_home = os.environ.get(HOME_ENV_VAR)
            home = Path(env_home) if env_home else Path.home() / ".openframe"
        self.home = Path(home)
        self.workdir = Path(workdir) if workdir else Path.cwd()

    @property
    def log_directory(self) -> Path:
        return self.home / "logs"

    @property
    def certificate_directory(self) -> Path:
        return self.home / "certs"

    def get_certificate_files(self, cert_dir: Optional[str] = None) -> Tuple[Path, Path]:
        """Return (cert, key) paths, honouring an explicit --cert-dir."""
        base = Path(cert_dir) if cert_dir else self.certificate_directory
        return base / CERT_FILE, base / KEY_FILE

    def get_helm_values_file(self) -> Path:
        return self.workdir / HELM_VALUES_FILE


class SystemService:
    """Prepare the directories openframe writes to."""

    def __init__(self, resolver: Optional[PathResolver] = None):
        self.resolver = resolver or PathResolver()

    def initialize(self) -> bool:
        """Create home, log and cert directories and start file logging.

        Failures are logged and reported as False; a read-only home must not
        stop the CLI from running.
        """
        try:
            for directory in (
                self.resolver.home,
                self.resolver.log_directory,
                self.resolver.certificate_directory,
            ):
                directory.mkdir(parents=True, exist_ok=True)
            add_file_handler(self.resolver.log_directory)
            return True
        except OSError as e:
            logger.warning(f"Could not initialize {self.resolver.home}: {e}")
            return False
