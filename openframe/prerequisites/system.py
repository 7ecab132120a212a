"""Non-binary prerequisites: system memory and local TLS certificates."""

import os
from pathlib import Path
from typing import Optional, Tuple

from ..utils.errors import CommandError, PrerequisiteError
from ..utils.executor import CommandExecutor
from ..utils.logger import get_logger
from ..utils.paths import PathResolver
from .tools import DARWIN, LINUX, WINDOWS, BinaryToolChecker, ToolChecker, current_os

logger = get_logger(__name__)

RECOMMENDED_MEMORY_MB = 24576
MEMINFO_PATH = "/proc/meminfo"


class MemoryChecker(ToolChecker):
    """Total system memory. It can be reported but never installed."""

    name = "Memory"
    command = "memory"

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        recommended_mb: int = RECOMMENDED_MEMORY_MB,
        meminfo_path: str = MEMINFO_PATH,
    ):
        super().__init__(executor)
        self.recommended_mb = recommended_mb
        self.meminfo_path = meminfo_path

    def get_total_memory_mb(self) -> int:
        """Total physical memory in MB, or 0 when it cannot be determined."""
        system = current_os()
        try:
            if system == LINUX:
                with open(self.meminfo_path) as f:
                    for line in f:
                        if line.startswith("MemTotal:"):
                            return int(line.split()[1]) // 1024
            elif system == DARWIN:
                result = self.executor.execute("sysctl", "-n", "hw.memsize")
                return int(result.stdout.strip()) // (1024 * 1024)
            elif system == WINDOWS:
                result = self.executor.execute(
                    "powershell",
                    "-NoProfile",
                    "-Command",
                    "(Get-CimInstance Win32_ComputerSystem).TotalPhysicalMemory",
                )
                return int(result.stdout.strip()) // (1024 * 1024)
        except (OSError, ValueError, CommandError) as e:
            logger.debug(f"Could not determine system memory: {e}")
        return 0

    def get_memory_info(self) -> Tuple[int, int, bool]:
        """Return (current MB, recommended MB, sufficient)."""
        current = self.get_total_memory_mb()
        # Unknown memory is not reported as a problem
        sufficient = current == 0 or current >= self.recommended_mb
        return current, self.recommended_mb, sufficient

    def is_installed(self) -> bool:
        return self.get_memory_info()[2]

    def get_install_help(self) -> str:
        current, recommended, _ = self.get_memory_info()
        return (
            f"At least {recommended} MB of RAM is recommended ({current} MB available). "
            "Add more physical RAM or increase the memory available to Docker"
        )

    def _install(self) -> None:
        raise PrerequisiteError(
            "memory cannot be automatically increased. "
            "Please add more physical RAM or increase virtual memory allocation"
        )


class MkcertChecker(BinaryToolChecker):
    name = "mkcert"
    command = "mkcert"
    check_args = ["-help"]
    recipes = {
        DARWIN: [["brew", "install", "mkcert", "nss"]],
        LINUX: [
            [
                "bash",
                "-c",
                'curl -fsSL -o mkcert "https://dl.filippo.io/mkcert/latest?for=linux/amd64" '
                "&& chmod +x mkcert && sudo mv mkcert /usr/local/bin/mkcert",
            ]
        ],
    }
    default_help = "Install mkcert: https://github.com/FiloSottile/mkcert#installation"


class CertificateChecker(ToolChecker):
    """Locally trusted TLS certificate for the localhost ingress."""

    name = "Certificates"
    command = "mkcert"

    def __init__(
        self,
        executor: Optional[CommandExecutor] = None,
        resolver: Optional[PathResolver] = None,
        cert_dir: Optional[str] = None,
    ):
        super().__init__(executor)
        self.resolver = resolver or PathResolver()
        self.cert_dir = cert_dir
        self.mkcert = MkcertChecker(self.executor)

    @property
    def cert_files(self) -> Tuple[Path, Path]:
        return self.resolver.get_certificate_files(self.cert_dir)

    def is_installed(self) -> bool:
        cert_file, key_file = self.cert_files
        return cert_file.is_file() and key_file.is_file()

    def get_install_help(self) -> str:
        cert_file, key_file = self.cert_files
        return (
            "Generate trusted certificates: mkcert -install && "
            f"mkcert -cert-file {cert_file} -key-file {key_file} localhost 127.0.0.1 ::1"
        )

    def _install(self) -> None:
        self.generate()

    def generate(self) -> Tuple[Path, Path]:
        """(Re)create the certificate pair, installing mkcert and its CA when needed."""
        if not self.mkcert.is_installed():
            self.mkcert.install()

        cert_file, key_file = self.cert_files
        os.makedirs(cert_file.parent, exist_ok=True)
        try:
            self.executor.execute("mkcert", "-install")
            self.executor.execute(
                "mkcert",
                "-cert-file",
                str(cert_file),
                "-key-file",
                str(key_file),
                "localhost",
                "127.0.0.1",
                "::1",
            )
        except CommandError as e:
            raise PrerequisiteError(f"failed to generate certificates: {e}") from e
        return cert_file, key_file
