"""Shallow clones of chart repositories."""

import os
import shutil
import tempfile
from typing import Optional

from ..model.chart import AppOfAppsConfig, CloneResult, DEFAULT_GITHUB_BRANCH
from ..utils.errors import BranchNotFoundError, CommandError, OpenFrameError, ValidationError
from ..utils.executor import CommandExecutor, redact_text
from ..utils.logger import get_logger

logger = get_logger(__name__)


class GitRepository:
    """Clone a chart repository into a temporary directory."""

    def __init__(self, executor: Optional[CommandExecutor] = None):
        self.executor = executor or CommandExecutor()

    def clone_chart_repository(self, config: AppOfAppsConfig) -> CloneResult:
        """Clone ``config.github_repo`` and locate ``config.chart_path`` inside it.

        The temporary directory is removed again if anything fails.
        """
        if not config.github_repo:
            raise ValidationError("github repository URL is required")
        branch = config.github_branch or DEFAULT_GITHUB_BRANCH

        temp_dir = tempfile.mkdtemp(prefix="openframe-chart-")
        try:
            try:
                self.executor.execute(
                    "git",
                    "clone",
                    "--depth",
                    "1",
                    "--single-branch",
                    "--no-tags",
                    "--branch",
                    branch,
                    config.github_repo,
                    temp_dir,
                )
            except CommandError as e:
                stderr = e.stderr or ""
                if "Remote branch" in stderr and "not found" in stderr:
                    raise BranchNotFoundError(branch) from e
                raise OpenFrameError(
                    f"failed to clone repository: {e}\nGit output: {redact_text(stderr.strip())}"
                ) from e

            chart_path = os.path.join(temp_dir, config.chart_path)
            # Dry runs never populate the directory
            if not self.executor.dry_run and not os.path.exists(chart_path):
                raise OpenFrameError(f"chart path '{config.chart_path}' does not exist in repository")
        except BaseException:
            self.cleanup(temp_dir)
            raise

        return CloneResult(temp_dir=temp_dir, chart_path=chart_path)

    def cleanup(self, temp_dir: str) -> None:
        """Remove a clone; failures are logged, never raised."""
        if not temp_dir:
            return
        try:
            shutil.rmtree(temp_dir)
        except FileNotFoundError:
            return
        except OSError as e:
            logger.warning(f"Failed to clean up temporary directory {temp_dir}: {e}")
