"""Test data models."""

import threading

import pytest

from openframe.model.chart import (
    DEFAULT_GITHUB_REPO,
    SAAS_SHARED_GITHUB_REPO,
    Application,
    ChartInstallConfig,
    AppOfAppsConfig,
    DeploymentMode,
    InstallFlags,
    parse_deployment_mode,
)
from openframe.model.cluster import (
    ClusterConfig,
    ClusterInfo,
    ClusterType,
    parse_cluster_type,
    validate_cluster_name,
)
from openframe.model.command import CommandResult
from openframe.model.dev import InterceptFlags
from openframe.model.runtime import RunContext, RunMode
from openframe.utils.errors import ValidationError


class TestClusterNameValidation:
    @pytest.mark.parametrize("name", ["openframe-dev", "a", "Z9", "dev-1-cluster", "a" * 63])
    def test_valid_names(self, name):
        assert validate_cluster_name(name) == name

    def test_name_is_trimmed(self):
        assert validate_cluster_name("  my-cluster \n") == "my-cluster"

    @pytest.mark.parametrize("name", ["", "   ", "\t"])
    def test_empty(self, name):
        with pytest.raises(ValidationError, match="cannot be empty or contain only whitespace"):
            validate_cluster_name(name)

    def test_too_long(self):
        with pytest.raises(ValidationError, match="too long: 64 characters"):
            validate_cluster_name("a" * 64)

    def test_single_character_must_be_alphanumeric(self):
        with pytest.raises(ValidationError, match="must be alphanumeric"):
            validate_cluster_name("-")

    @pytest.mark.parametrize("name", ["-dev", "dev-", "dev_cluster", "dev.cluster", "dev cluster"])
    def test_invalid_characters(self, name):
        with pytest.raises(ValidationError, match="start and end with an alphanumeric"):
            validate_cluster_name(name)


class TestClusterModels:
    def test_config_defaults(self):
        config = ClusterConfig()
        assert config.name == "openframe-dev"
        assert config.type == ClusterType.K3D
        assert config.node_count == 3
        assert config.k8s_version == "v1.31.5-k3s1"

    def test_parse_cluster_type(self):
        assert parse_cluster_type("gke") == ClusterType.GKE
        assert parse_cluster_type("K3D") == ClusterType.K3D
        assert parse_cluster_type("") == ClusterType.K3D
        assert parse_cluster_type("kind") == ClusterType.K3D

    def test_cluster_readiness(self):
        assert ClusterInfo(name="a", status="1/1").is_ready
        assert not ClusterInfo(name="a", status="0/1").is_ready
        assert not ClusterInfo(name="a", status="").is_ready


class TestChartModels:
    def test_install_flag_defaults(self):
        flags = InstallFlags()
        assert flags.force is False
        assert flags.dry_run is False
        assert flags.github_repo == "https://github.com/flamingo-stack/openframe-oss-tenant"
        assert flags.github_branch == "main"
        assert flags.cert_dir == ""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("oss-tenant", DeploymentMode.OSS),
            ("saas-tenant", DeploymentMode.SAAS),
            (" saas-shared ", DeploymentMode.SAAS_SHARED),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_deployment_mode(self, value, expected):
        assert parse_deployment_mode(value) == expected

    def test_invalid_deployment_mode(self):
        with pytest.raises(
            ValidationError,
            match="invalid deployment mode: enterprise. Valid options: oss-tenant, saas-tenant, saas-shared",
        ):
            parse_deployment_mode("enterprise")

    def test_repository_per_mode(self):
        assert DeploymentMode.OSS.repository_url == DEFAULT_GITHUB_REPO
        assert DeploymentMode.SAAS.repository_url == DEFAULT_GITHUB_REPO
        assert DeploymentMode.SAAS_SHARED.repository_url == SAAS_SHARED_GITHUB_REPO
        assert DeploymentMode.SAAS.is_saas
        assert not DeploymentMode.OSS.is_saas

    def test_application_readiness(self):
        assert Application(name="api", health="Healthy", sync="Synced").is_ready
        assert not Application(name="api", health="Progressing", sync="Synced").is_ready
        assert not Application(name="api").is_ready

    def test_has_app_of_apps(self):
        assert not ChartInstallConfig(cluster_name="dev").has_app_of_apps
        assert ChartInstallConfig(cluster_name="dev", app_of_apps=AppOfAppsConfig()).has_app_of_apps
        assert not ChartInstallConfig(
            cluster_name="dev", app_of_apps=AppOfAppsConfig(github_repo="")
        ).has_app_of_apps


class TestRuntime:
    def test_modes(self):
        assert RunContext().prompts_enabled
        assert RunContext(mode=RunMode.NON_INTERACTIVE).non_interactive
        assert RunContext(mode=RunMode.TEST).is_test
        assert not RunContext(mode=RunMode.TEST).prompts_enabled

    def test_with_mode_shares_cancel_token(self):
        ctx = RunContext()
        copy = ctx.with_mode(RunMode.NON_INTERACTIVE)
        ctx.cancel.set()
        assert copy.cancelled
        assert copy.mode == RunMode.NON_INTERACTIVE
        assert ctx.mode == RunMode.INTERACTIVE

    def test_contexts_do_not_share_default_token(self):
        assert RunContext().cancel is not RunContext().cancel
        assert isinstance(RunContext().cancel, threading.Event)


class TestMisc:
    def test_command_result_output(self):
        assert CommandResult(stdout="out", stderr="err").output == "out\nerr"
        assert CommandResult(stdout="out").output == "out"
        assert not CommandResult(exit_code=2).success

    def test_intercept_namespace_defaults(self):
        assert InterceptFlags(namespace="").namespace == "default"
        assert InterceptFlags().port == 8080
