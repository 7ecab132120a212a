"""Test helm values modification and validation."""

import pytest
import yaml

from openframe.core.validator import ConfigurationValidator
from openframe.core.values import HelmValuesModifier, get_path
from openframe.model.chart import ChartConfiguration, DeploymentMode, DockerRegistryConfig, SaaSConfig
from openframe.utils.errors import OpenFrameError, ValidationError

SAAS_VALUES = {
    "deployment": {
        "saas": {"enabled": True, "repository": {"password": "tok"}, "config": {"password": "cfg"}},
    },
    "registry": {"ghcr": {"username": "bot", "password": "ghcr-token"}},
}


@pytest.fixture
def modifier():
    return HelmValuesModifier()


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadValues:
    def test_missing_file(self, modifier, tmp_path):
        with pytest.raises(OpenFrameError, match="helm values file not found"):
            modifier.load_existing_values(tmp_path / "helm-values.yaml")

    def test_invalid_yaml(self, modifier, tmp_path):
        path = tmp_path / "helm-values.yaml"
        path.write_text("deployment: [unclosed\n")
        with pytest.raises(OpenFrameError, match="failed to parse helm values YAML"):
            modifier.load_existing_values(path)

    def test_empty_file(self, modifier, tmp_path):
        path = tmp_path / "helm-values.yaml"
        path.write_text("")
        assert modifier.load_existing_values(path) == {}

    def test_non_mapping(self, modifier, tmp_path):
        path = tmp_path / "helm-values.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(OpenFrameError, match="must contain a mapping"):
            modifier.load_existing_values(path)

    def test_load_or_create(self, modifier, tmp_path):
        assert modifier.load_or_create_base_values(tmp_path / "nothing.yaml") == {}


class TestApplyConfiguration:
    def test_switching_mode(self, modifier):
        values = {"deployment": {"oss": {"enabled": True}, "saas": "disabled"}}

        modifier.apply_configuration(values, ChartConfiguration(deployment_mode=DeploymentMode.SAAS))

        assert values["deployment"]["oss"]["enabled"] is False
        assert values["deployment"]["saas"]["enabled"] is True

    def test_oss_branch(self, modifier):
        values = {}

        modifier.apply_configuration(
            values, ChartConfiguration(deployment_mode=DeploymentMode.OSS, branch="feature-x")
        )

        assert get_path(values, "deployment.oss.repository.branch") == "feature-x"
        assert get_path(values, "deployment.oss.enabled") is True

    def test_docker_registry_location_depends_on_mode(self, modifier):
        registry = DockerRegistryConfig(username="bot", password="pw", email="bot@example.com")
        oss, saas = {}, {}

        modifier.apply_configuration(oss, ChartConfiguration(deployment_mode=DeploymentMode.OSS, docker_registry=registry))
        modifier.apply_configuration(
            saas, ChartConfiguration(deployment_mode=DeploymentMode.SAAS_SHARED, docker_registry=registry)
        )

        assert oss["registry"]["docker"]["username"] == "bot"
        assert saas["registry"]["ghcr"]["password"] == "pw"

    def test_saas_settings(self, modifier):
        values = {}
        saas = SaaSConfig(
            repository_password="tok", config_repository_password="cfg", saas_branch="develop", oss_branch="release"
        )

        modifier.apply_configuration(values, ChartConfiguration(deployment_mode=DeploymentMode.SAAS, saas=saas))

        assert get_path(values, "deployment.saas.repository.password") == "tok"
        assert get_path(values, "deployment.saas.repository.branch") == "develop"
        assert get_path(values, "deployment.saas.config.password") == "cfg"
        assert get_path(values, "deployment.oss.repository.branch") == "release"

    def test_unset_fields_keep_values(self, modifier):
        values = {"deployment": {"oss": {"enabled": True, "repository": {"branch": "keep"}}}}

        modifier.apply_configuration(values, ChartConfiguration())

        assert values == {"deployment": {"oss": {"enabled": True, "repository": {"branch": "keep"}}}}


class TestBranches:
    def test_current_branch_falls_back_to_global(self, modifier):
        assert modifier.get_current_branch({"global": {"repoBranch": "next"}}) == "next"
        assert modifier.get_current_branch({}) == "main"
        assert (
            modifier.get_current_branch(
                {"deployment": {"oss": {"repository": {"branch": "x"}}}, "global": {"repoBranch": "y"}}
            )
            == "x"
        )

    def test_branch_for_mode(self, modifier):
        values = {
            "deployment": {
                "oss": {"repository": {"branch": "oss-branch"}},
                "saas": {"enabled": True, "repository": {"branch": "saas-branch"}},
            }
        }
        assert modifier.get_branch_for_mode(values, DeploymentMode.SAAS_SHARED) == "saas-branch"
        assert modifier.get_branch_for_mode(values, DeploymentMode.OSS) == "oss-branch"
        assert modifier.get_branch_for_mode(values, DeploymentMode.SAAS) == "oss-branch"
        assert modifier.get_branch_for_mode(values, None) == "saas-branch"
        assert modifier.get_branch_for_mode({}, DeploymentMode.OSS) == ""

    def test_current_deployment_mode(self, modifier):
        assert modifier.get_current_deployment_mode(SAAS_VALUES) == DeploymentMode.SAAS
        assert modifier.get_current_deployment_mode({"deployment": {"oss": {"enabled": True}}}) == DeploymentMode.OSS
        assert modifier.get_current_deployment_mode({}) is None


class TestDevValues:
    def test_auto_sync_disabled_and_existing_keys_kept(self, modifier, tmp_path):
        output = write_yaml(tmp_path / "helm-values.yaml", {"global": {"autoSync": True, "repoBranch": "main"}})

        modifier.create_dev_values_file(None, output)

        values = yaml.safe_load(output.read_text())
        assert values["global"] == {"autoSync": False, "repoBranch": "main"}

    def test_base_file_merged_on_top(self, modifier, tmp_path):
        output = write_yaml(tmp_path / "helm-values.yaml", {"registry": {"docker": {}}, "keep": 1})
        base = write_yaml(tmp_path / "custom.yaml", {"registry": {"ghcr": {"username": "bot"}}})

        modifier.create_dev_values_file(base, output)

        values = yaml.safe_load(output.read_text())
        assert values["keep"] == 1
        assert values["registry"] == {"ghcr": {"username": "bot"}}
        assert values["global"]["autoSync"] is False

    def test_unreadable_output_is_replaced(self, modifier, tmp_path):
        output = tmp_path / "helm-values.yaml"
        output.write_text("{{{ not yaml")

        modifier.create_dev_values_file(None, output)

        assert yaml.safe_load(output.read_text()) == {"global": {"autoSync": False}}


class TestValidator:
    def test_complete_saas_values(self):
        ConfigurationValidator().validate(SAAS_VALUES, DeploymentMode.SAAS)

    @pytest.mark.parametrize(
        "field",
        [
            "deployment.saas.enabled",
            "deployment.saas.repository.password",
            "deployment.saas.config.password",
            "registry.ghcr.username",
            "registry.ghcr.password",
        ],
    )
    def test_each_missing_saas_field(self, field):
        values = yaml.safe_load(yaml.safe_dump(SAAS_VALUES))
        *parents, leaf = field.split(".")
        section = values
        for key in parents:
            section = section[key]
        del section[leaf]

        with pytest.raises(ValidationError, match=f"Missing or disabled: {field}"):
            ConfigurationValidator().validate(values, DeploymentMode.SAAS)

    def test_saas_shared_does_not_need_config_password(self):
        values = yaml.safe_load(yaml.safe_dump(SAAS_VALUES))
        del values["deployment"]["saas"]["config"]
        assert ConfigurationValidator().missing_fields(values, DeploymentMode.SAAS_SHARED) == []

    def test_disabled_oss(self):
        with pytest.raises(ValidationError, match="incomplete for oss-tenant deployment"):
            ConfigurationValidator().validate({"deployment": {"oss": {"enabled": False}}}, DeploymentMode.OSS)
