"""Test Telepresence intercepts."""

import json
from unittest.mock import MagicMock, patch

import pytest

from conftest import ScriptedExecutor, command_error
from openframe.model.cluster import ClusterInfo
from openframe.model.dev import InterceptFlags, ServicePort
from openframe.model.runtime import RunContext, RunMode
from openframe.services.intercept_service import InterceptService, build_intercept_args, validate_inputs
from openframe.utils.errors import CommandError, OpenFrameError, ValidationError

CONNECTED = {"kubectl config current-context": "k3d-dev\n"}


def telepresence_status(namespace):
    return json.dumps({"user_daemon": {"namespace": namespace}})


def cluster_list(*names):
    clusters = MagicMock()
    clusters.list_clusters.return_value = [ClusterInfo(name=name) for name in names]
    return clusters


def make_service(executor, ui, ctx=None, cluster_manager=None):
    ctx = ctx or ui.ctx
    return InterceptService(
        executor, ctx=ctx, ui=ui, cluster_manager=cluster_manager or cluster_list("dev"), settle_delay=0
    )


def telepresence_calls(executor):
    return [call for call in executor.calls if call.startswith("telepresence")]


class TestInterceptArgs:
    def test_defaults(self):
        assert build_intercept_args("api", InterceptFlags()) == [
            "intercept",
            "api",
            "--port",
            "8080:8080",
            "--mount=false",
        ]

    def test_all_flags(self):
        flags = InterceptFlags(
            port=3000,
            remote_port_name="http",
            mount="/tmp/mnt",
            env_file="api.env",
            global_intercept=True,
            headers=["x-dev=alice", "x-trace=1"],
            replace=True,
        )

        assert build_intercept_args("api", flags) == [
            "intercept",
            "api",
            "--port",
            "3000:http",
            "--mount",
            "/tmp/mnt",
            "--env-file",
            "api.env",
            "--global",
            "--http-header",
            "x-dev=alice",
            "--http-header",
            "x-trace=1",
            "--replace",
        ]


class TestValidateInputs:
    @pytest.mark.parametrize("name", ["", "   "])
    def test_empty_service(self, name):
        with pytest.raises(ValidationError, match="service name cannot be empty"):
            validate_inputs(name, InterceptFlags())

    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_port_range(self, port):
        with pytest.raises(ValidationError, match=f"invalid port: {port} \\(must be between 1-65535\\)"):
            validate_inputs("api", InterceptFlags(port=port))

    def test_env_file_must_exist(self, tmp_path):
        with pytest.raises(ValidationError, match="environment file not found"):
            validate_inputs("api", InterceptFlags(env_file=str(tmp_path / "missing.env")))

        env_file = tmp_path / "api.env"
        env_file.write_text("FOO=bar\n")
        validate_inputs("api", InterceptFlags(env_file=str(env_file)))

    def test_header_format(self):
        with pytest.raises(ValidationError, match="invalid header format: x-dev \\(expected key=value\\)"):
            validate_inputs("api", InterceptFlags(headers=["x-dev=alice", "x-dev"]))


class TestStartIntercept:
    def test_switches_namespace_and_restores_it(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "telepresence status": telepresence_status("default")})
        ctx = RunContext(mode=RunMode.TEST, dry_run=True)
        service = make_service(executor, ui, ctx)

        service.start_intercept("api", InterceptFlags(namespace="openframe"))

        assert telepresence_calls(executor) == [
            "telepresence status --output json",
            "telepresence quit",
            "telepresence connect --namespace openframe",
            "telepresence intercept api --port 8080:8080 --mount=false",
            "telepresence leave api",
            "telepresence quit",
            "telepresence connect --namespace default",
        ]
        assert service.is_intercepting is False

    def test_already_in_namespace(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "telepresence status": telepresence_status("openframe")})
        service = make_service(executor, ui, RunContext(mode=RunMode.TEST, dry_run=True))

        service.start_intercept("api", InterceptFlags(namespace="openframe"))

        assert telepresence_calls(executor) == [
            "telepresence status --output json",
            "telepresence intercept api --port 8080:8080 --mount=false",
            "telepresence leave api",
            "telepresence quit",
        ]

    def test_unknown_status_assumes_default(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "telepresence status": command_error("telepresence status")})
        service = make_service(executor, ui, RunContext(mode=RunMode.TEST, dry_run=True))

        service.start_intercept("api", InterceptFlags())

        assert service.original_namespace == "default"
        assert not executor.ran("telepresence connect")

    def test_waits_until_stopped(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "telepresence status": telepresence_status("default")})
        service = make_service(executor, ui)
        service.stop()

        service.start_intercept("api", InterceptFlags())

        assert executor.ran("telepresence leave api")

    def test_cleanup_failures_are_ignored(self, ui):
        executor = ScriptedExecutor(
            {
                **CONNECTED,
                "telepresence status": telepresence_status("default"),
                "telepresence leave": command_error("telepresence leave"),
                "telepresence quit": command_error("telepresence quit"),
            }
        )
        service = make_service(executor, ui)
        service.stop()

        service.start_intercept("api", InterceptFlags())

        assert executor.ran("telepresence quit")

    def test_intercept_failure(self, ui):
        executor = ScriptedExecutor(
            {
                **CONNECTED,
                "telepresence status": telepresence_status("default"),
                "telepresence intercept": command_error("telepresence intercept", 1, "no such workload"),
            }
        )

        with pytest.raises(OpenFrameError, match="failed to create intercept"):
            make_service(executor, ui).start_intercept("api", InterceptFlags())

        assert not executor.ran("telepresence leave")

    def test_connect_failure(self, ui):
        executor = ScriptedExecutor(
            {
                **CONNECTED,
                "telepresence status": telepresence_status("default"),
                "telepresence connect": command_error("telepresence connect"),
            }
        )

        with pytest.raises(OpenFrameError, match="failed to connect to namespace openframe"):
            make_service(executor, ui).start_intercept("api", InterceptFlags(namespace="openframe"))

    def test_invalid_input_runs_nothing(self, ui):
        executor = ScriptedExecutor()

        with pytest.raises(ValidationError):
            make_service(executor, ui).start_intercept("api", InterceptFlags(port=70000))

        assert executor.calls == []


class TestKubernetesContext:
    def test_kubectl_missing(self, ui, output):
        executor = ScriptedExecutor(
            {
                "kubectl config current-context": CommandError(
                    "kubectl config current-context", -1, cause="executable not found: kubectl"
                )
            }
        )

        with pytest.raises(OpenFrameError, match="kubectl not available"):
            make_service(executor, ui).check_kubernetes_context()

        assert "kubectl not found" in output.getvalue()

    def test_no_context(self, ui):
        executor = ScriptedExecutor({"kubectl config current-context": ""})

        with pytest.raises(OpenFrameError, match="no active kubectl context"):
            make_service(executor, ui).check_kubernetes_context()

    def test_no_context_allowed_in_dry_run(self, ui):
        executor = ScriptedExecutor({"kubectl config current-context": ""})
        service = make_service(executor, ui, RunContext(mode=RunMode.TEST, dry_run=True))

        service.check_kubernetes_context()

        assert executor.ran("kubectl cluster-info")

    def test_cluster_unreachable(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "kubectl cluster-info": command_error("kubectl cluster-info")})

        with pytest.raises(OpenFrameError, match="cluster connection failed"):
            make_service(executor, ui).check_kubernetes_context()


class TestInteractiveSetup:
    def test_selects_cluster_service_and_port(self, ui):
        executor = ScriptedExecutor(
            {
                "kubectl get service --all-namespaces": "openframe\n",
                "kubectl get service api -n openframe": json.dumps(
                    {"metadata": {"name": "api"}, "spec": {"ports": [{"name": "http", "port": 80}]}}
                ),
            }
        )
        service = make_service(executor, ui, cluster_manager=cluster_list("dev"))

        with patch.object(ui, "ask", side_effect=["api", "9000"]):
            service_name, flags = service.interactive_setup()

        assert service_name == "api"
        assert flags.port == 9000
        assert flags.namespace == "openframe"
        assert flags.remote_port_name == "http"
        assert executor.ran("kubectl config use-context k3d-dev")

    def test_service_not_found(self, ui):
        service = make_service(ScriptedExecutor(), ui, cluster_manager=cluster_list("dev"))

        with patch.object(ui, "ask", return_value="ghost"):
            with pytest.raises(OpenFrameError, match="Service 'ghost' not found in the cluster"):
                service.interactive_setup()

    @pytest.mark.parametrize("service_name", [None, "api"])
    def test_no_clusters(self, ui, service_name):
        executor = ScriptedExecutor()

        with pytest.raises(OpenFrameError, match="No clusters found. Create a cluster first"):
            make_service(executor, ui, cluster_manager=cluster_list()).run(service_name, InterceptFlags())

        assert executor.calls == []

    def test_named_service_with_clusters_starts_intercept(self, ui):
        executor = ScriptedExecutor({**CONNECTED, "telepresence status": telepresence_status("default")})
        service = make_service(executor, ui, RunContext(mode=RunMode.TEST, dry_run=True))

        service.run("api", InterceptFlags())

        assert executor.ran("telepresence intercept api")

    def test_port_selection(self, ui):
        ports = [ServicePort(name="http", port=80), ServicePort(name="grpc", port=9090)]
        service = make_service(ScriptedExecutor(), ui)

        assert service.select_port(ports).name == "http"
        assert service.select_port([]) is None
