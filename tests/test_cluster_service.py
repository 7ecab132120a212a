"""Test cluster lifecycle workflows."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from conftest import ScriptedExecutor, command_error
from openframe.k8s.k3d import ClusterNotFoundError
from openframe.model.cluster import ClusterConfig, ClusterInfo, ClusterType
from openframe.services.cluster_service import ClusterService, format_age

NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def make_service(test_ctx, ui, executor=None, manager=None):
    return ClusterService(test_ctx, executor or ScriptedExecutor(), manager or MagicMock(), ui)


class TestFormatAge:
    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=30), "0m"),
            (timedelta(minutes=42), "42m"),
            (timedelta(hours=5, minutes=59), "5h"),
            (timedelta(days=3, hours=2), "3d"),
        ],
    )
    def test_age(self, delta, expected):
        assert format_age(NOW - delta, now=NOW) == expected

    def test_unknown(self):
        assert format_age(None) == "unknown"

    def test_naive_timestamp_is_utc(self):
        assert format_age(datetime(2024, 5, 10, 11, 0), now=NOW) == "1h"


class TestCreateCluster:
    def test_creates_and_prints_next_steps(self, test_ctx, ui, output):
        manager = MagicMock()
        manager.list_clusters.return_value = []
        config = ClusterConfig(name="dev")

        make_service(test_ctx, ui, manager=manager).create_cluster(config)

        manager.create_cluster.assert_called_once_with(config)
        assert "Cluster created" in output.getvalue()
        assert "openframe bootstrap" in output.getvalue()

    def test_existing_cluster_is_left_alone(self, test_ctx, ui, output):
        manager = MagicMock()
        manager.list_clusters.return_value = [ClusterInfo(name="dev", status="1/1", node_count=4)]

        make_service(test_ctx, ui, manager=manager).create_cluster(ClusterConfig(name="dev"))

        manager.create_cluster.assert_not_called()
        assert "Cluster 'dev' already exists" in output.getvalue()
        assert "Ready (1/1)" in output.getvalue()


class TestDisplay:
    def test_quiet_list_prints_names_only(self, test_ctx, ui, output):
        clusters = [ClusterInfo(name="dev"), ClusterInfo(name="staging")]

        make_service(test_ctx, ui).display_cluster_list(clusters, quiet=True)

        assert output.getvalue() == "dev\nstaging\n"

    def test_table(self, test_ctx, ui, output):
        clusters = [ClusterInfo(name="dev", status="1/1", node_count=4)]

        make_service(test_ctx, ui).display_cluster_list(clusters)

        text = output.getvalue()
        assert "dev" in text
        assert "k3d" in text
        assert "unknown" in text

    def test_status_of_missing_cluster_lists_alternatives(self, test_ctx, ui, output):
        manager = MagicMock()
        manager.get_cluster_status.side_effect = ClusterNotFoundError("cluster prod not found")
        manager.list_clusters.return_value = [ClusterInfo(name="dev")]

        with pytest.raises(ClusterNotFoundError):
            make_service(test_ctx, ui, manager=manager).show_cluster_status("prod")

        assert "Cluster 'prod' not found" in output.getvalue()
        assert "Available clusters: dev" in output.getvalue()

    def test_status_with_applications(self, test_ctx, ui, output):
        manager = MagicMock()
        manager.get_cluster_status.return_value = ClusterInfo(name="dev", status="0/1")
        executor = ScriptedExecutor(
            {"kubectl -n argocd get applications.argoproj.io": "api\tHealthy\tSynced\nweb\tDegraded\tSynced\n"}
        )

        make_service(test_ctx, ui, executor=executor, manager=manager).show_cluster_status("dev")

        assert "Partial (0/1)" in output.getvalue()
        assert "1/2 healthy and synced" in output.getvalue()

    def test_status_without_apps(self, test_ctx, ui):
        manager = MagicMock()
        manager.get_cluster_status.return_value = ClusterInfo(name="dev", status="1/1")
        executor = ScriptedExecutor()

        make_service(test_ctx, ui, executor=executor, manager=manager).show_cluster_status("dev", skip_apps=True)

        assert executor.calls == []


class TestCleanup:
    def test_best_effort_cleanup(self, test_ctx, ui, output):
        executor = ScriptedExecutor(
            {
                "helm list --all-namespaces": json.dumps(
                    [
                        {"name": "argo-cd", "namespace": "argocd"},
                        {"name": "app-of-apps", "namespace": "argocd"},
                    ]
                ),
                "helm uninstall argo-cd": command_error("helm uninstall", 1, "stuck"),
                "docker ps": "k3d-dev-server-0\nk3d-dev-agent-0\nk3d-dev-serverlb\n",
                "docker exec k3d-dev-agent-0 docker volume": command_error("docker exec"),
            }
        )

        make_service(test_ctx, ui, executor=executor).cleanup_cluster("dev")

        assert executor.ran("helm uninstall app-of-apps -n argocd --no-hooks --wait --ignore-not-found")
        assert executor.ran("kubectl delete namespace argocd --ignore-not-found --wait=false")
        assert executor.ran("kubectl delete namespace openframe")
        assert executor.count("docker exec k3d-dev-server-0") == 5
        assert executor.count("docker exec k3d-dev-agent-0") == 5
        assert not executor.ran("docker exec k3d-dev-serverlb")
        assert not executor.ran("kubectl delete all")
        assert "Failed to uninstall argo-cd" in output.getvalue()

    def test_force_cleans_more(self, test_ctx, ui):
        executor = ScriptedExecutor({"docker ps": "k3d-dev-server-0\n"})

        make_service(test_ctx, ui, executor=executor).cleanup_cluster("dev", force=True)

        assert executor.ran("kubectl delete all --all -n kube-system")
        assert executor.ran("docker exec k3d-dev-server-0 docker builder prune -f --all")

    def test_missing_helm_skips_release_cleanup(self, test_ctx, ui):
        executor = ScriptedExecutor({"helm version": command_error("helm version", -1, "executable not found")})

        make_service(test_ctx, ui, executor=executor).cleanup_cluster("dev")

        assert not executor.ran("helm list")
        assert executor.ran("kubectl delete namespace argocd")

    def test_non_k3d_clusters_are_skipped(self, test_ctx, ui, output):
        executor = ScriptedExecutor()

        make_service(test_ctx, ui, executor=executor).cleanup_cluster("dev", ClusterType.GKE)

        assert executor.calls == []
        assert "only supported for k3d" in output.getvalue()


def test_delete_cluster(test_ctx, ui):
    manager = MagicMock()
    make_service(test_ctx, ui, manager=manager).delete_cluster("dev")
    manager.delete_cluster.assert_called_once_with("dev", ClusterType.K3D, False)
