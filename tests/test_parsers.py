"""Test parsing of kubectl, helm, k3d and telepresence output."""

import json
from datetime import timezone

import pytest

from openframe.k8s.parsers import (
    count_helm_value_markers,
    estimate_from_applicationsets,
    filter_cluster_node_containers,
    parse_application_lines,
    parse_helm_releases,
    parse_k3d_cluster_list,
    parse_k3d_used_ports,
    parse_service_list,
    parse_telepresence_namespace,
    parse_timestamp,
)

K3D_LIST = [
    {
        "name": "openframe-dev",
        "serversCount": 1,
        "serversRunning": 1,
        "agentsCount": 3,
        "agentsRunning": 3,
        "nodes": [
            {
                "name": "k3d-openframe-dev-server-0",
                "role": "server",
                "created": "2024-05-01T10:00:00.123456789Z",
                "State": {"Running": True, "Status": "running"},
                "runtimeLabels": {"k3d.server.api.port": "6550"},
            },
            {
                "name": "k3d-openframe-dev-agent-0",
                "role": "agent",
                "created": "2024-05-01T10:00:05Z",
                "State": {"Running": False, "Status": "exited"},
            },
            {
                "name": "k3d-openframe-dev-serverlb",
                "role": "loadbalancer",
                "created": "0001-01-01T00:00:00Z",
                "State": {"Running": True},
                "portMappings": {
                    "80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "80"}],
                    "443/tcp": [{"HostIp": "0.0.0.0", "HostPort": "443"}],
                },
            },
        ],
    }
]


class TestApplicationLines:
    def test_parses_tab_separated_lines(self):
        output = "api\tHealthy\tSynced\nweb\tProgressing\tOutOfSync\n"
        apps = parse_application_lines(output)
        assert [(a.name, a.health, a.sync) for a in apps] == [
            ("api", "Healthy", "Synced"),
            ("web", "Progressing", "OutOfSync"),
        ]

    def test_blank_fields_become_unknown(self):
        apps = parse_application_lines("api\t\t\n")
        assert apps[0].health == "Unknown"
        assert apps[0].sync == "Unknown"

    def test_short_lines_are_skipped(self):
        assert parse_application_lines("api\tHealthy\n\n") == []


class TestExpectedCountHeuristics:
    def test_helm_value_markers_take_the_maximum(self):
        values = (
            "apps:\n"
            "- name: api\n  repoURL: x\n  targetRevision: main\n"
            "- name: web\n  repoURL: y\n"
            "- name: db\n"
        )
        assert count_helm_value_markers(values) == 3

    def test_applicationsets_are_multiplied(self):
        assert estimate_from_applicationsets("infra platform") == 14
        assert estimate_from_applicationsets("") == 0


class TestK3dClusterList:
    def test_status_and_node_count(self):
        clusters = parse_k3d_cluster_list(json.dumps(K3D_LIST))

        assert len(clusters) == 1
        cluster = clusters[0]
        assert cluster.name == "openframe-dev"
        assert cluster.status == "1/1"
        assert cluster.node_count == 4
        assert cluster.is_ready

    def test_created_at_is_from_server_node(self):
        cluster = parse_k3d_cluster_list(json.dumps(K3D_LIST))[0]
        assert cluster.created_at.year == 2024
        assert cluster.created_at.tzinfo == timezone.utc
        assert cluster.nodes[0].status == "running"
        assert cluster.nodes[1].status == "exited"
        assert cluster.nodes[2].created_at is None

    def test_empty_output(self):
        assert parse_k3d_cluster_list("") == []
        assert parse_k3d_cluster_list("[]") == []

    @pytest.mark.parametrize("output", ["not json", '{"name": "x"}', '[{"servers": 1}]'])
    def test_malformed_output_raises(self, output):
        with pytest.raises(ValueError):
            parse_k3d_cluster_list(output)

    def test_used_ports(self):
        assert parse_k3d_used_ports(json.dumps(K3D_LIST)) == {6550, 80, 443}
        assert parse_k3d_used_ports("garbage") == set()

    def test_null_counts_are_zero(self):
        cluster = parse_k3d_cluster_list('[{"name": "a", "serversCount": null, "agentsCount": null}]')[0]
        assert cluster.status == "0/0"
        assert cluster.node_count == 0

    @pytest.mark.parametrize(
        "output",
        [
            '[{"name": "a", "nodes": ["server-0"]}]',
            '[{"name": "a", "serversCount": "many"}]',
            '[{"name": "a", "nodes": 3}]',
        ],
    )
    def test_bad_entries_raise_value_error(self, output):
        with pytest.raises(ValueError, match="failed to parse cluster list JSON"):
            parse_k3d_cluster_list(output)

    def test_used_ports_skips_bad_entries(self):
        output = json.dumps(
            [
                "dev",
                {"name": "a", "nodes": [None, {"role": "server", "portMappings": {"80/tcp": [None, {"HostPort": None}]}}]},
                K3D_LIST[0],
            ]
        )
        assert parse_k3d_used_ports(output) == {6550, 80, 443}


class TestTimestamps:
    def test_nanoseconds(self):
        parsed = parse_timestamp("2024-05-01T10:00:00.123456789Z")
        assert parsed.microsecond == 123456

    def test_zero_time(self):
        assert parse_timestamp("0001-01-01T00:00:00Z") is None

    def test_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None


class TestTelepresenceNamespace:
    @pytest.mark.parametrize(
        "output,expected",
        [
            ('{"user_daemon": {"namespace": "openframe"}}', "openframe"),
            ('{"user_daemon": {"namespace": null}}', "default"),
            ('{"user_daemon": {"namespace": "null"}}', "default"),
            ('{"user_daemon": {}}', "default"),
            ("", "default"),
            ("not json", "default"),
        ],
    )
    def test_namespace(self, output, expected):
        assert parse_telepresence_namespace(output) == expected


class TestServices:
    def test_target_port_as_int_or_name(self):
        output = json.dumps(
            {
                "items": [
                    {
                        "metadata": {"name": "api"},
                        "spec": {
                            "type": "ClusterIP",
                            "ports": [
                                {"name": "http", "port": 80, "targetPort": 8080},
                                {"port": 9090, "targetPort": "metrics", "protocol": "TCP"},
                            ],
                        },
                    }
                ]
            }
        )

        services = parse_service_list(output, "openframe")

        assert services[0].name == "api"
        assert services[0].namespace == "openframe"
        assert services[0].ports[0].target_port == "8080"
        assert services[0].ports[1].name == "9090"
        assert services[0].ports[1].target_port == "metrics"


class TestMisc:
    def test_helm_releases(self):
        output = json.dumps(
            [
                {"name": "argo-cd", "namespace": "argocd", "revision": "2", "status": "deployed"},
                {"namespace": "broken"},
            ]
        )
        releases = parse_helm_releases(output)
        assert [(r.name, r.namespace, r.revision) for r in releases] == [("argo-cd", "argocd", "2")]
        assert parse_helm_releases("oops") == []

    def test_filter_cluster_node_containers(self):
        names = [
            "k3d-dev-server-0",
            "k3d-dev-agent-1",
            "k3d-dev-serverlb",
            "k3d-dev-tools",
            "k3d-other-server-0",
        ]
        assert filter_cluster_node_containers(names, "dev") == ["k3d-dev-server-0", "k3d-dev-agent-1"]
