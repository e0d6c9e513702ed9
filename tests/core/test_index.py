"""
Tests for cluster/node correlation and the persisted index format.
"""

import json

import pytest
from structlog.testing import capture_logs

from conftest import compute_record, container_record
from metrics_archiver.core.index import ClusterMapping, Index, IndexBuilder, NodeInfo
from metrics_archiver.core.records import MetricKind
from metrics_archiver.errors import ConsistencyError


def build_index(events):
    builder = IndexBuilder()
    for kind, record, file_name in events:
        builder.observe(kind, record, file_name)
    return builder, builder.merge()


@pytest.mark.unit
class TestIndexBuilder:
    """Test correlation of compute and container records."""

    def test_node_merged_into_its_cluster(self):
        _, index = build_index(
            [
                (MetricKind.CONTAINER, container_record("prod", "i-1"), "cpu-1"),
                (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "AWS_EC2_CPUUtilization-1"),
                (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "AWS_EC2_NetworkIn-1"),
            ]
        )

        cluster = index.clusters["prod"]
        assert cluster.container_files == ["cpu-1"]
        node = cluster.node_infos["i-1"]
        assert node.instance_name == "web-1"
        assert node.cluster_name == "prod"
        assert node.node_files == ["AWS_EC2_CPUUtilization-1", "AWS_EC2_NetworkIn-1"]

    def test_processing_order_does_not_matter(self):
        container = (MetricKind.CONTAINER, container_record("prod", "i-1"), "cpu-1")
        compute = (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "ec2-1")

        _, container_first = build_index([container, compute])
        _, compute_first = build_index([compute, container])

        assert container_first.to_dict() == compute_first.to_dict()

    def test_orphan_node_is_skipped_with_warning(self):
        with capture_logs() as logs:
            builder, index = build_index(
                [
                    (MetricKind.CONTAINER, container_record("prod", "i-1"), "cpu-1"),
                    (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "ec2-1"),
                    (MetricKind.COMPUTE, compute_record("i-2", "batch-7"), "ec2-2"),
                ]
            )

        assert list(index.clusters["prod"].node_infos) == ["i-1"]
        assert builder.skipped_nodes == ["i-2"]
        warnings = [entry for entry in logs if entry["log_level"] == "warning"]
        assert len(warnings) == 1
        assert warnings[0]["event"] == "Node found not belonging to any cluster"
        assert warnings[0]["instance_id"] == "i-2"

    def test_last_cluster_sighting_wins(self):
        _, index = build_index(
            [
                (MetricKind.CONTAINER, container_record("blue", "i-1"), "cpu-1"),
                (MetricKind.CONTAINER, container_record("green", "i-1"), "cpu-2"),
                (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "ec2-1"),
            ]
        )

        assert "i-1" not in index.clusters["blue"].node_infos
        assert index.clusters["green"].node_infos["i-1"].node_files == ["ec2-1"]

    def test_node_claiming_unknown_cluster_raises(self):
        builder = IndexBuilder()
        builder.observe_compute(compute_record("i-1", "web-1"), "ec2-1")
        builder.stage_list.node("i-1").cluster_name = "ghost"

        with pytest.raises(ConsistencyError, match="ghost"):
            builder.merge()

    def test_missing_instance_name_raises(self):
        builder = IndexBuilder()
        record = container_record("prod", "i-1", metric_type="AWS/EC2/CPUUtilization")

        with pytest.raises(ConsistencyError, match="instance_name"):
            builder.observe(MetricKind.COMPUTE, record, "ec2-1")

    def test_merge_runs_once(self):
        builder = IndexBuilder()
        builder.merge()

        with pytest.raises(RuntimeError):
            builder.merge()
        with pytest.raises(RuntimeError):
            builder.observe_container(container_record("prod", "i-1"), "cpu-1")


@pytest.mark.unit
class TestIndexFormat:
    """Test the JSON shape of the index object."""

    def test_camel_case_keys(self):
        index = Index(
            clusters={
                "prod": ClusterMapping(
                    container_files=["cpu-1"],
                    node_infos={"i-1": NodeInfo("web-1", "prod", ["ec2-1"])},
                )
            }
        )

        decoded = json.loads(index.to_json())

        assert decoded == {
            "clusters": {
                "prod": {
                    "containerFiles": ["cpu-1"],
                    "nodeInfos": {
                        "i-1": {
                            "instanceName": "web-1",
                            "clusterName": "prod",
                            "nodeFiles": ["ec2-1"],
                        }
                    },
                }
            }
        }

    def test_from_json_restores_index(self):
        _, index = build_index(
            [
                (MetricKind.CONTAINER, container_record("prod", "i-1"), "cpu-1"),
                (MetricKind.COMPUTE, compute_record("i-1", "web-1"), "ec2-1"),
            ]
        )

        assert Index.from_json(index.to_json()) == index

    def test_empty_index(self):
        assert json.loads(IndexBuilder().merge().to_json()) == {"clusters": {}}
