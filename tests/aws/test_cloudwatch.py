"""
Tests for the CloudWatch metrics source.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from metrics_archiver.aws.cloudwatch import (
    CloudWatchMetricsSource,
    dimension_label,
    split_metric_type,
)
from metrics_archiver.core.records import TimeInterval
from metrics_archiver.errors import SourceError

END = datetime(2024, 6, 1, tzinfo=timezone.utc)
INTERVAL = TimeInterval(start_time=END - timedelta(days=455), end_time=END)


def paginator(pages):
    p = MagicMock()
    p.paginate.return_value = pages
    return p


@pytest.fixture
def cloudwatch_client():
    client = MagicMock()
    list_metrics = paginator(
        [
            {
                "Metrics": [
                    {
                        "Namespace": "AWS/EC2",
                        "MetricName": "CPUUtilization",
                        "Dimensions": [{"Name": "InstanceId", "Value": "i-0abc"}],
                    },
                    {
                        "Namespace": "AWS/EC2",
                        "MetricName": "CPUUtilization",
                        "Dimensions": [{"Name": "InstanceId", "Value": "i-0def"}],
                    },
                ]
            },
            {
                "Metrics": [
                    {
                        "Namespace": "ContainerInsights",
                        "MetricName": "node_cpu_utilization",
                        "Dimensions": [
                            {"Name": "ClusterName", "Value": "prod"},
                            {"Name": "InstanceId", "Value": "i-0abc"},
                        ],
                    }
                ]
            },
        ]
    )
    metric_data = paginator(
        [
            {
                "MetricDataResults": [
                    {
                        "Id": "m0",
                        "Timestamps": [END - timedelta(hours=2), END - timedelta(hours=1)],
                        "Values": [10.0, 20.0],
                    }
                ],
                "NextToken": "t1",
            },
            {
                "MetricDataResults": [
                    {"Id": "m0", "Timestamps": [END], "Values": [30.0]}
                ]
            },
        ]
    )
    client.get_paginator.side_effect = lambda name: {
        "list_metrics": list_metrics,
        "get_metric_data": metric_data,
    }[name]
    return client


@pytest.mark.unit
class TestHelpers:
    def test_dimension_label(self):
        assert dimension_label("InstanceId") == "instance_id"
        assert dimension_label("ClusterName") == "cluster_name"
        assert dimension_label("AutoScalingGroupName") == "auto_scaling_group_name"

    def test_split_metric_type(self):
        assert split_metric_type("AWS/EC2/CPUUtilization") == ("AWS/EC2", "CPUUtilization")

    def test_split_metric_type_rejects_bare_name(self):
        with pytest.raises(ValueError):
            split_metric_type("CPUUtilization")


@pytest.mark.unit
@pytest.mark.aws
class TestCloudWatchMetricsSource:
    """Test descriptor listing and time series reads."""

    def test_descriptors_are_deduplicated(self, cloudwatch_client, settings):
        source = CloudWatchMetricsSource(cloudwatch_client, settings)

        types = [d.type for d in source.list_metric_descriptors("123456789012")]

        assert types == ["AWS/EC2/CPUUtilization", "ContainerInsights/node_cpu_utilization"]

    def test_time_series_reads_all_pages(self, cloudwatch_client, settings):
        resolver = MagicMock(side_effect=lambda instance_id: f"name-{instance_id}")
        source = CloudWatchMetricsSource(cloudwatch_client, settings, resolver)

        records = list(
            source.list_time_series(
                "123456789012", "AWS/EC2/CPUUtilization", INTERVAL, ["InstanceId"]
            )
        )

        assert len(records) == 3
        first = records[0]
        assert first.metric_type == "AWS/EC2/CPUUtilization"
        assert first.resource_labels == {"instance_id": "i-0abc"}
        assert first.metric_labels == {"instance_name": "name-i-0abc"}
        assert [p.value for p in first.points] == [10.0, 20.0, 30.0]

        list_call = cloudwatch_client.get_paginator("list_metrics").paginate.call_args
        assert list_call.kwargs == {
            "Namespace": "AWS/EC2",
            "MetricName": "CPUUtilization",
            "Dimensions": [{"Name": "InstanceId"}],
        }
        data_call = cloudwatch_client.get_paginator("get_metric_data").paginate.call_args
        assert data_call.kwargs["StartTime"] == INTERVAL.start_time
        assert data_call.kwargs["EndTime"] == INTERVAL.end_time
        stat = data_call.kwargs["MetricDataQueries"][0]["MetricStat"]
        assert stat["Period"] == 3600
        assert stat["Stat"] == "Average"

    def test_container_series_carry_cluster_label(self, cloudwatch_client, settings):
        source = CloudWatchMetricsSource(cloudwatch_client, settings)

        records = list(
            source.list_time_series(
                "123456789012", "ContainerInsights/node_cpu_utilization", INTERVAL
            )
        )

        assert records[2].resource_labels == {"cluster_name": "prod", "instance_id": "i-0abc"}
        assert records[2].metric_labels == {}

    def test_series_are_read_lazily(self, cloudwatch_client, settings):
        source = CloudWatchMetricsSource(cloudwatch_client, settings)

        series = source.list_time_series("123456789012", "AWS/EC2/CPUUtilization", INTERVAL)

        cloudwatch_client.get_paginator.assert_not_called()
        next(series)
        assert cloudwatch_client.get_paginator.call_count == 2

    def test_client_error_becomes_source_error(self, settings):
        client = MagicMock()
        client.get_paginator.return_value.paginate.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "ListMetrics"
        )
        source = CloudWatchMetricsSource(client, settings)

        with pytest.raises(SourceError, match="descriptors"):
            list(source.list_metric_descriptors("123456789012"))
        with pytest.raises(SourceError, match="time series"):
            list(source.list_time_series("123456789012", "AWS/EC2/CPUUtilization", INTERVAL))
