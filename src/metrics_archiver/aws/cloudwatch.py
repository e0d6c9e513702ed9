"""
CloudWatch-backed metrics source.

Metric types are `{Namespace}/{MetricName}` strings. Every dimension set
returned by ListMetrics for a type becomes one MetricRecord whose datapoints
are read with the GetMetricData paginator over the export window.
"""

import re
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..core.records import (
    INSTANCE_ID_LABEL,
    INSTANCE_NAME_LABEL,
    DataPoint,
    MetricDescriptor,
    MetricRecord,
    TimeInterval,
)
from ..errors import SourceError
from ..logging import get_logger

logger = get_logger("metrics_archiver.aws.cloudwatch")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z][a-z])|(?<=[a-z0-9])(?=[A-Z])")


def dimension_label(name: str) -> str:
    """`InstanceId` -> `instance_id`, `ClusterName` -> `cluster_name`."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def split_metric_type(metric_type: str) -> Tuple[str, str]:
    """Split `AWS/EC2/CPUUtilization` into namespace and metric name."""
    namespace, sep, metric_name = metric_type.rpartition("/")
    if not sep or not namespace or not metric_name:
        raise ValueError(f"Metric type must look like Namespace/MetricName: {metric_type}")
    return namespace, metric_name


class CloudWatchMetricsSource:
    """Lazy, paginated reads of CloudWatch metrics for one account."""

    def __init__(
        self,
        cloudwatch_client: Any,
        settings: Settings,
        instance_name_resolver: Optional[Callable[[str], str]] = None,
    ):
        self.client = cloudwatch_client
        self.period = settings.metric_period_seconds
        self.statistic = settings.metric_statistic
        self.instance_name_resolver = instance_name_resolver

    def list_metric_descriptors(self, project: str) -> Iterator[MetricDescriptor]:
        seen = set()
        paginator = self.client.get_paginator("list_metrics")
        try:
            for page in paginator.paginate():
                for metric in page.get("Metrics", []):
                    metric_type = f"{metric['Namespace']}/{metric['MetricName']}"
                    if metric_type in seen:
                        continue
                    seen.add(metric_type)
                    yield MetricDescriptor(name=metric_type, type=metric_type)
        except (ClientError, BotoCoreError) as e:
            raise SourceError(f"Unable to list metric descriptors for {project}: {e}") from e

        logger.debug("Listed metric descriptors", project=project, descriptors=len(seen))

    def list_time_series(
        self,
        project: str,
        metric_type: str,
        interval: TimeInterval,
        dimension_names: Optional[Sequence[str]] = None,
    ) -> Iterator[MetricRecord]:
        namespace, metric_name = split_metric_type(metric_type)
        list_kwargs: Dict[str, Any] = {"Namespace": namespace, "MetricName": metric_name}
        if dimension_names:
            list_kwargs["Dimensions"] = [{"Name": name} for name in dimension_names]

        paginator = self.client.get_paginator("list_metrics")
        try:
            for page in paginator.paginate(**list_kwargs):
                for metric in page.get("Metrics", []):
                    yield self._read_series(metric_type, metric, interval)
        except (ClientError, BotoCoreError) as e:
            raise SourceError(
                f"Unable to list time series for {metric_type} in {project}: {e}"
            ) from e

    def _read_series(
        self, metric_type: str, metric: Dict[str, Any], interval: TimeInterval
    ) -> MetricRecord:
        query = {
            "Id": "m0",
            "MetricStat": {
                "Metric": {
                    "Namespace": metric["Namespace"],
                    "MetricName": metric["MetricName"],
                    "Dimensions": metric.get("Dimensions", []),
                },
                "Period": self.period,
                "Stat": self.statistic,
            },
            "ReturnData": True,
        }

        points: List[DataPoint] = []
        paginator = self.client.get_paginator("get_metric_data")
        for page in paginator.paginate(
            MetricDataQueries=[query],
            StartTime=interval.start_time,
            EndTime=interval.end_time,
            ScanBy="TimestampAscending",
        ):
            for result in page.get("MetricDataResults", []):
                points.extend(
                    DataPoint(timestamp=timestamp, value=value)
                    for timestamp, value in zip(result["Timestamps"], result["Values"])
                )

        resource_labels = {
            dimension_label(dimension["Name"]): dimension["Value"]
            for dimension in metric.get("Dimensions", [])
        }
        metric_labels = {}
        instance_id = resource_labels.get(INSTANCE_ID_LABEL)
        if instance_id and self.instance_name_resolver is not None:
            metric_labels[INSTANCE_NAME_LABEL] = self.instance_name_resolver(instance_id)

        return MetricRecord(
            metric_type=metric_type,
            resource_type=metric["Namespace"],
            resource_labels=resource_labels,
            metric_labels=metric_labels,
            points=tuple(points),
        )
