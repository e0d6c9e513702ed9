"""
Metric record types, kind classification and archive naming.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..errors import ConsistencyError

# Label keys the index correlates on
INSTANCE_ID_LABEL = "instance_id"
INSTANCE_NAME_LABEL = "instance_name"
CLUSTER_NAME_LABEL = "cluster_name"


class MetricKind(Enum):
    """The two metric families the index correlates."""

    COMPUTE = "compute"
    CONTAINER = "container"


@dataclass(frozen=True)
class MetricDescriptor:
    """A metric type advertised by the metrics source."""

    name: str
    type: str


@dataclass(frozen=True)
class TimeInterval:
    """Query window shared by every metric of one export run."""

    start_time: datetime
    end_time: datetime

    @classmethod
    def ending_at(cls, end_time: datetime, retention_days: int) -> "TimeInterval":
        return cls(start_time=end_time - timedelta(days=retention_days), end_time=end_time)

    @classmethod
    def for_retention(
        cls, retention_days: int, now: Optional[datetime] = None
    ) -> "TimeInterval":
        """Window from `retention_days` ago up to now (UTC)."""
        end_time = now or datetime.now(timezone.utc)
        return cls.ending_at(end_time, retention_days)


@dataclass(frozen=True)
class DataPoint:
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class MetricRecord:
    """
    One time series read from the metrics source.

    Resource labels identify the monitored resource (instance id, cluster
    name); metric labels qualify the measurement itself (instance name).
    """

    metric_type: str
    resource_type: str = ""
    resource_labels: Mapping[str, str] = field(default_factory=dict)
    metric_labels: Mapping[str, str] = field(default_factory=dict)
    points: Tuple[DataPoint, ...] = ()

    def resource_label(self, key: str) -> str:
        """Return a required resource label or raise ConsistencyError."""
        try:
            return self.resource_labels[key]
        except KeyError:
            raise ConsistencyError(
                f"Unable to find {key} in resource labels of metric {self.metric_type}: "
                f"{dict(self.resource_labels)}"
            ) from None

    def metric_label(self, key: str) -> str:
        """Return a required metric label or raise ConsistencyError."""
        try:
            return self.metric_labels[key]
        except KeyError:
            raise ConsistencyError(
                f"Unable to find {key} in metric labels of metric {self.metric_type}: "
                f"{dict(self.metric_labels)}"
            ) from None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": {"type": self.metric_type, "labels": dict(self.metric_labels)},
            "resource": {"type": self.resource_type, "labels": dict(self.resource_labels)},
            "points": [
                {"timestamp": point.timestamp.isoformat(), "value": point.value}
                for point in self.points
            ],
        }

    def serialize(self) -> bytes:
        """Canonical JSON form: sorted keys, compact separators, UTF-8."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode(
            "utf-8"
        )


def classify_metric(
    descriptor: MetricDescriptor, patterns: Mapping[MetricKind, str]
) -> Optional[MetricKind]:
    """Return the kind whose pattern occurs in the descriptor name, if any."""
    for kind, pattern in patterns.items():
        if pattern and pattern in descriptor.name:
            return kind
    return None


def group_metric_types(
    descriptors: Iterable[MetricDescriptor], patterns: Mapping[MetricKind, str]
) -> Dict[MetricKind, List[str]]:
    """Split descriptors into per-kind metric type lists, in discovery order.

    Unrecognized descriptors are dropped and repeated types are collapsed.
    """
    grouped: Dict[MetricKind, List[str]] = {kind: [] for kind in MetricKind}
    seen = set()
    for descriptor in descriptors:
        kind = classify_metric(descriptor, patterns)
        if kind is None or descriptor.type in seen:
            continue
        seen.add(descriptor.type)
        grouped[kind].append(descriptor.type)
    return grouped


def normalize_metric_name(metric_type: str) -> str:
    return metric_type.replace("/", "_")


def archive_object_name(kind: MetricKind, metric_type: str, object_count: int) -> str:
    """`{kind}-{normalized metric}{count}`, e.g. `compute-AWS_EC2_CPUUtilization1`."""
    return f"{kind.value}-{normalize_metric_name(metric_type)}{object_count}"


def staged_file_name(metric_type: str, record_count: int) -> str:
    return f"{normalize_metric_name(metric_type)}-{record_count}"
