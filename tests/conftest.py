"""
Pytest configuration and fixtures for metrics archiver tests.

Provides in-memory collaborators (blob store, metrics source, inventory),
record factories and mocked AWS clients.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Sequence
from unittest.mock import MagicMock

import pytest

from metrics_archiver.config import Settings
from metrics_archiver.core.interfaces import BlobObject
from metrics_archiver.core.records import (
    CLUSTER_NAME_LABEL,
    INSTANCE_ID_LABEL,
    INSTANCE_NAME_LABEL,
    DataPoint,
    MetricDescriptor,
    MetricRecord,
    TimeInterval,
)
from metrics_archiver.errors import BlobStoreError

FIXED_NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeBlobStore:
    """In-memory bucket with the BlobStore surface."""

    def __init__(self, bucket_name: str = "cloudwatch-acme-123456789012", chunk_size: int = 64):
        self.bucket_name = bucket_name
        self.chunk_size = chunk_size
        self.objects: Dict[str, bytes] = {}
        self.exists = False
        self.create_calls = 0
        self.fail_on_put: Optional[str] = None

    def create_bucket(self) -> bool:
        self.create_calls += 1
        if self.exists:
            return False
        self.exists = True
        return True

    def put_object(self, name: str, data: bytes) -> None:
        if self.fail_on_put is not None and name.startswith(self.fail_on_put):
            raise BlobStoreError(f"Unable to write object {name}")
        self.objects[name] = bytes(data)

    def get_object(self, name: str) -> Iterator[bytes]:
        data = self.objects[name]
        for offset in range(0, len(data), self.chunk_size):
            yield data[offset : offset + self.chunk_size]

    def list_objects(self) -> Iterator[BlobObject]:
        for name in sorted(self.objects):
            yield BlobObject(name=name, size=len(self.objects[name]))


class FakeMetricsSource:
    """Serves canned descriptors and series, recording every query."""

    def __init__(
        self,
        descriptors: Sequence[MetricDescriptor] = (),
        series: Optional[Dict[str, List[MetricRecord]]] = None,
    ):
        self.descriptors = list(descriptors)
        self.series = series or {}
        self.queries: List[tuple] = []

    def list_metric_descriptors(self, project: str) -> Iterator[MetricDescriptor]:
        return iter(self.descriptors)

    def list_time_series(
        self,
        project: str,
        metric_type: str,
        interval: TimeInterval,
        dimension_names: Optional[Sequence[str]] = None,
    ) -> Iterator[MetricRecord]:
        self.queries.append((project, metric_type, interval, list(dimension_names or [])))
        return iter(self.series.get(metric_type, []))


class FakeInventory:
    def __init__(self, instances: Optional[List[dict]] = None, error: Optional[Exception] = None):
        self.instances = instances or []
        self.error = error

    def list_running_instances(self, project: str) -> List[dict]:
        if self.error is not None:
            raise self.error
        return list(self.instances)


def make_points(count: int = 3, start: datetime = FIXED_NOW) -> tuple:
    return tuple(
        DataPoint(timestamp=start - timedelta(hours=count - i), value=float(i))
        for i in range(count)
    )


def compute_record(
    instance_id: str,
    instance_name: str,
    metric_type: str = "AWS/EC2/CPUUtilization",
    points: int = 3,
) -> MetricRecord:
    return MetricRecord(
        metric_type=metric_type,
        resource_type="AWS/EC2",
        resource_labels={INSTANCE_ID_LABEL: instance_id},
        metric_labels={INSTANCE_NAME_LABEL: instance_name},
        points=make_points(points),
    )


def container_record(
    cluster_name: str,
    instance_id: str,
    metric_type: str = "ContainerInsights/node_cpu_utilization",
    points: int = 3,
) -> MetricRecord:
    return MetricRecord(
        metric_type=metric_type,
        resource_type="ContainerInsights",
        resource_labels={CLUSTER_NAME_LABEL: cluster_name, INSTANCE_ID_LABEL: instance_id},
        points=make_points(points),
    )


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return str(path)


@pytest.fixture
def settings(staging_dir):
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        staging_dir=staging_dir,
        aws_region="us-west-2",
        aws_profile=None,
        aws_access_key_id=None,
        aws_secret_access_key=None,
        aws_session_token=None,
        assume_role_name=None,
        company="acme",
    )


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def mock_s3_client():
    """Mock S3 client."""
    return MagicMock()


@pytest.fixture
def mock_ec2_client():
    """Mock EC2 client with one running instance."""
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {
            "Reservations": [
                {
                    "Instances": [
                        {
                            "InstanceId": "i-0abc",
                            "PrivateDnsName": "ip-10-0-0-1.ec2.internal",
                            "State": {"Name": "running"},
                            "Tags": [{"Key": "Name", "Value": "web-1"}],
                        }
                    ]
                }
            ]
        }
    ]
    client.get_paginator.return_value = paginator
    return client


@pytest.fixture
def mock_organizations_client():
    """Mock AWS Organizations client."""
    client = MagicMock()
    paginator = MagicMock()
    paginator.paginate.return_value = [
        {
            "Accounts": [
                {
                    "Id": "123456789012",
                    "Name": "Management Account",
                    "Email": "management@example.com",
                    "Status": "ACTIVE",
                },
                {
                    "Id": "123456789013",
                    "Name": "Closed Account",
                    "Email": "closed@example.com",
                    "Status": "SUSPENDED",
                },
            ]
        },
        {
            "Accounts": [
                {
                    "Id": "123456789014",
                    "Name": "Member Account 1",
                    "Email": "member1@example.com",
                    "Status": "ACTIVE",
                }
            ]
        },
    ]
    client.get_paginator.return_value = paginator
    return client


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "aws: Tests requiring AWS API mocking")
    config.addinivalue_line("markers", "slow: Slow running tests")
