"""
Collaborator interfaces the pipeline depends on.

The AWS adapters in `metrics_archiver.aws` and the tar codec in
`metrics_archiver.utils.archive` implement these; tests substitute
in-memory fakes.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence

from .records import MetricDescriptor, MetricRecord, TimeInterval


@dataclass(frozen=True)
class BlobObject:
    name: str
    size: int = 0


class MetricsSource(Protocol):
    def list_metric_descriptors(self, project: str) -> Iterator[MetricDescriptor]:
        ...

    def list_time_series(
        self,
        project: str,
        metric_type: str,
        interval: TimeInterval,
        dimension_names: Optional[Sequence[str]] = None,
    ) -> Iterator[MetricRecord]:
        ...


class BlobStore(Protocol):
    bucket_name: str

    def create_bucket(self) -> bool:
        ...

    def put_object(self, name: str, data: bytes) -> None:
        ...

    def get_object(self, name: str) -> Iterator[bytes]:
        ...

    def list_objects(self) -> Iterator[BlobObject]:
        ...


class ArchiveCodec(Protocol):
    def compress_directory(self, source_dir: str, archive_path: str) -> None:
        ...

    def decompress_and_extract(self, archive_path: str, target_dir: str) -> List[str]:
        ...


class InstanceInventory(Protocol):
    def list_running_instances(self, project: str) -> List[Dict[str, Any]]:
        ...
