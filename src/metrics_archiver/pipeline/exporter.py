"""
End-to-end export of one project's metrics into a bucket.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..config import Settings
from ..core.archiver import ArchivedObject, Archiver
from ..core.index import Index, IndexBuilder
from ..core.interfaces import ArchiveCodec, BlobStore, InstanceInventory, MetricsSource
from ..core.records import MetricKind, TimeInterval, group_metric_types
from ..core.staging import BatchStager, StagingResult
from ..errors import BlobStoreError, InventoryError
from ..logging import get_logger
from ..utils.archive import TarGzCodec

logger = get_logger("metrics_archiver.pipeline.exporter")

# Container metrics first so clusters exist before compute nodes are staged
KIND_ORDER = (MetricKind.CONTAINER, MetricKind.COMPUTE)


@dataclass
class ExportResult:
    project: str
    bucket: str
    interval: TimeInterval
    bucket_created: bool = False
    metrics: Dict[MetricKind, List[str]] = field(default_factory=dict)
    staged: List[StagingResult] = field(default_factory=list)
    index: Optional[Index] = None
    skipped_nodes: List[str] = field(default_factory=list)
    inventory_error: Optional[str] = None

    @property
    def objects(self) -> List[ArchivedObject]:
        return [obj for result in self.staged for obj in result.objects]

    @property
    def record_count(self) -> int:
        return sum(result.record_count for result in self.staged)


class ExportOrchestrator:
    """Pulls, batches, archives and indexes every metric of one project."""

    def __init__(
        self,
        settings: Settings,
        metrics_source: MetricsSource,
        blob_store: BlobStore,
        inventory: Optional[InstanceInventory] = None,
        codec: Optional[ArchiveCodec] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.metrics_source = metrics_source
        self.blob_store = blob_store
        self.inventory = inventory
        self.codec = codec or TarGzCodec()
        self.clock = clock

    def discover_metrics(self, project: str) -> Dict[MetricKind, List[str]]:
        patterns = {
            MetricKind.COMPUTE: self.settings.compute_metric_pattern,
            MetricKind.CONTAINER: self.settings.container_metric_pattern,
        }
        grouped = group_metric_types(
            self.metrics_source.list_metric_descriptors(project), patterns
        )
        for kind, metric_types in grouped.items():
            for metric_type in metric_types:
                logger.debug("Metric found", kind=kind.value, metric_type=metric_type)
        if not any(grouped.values()):
            logger.warning("No compute or container metrics found", project=project)
        return grouped

    def query_window(self) -> TimeInterval:
        now = self.clock() if self.clock else None
        return TimeInterval.for_retention(self.settings.retention_days, now=now)

    def run(self, project: str) -> ExportResult:
        bucket_created = self.blob_store.create_bucket()

        metrics = self.discover_metrics(project)
        interval = self.query_window()
        logger.info(
            "Pulling metrics with interval",
            project=project,
            start_time=interval.start_time.isoformat(),
            end_time=interval.end_time.isoformat(),
            compute_metrics=len(metrics[MetricKind.COMPUTE]),
            container_metrics=len(metrics[MetricKind.CONTAINER]),
        )

        result = ExportResult(
            project=project,
            bucket=self.blob_store.bucket_name,
            interval=interval,
            bucket_created=bucket_created,
            metrics=metrics,
        )

        index_builder = IndexBuilder()
        archiver = Archiver(self.blob_store, self.codec, self.settings.staging_dir)
        for kind in KIND_ORDER:
            stager = BatchStager(
                kind,
                archiver,
                index_builder,
                staging_dir=self.settings.staging_dir,
                threshold_bytes=self.settings.batch_threshold_bytes,
            )
            for metric_type in metrics[kind]:
                records = self.metrics_source.list_time_series(
                    project, metric_type, interval, self._dimension_names(kind)
                )
                result.staged.append(stager.stage_metric(metric_type, records))

        result.index = index_builder.merge()
        result.skipped_nodes = list(index_builder.skipped_nodes)
        self.blob_store.put_object(self.settings.index_object_name, result.index.to_json())
        logger.info(
            "Stored index",
            project=project,
            object_name=self.settings.index_object_name,
            clusters=len(result.index.clusters),
        )

        result.inventory_error = self.export_inventory(project)

        logger.info(
            "Export complete",
            project=project,
            bucket=result.bucket,
            records=result.record_count,
            objects=len(result.objects),
        )
        return result

    def export_inventory(self, project: str) -> Optional[str]:
        """Upload the running-instance snapshot; returns an error message on failure."""
        if self.inventory is None:
            return None
        try:
            instances = self.inventory.list_running_instances(project)
            payload = json.dumps(instances, default=str).encode("utf-8")
            self.blob_store.put_object(self.settings.inventory_object_name, payload)
        except (InventoryError, BlobStoreError) as e:
            logger.error(
                "Unable to store running instances snapshot", project=project, error=str(e)
            )
            return str(e)

        logger.info(
            "Stored running instances snapshot",
            project=project,
            object_name=self.settings.inventory_object_name,
            instances=len(instances),
        )
        return None

    def _dimension_names(self, kind: MetricKind) -> List[str]:
        if kind is MetricKind.CONTAINER:
            return list(self.settings.container_dimensions)
        return list(self.settings.compute_dimensions)
