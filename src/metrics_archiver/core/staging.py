"""
Size-bounded staging of metric records into archive batches.

Each metric is read as a lazy stream of records. Records are serialized to
individual files in a batch directory; once the batch's staged size reaches
the threshold it is archived and a fresh batch continues the same metric.
Whatever is left when the stream ends is archived as the tail object.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Iterable, List

from ..errors import StagingError
from ..logging import get_logger
from .archiver import ArchivedObject, Archiver
from .index import IndexBuilder
from .records import MetricKind, MetricRecord, archive_object_name, staged_file_name

logger = get_logger("metrics_archiver.core.staging")


@dataclass
class Batch:
    """A batch directory being filled with staged record files."""

    directory: str
    size: int = 0
    files: List[str] = field(default_factory=list)

    @classmethod
    def create(cls, staging_dir: str) -> "Batch":
        try:
            return cls(directory=tempfile.mkdtemp(prefix="metrics", dir=staging_dir))
        except OSError as e:
            raise StagingError(f"Unable to create temp dir: {e}") from e

    def write(self, file_name: str, payload: bytes) -> None:
        path = os.path.join(self.directory, file_name)
        try:
            with open(path, "wb") as staged_file:
                staged_file.write(payload)
        except OSError as e:
            raise StagingError(f"Unable to write to file {path}: {e}") from e
        self.size += len(payload)
        self.files.append(file_name)

    def discard_if_empty(self) -> None:
        if self.size == 0 and not self.files:
            try:
                os.rmdir(self.directory)
            except OSError as e:
                raise StagingError(f"Unable to remove empty batch dir {self.directory}: {e}") from e


@dataclass
class StagingResult:
    """What staging a single metric produced."""

    metric_type: str
    kind: MetricKind
    record_count: int = 0
    objects: List[ArchivedObject] = field(default_factory=list)


class BatchStager:
    """Stages the record streams of one metric kind.

    The IndexBuilder is shared with the stager of the other kind so that
    correlation spans every metric of the export.
    """

    def __init__(
        self,
        kind: MetricKind,
        archiver: Archiver,
        index_builder: IndexBuilder,
        staging_dir: str,
        threshold_bytes: int,
    ):
        if threshold_bytes <= 0:
            raise ValueError("threshold_bytes must be greater than zero")
        self.kind = kind
        self.archiver = archiver
        self.index_builder = index_builder
        self.staging_dir = staging_dir
        self.threshold_bytes = threshold_bytes

    def stage_metric(self, metric_type: str, records: Iterable[MetricRecord]) -> StagingResult:
        result = StagingResult(metric_type=metric_type, kind=self.kind)
        object_count = 1
        batch = Batch.create(self.staging_dir)

        logger.info("Reading metric", metric_type=metric_type, kind=self.kind.value)

        for record in records:
            result.record_count += 1
            file_name = staged_file_name(metric_type, result.record_count)
            self.index_builder.observe(self.kind, record, file_name)
            batch.write(file_name, self._serialize(record))

            if batch.size >= self.threshold_bytes:
                result.objects.append(self._flush(batch, metric_type, object_count))
                object_count += 1
                batch = Batch.create(self.staging_dir)

        if batch.size > 0:
            result.objects.append(self._flush(batch, metric_type, object_count))
        else:
            batch.discard_if_empty()

        if result.record_count == 0:
            logger.info("No series found for metric", metric_type=metric_type)

        return result

    def _serialize(self, record: MetricRecord) -> bytes:
        try:
            return record.serialize()
        except (TypeError, ValueError) as e:
            raise StagingError(
                f"Unable to serialize metric {record.metric_type} into json: {e}"
            ) from e

    def _flush(self, batch: Batch, metric_type: str, object_count: int) -> ArchivedObject:
        object_name = archive_object_name(self.kind, metric_type, object_count)
        return self.archiver.archive(
            batch.directory,
            object_name,
            record_count=len(batch.files),
            staged_bytes=batch.size,
        )
