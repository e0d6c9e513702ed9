"""
Property-based tests for batch staging.

Uses Hypothesis to check the flush boundaries and that every record ends
up in exactly one archive object for arbitrary record sizes and thresholds.
"""

import tempfile

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import FakeBlobStore
from metrics_archiver.core.archiver import Archiver
from metrics_archiver.core.index import IndexBuilder
from metrics_archiver.core.records import INSTANCE_ID_LABEL, MetricKind, MetricRecord
from metrics_archiver.core.staging import BatchStager
from metrics_archiver.utils.archive import TarGzCodec

METRIC = "AWS/EC2/CPUUtilization"


def padded(n, padding):
    return MetricRecord(
        metric_type=METRIC,
        resource_labels={INSTANCE_ID_LABEL: f"i-{n}"},
        metric_labels={"instance_name": "n" * padding},
    )


def stage(records, threshold):
    with tempfile.TemporaryDirectory() as staging_dir:
        store = FakeBlobStore()
        stager = BatchStager(
            MetricKind.COMPUTE,
            Archiver(store, TarGzCodec(), staging_dir),
            IndexBuilder(),
            staging_dir=staging_dir,
            threshold_bytes=threshold,
        )
        return stager.stage_metric(METRIC, iter(records)), store


@settings(max_examples=30, deadline=None)
@given(
    paddings=st.lists(st.integers(min_value=0, max_value=3000), max_size=20),
    threshold=st.integers(min_value=1, max_value=8000),
)
def test_every_record_lands_in_exactly_one_object(paddings, threshold):
    """
    Property: record counts of all flushed objects add up to the number of
    records read, and one object is stored per flush.
    """
    records = [padded(n, p) for n, p in enumerate(paddings)]

    result, store = stage(records, threshold)

    assert result.record_count == len(records)
    assert sum(obj.record_count for obj in result.objects) == len(records)
    assert sorted(store.objects) == sorted(obj.object_name for obj in result.objects)
    assert sum(obj.staged_bytes for obj in result.objects) == sum(
        len(r.serialize()) for r in records
    )


@settings(max_examples=30, deadline=None)
@given(
    paddings=st.lists(st.integers(min_value=0, max_value=3000), min_size=1, max_size=20),
    threshold=st.integers(min_value=1, max_value=8000),
)
def test_flushes_happen_exactly_at_threshold(paddings, threshold):
    """
    Property: every object but the last reached the threshold, and dropping
    its final record would have left it below the threshold.
    """
    records = [padded(n, p) for n, p in enumerate(paddings)]
    sizes = [len(r.serialize()) for r in records]

    result, _ = stage(records, threshold)

    consumed = 0
    for position, obj in enumerate(result.objects):
        batch_sizes = sizes[consumed : consumed + obj.record_count]
        consumed += obj.record_count
        assert sum(batch_sizes) == obj.staged_bytes
        assert obj.staged_bytes - batch_sizes[-1] < threshold
        if position < len(result.objects) - 1:
            assert obj.staged_bytes >= threshold
    assert [obj.object_name for obj in result.objects] == [
        f"compute-AWS_EC2_CPUUtilization{n}" for n in range(1, len(result.objects) + 1)
    ]
