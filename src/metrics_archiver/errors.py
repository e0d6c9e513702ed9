"""
Exception hierarchy for export and import operations.

Every failure the pipeline raises derives from MetricsArchiverError so the
CLI can render it with recovery guidance. AWS adapters translate botocore
errors into these types at the boundary.
"""


class MetricsArchiverError(Exception):
    """Base class for all metrics archiver errors."""


class ConfigurationError(MetricsArchiverError):
    """Missing or invalid credentials, profiles or settings."""


class SourceError(MetricsArchiverError):
    """The metrics source failed while listing descriptors or reading series."""


class ConsistencyError(MetricsArchiverError):
    """Upstream data is malformed: a required label is missing or a node
    claims a cluster the indexer never saw container metrics for."""


class StagingError(MetricsArchiverError):
    """A batch directory or staged record file could not be written."""


class ArchiveError(MetricsArchiverError):
    """Compressing a batch directory failed or produced an empty payload."""


class BlobStoreError(MetricsArchiverError):
    """A bucket or object operation against the blob store failed."""


class CleanupError(MetricsArchiverError):
    """Local intermediates could not be removed after a committed upload."""


class InventoryError(MetricsArchiverError):
    """Listing projects, clusters or running instances failed."""


class ArchiveImportError(MetricsArchiverError):
    """Downloading or extracting an archive object failed."""
