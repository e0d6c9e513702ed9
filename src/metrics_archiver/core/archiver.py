"""
Compress a staged batch directory and upload it as one blob store object.
"""

import os
import shutil
import tarfile
from dataclasses import dataclass

from ..errors import ArchiveError, CleanupError
from ..logging import get_logger
from .interfaces import ArchiveCodec, BlobStore

logger = get_logger("metrics_archiver.core.archiver")


@dataclass(frozen=True)
class ArchivedObject:
    """An archive object committed to the blob store."""

    object_name: str
    record_count: int
    staged_bytes: int
    compressed_bytes: int


class Archiver:
    """
    Turns a batch directory into exactly one committed object.

    The sequence is compress -> read -> upload -> cleanup. Local files are
    removed only after the upload has been committed; any earlier failure
    leaves them in place for diagnosis.
    """

    def __init__(self, blob_store: BlobStore, codec: ArchiveCodec, work_dir: str):
        self.blob_store = blob_store
        self.codec = codec
        self.work_dir = work_dir

    def archive(
        self,
        directory: str,
        object_name: str,
        record_count: int = 0,
        staged_bytes: int = 0,
    ) -> ArchivedObject:
        archive_path = os.path.join(self.work_dir, f"{object_name}.tar.gz")
        logger.debug(
            "Compressing batch",
            object_name=object_name,
            directory=directory,
            archive_path=archive_path,
        )

        try:
            self.codec.compress_directory(directory, archive_path)
            with open(archive_path, "rb") as archive_file:
                payload = archive_file.read()
        except (OSError, ValueError, tarfile.TarError) as e:
            raise ArchiveError(f"Unable to compress staged metrics in {directory}: {e}") from e

        if not payload:
            raise ArchiveError(f"Zero bytes found in archive file {archive_path}")

        logger.info(
            "Writing object to storage",
            object_name=object_name,
            bucket=self.blob_store.bucket_name,
            records=record_count,
            staged_bytes=staged_bytes,
            compressed_bytes=len(payload),
        )
        self.blob_store.put_object(object_name, payload)

        self._cleanup(archive_path, directory)

        return ArchivedObject(
            object_name=object_name,
            record_count=record_count,
            staged_bytes=staged_bytes,
            compressed_bytes=len(payload),
        )

    def _cleanup(self, archive_path: str, directory: str) -> None:
        try:
            os.remove(archive_path)
        except OSError as e:
            raise CleanupError(f"Unable to delete archive file after upload: {e}") from e

        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise CleanupError(f"Unable to delete staging dir {directory}: {e}") from e
