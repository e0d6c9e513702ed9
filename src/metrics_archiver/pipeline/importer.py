"""
Download and unpack every archive object of an export bucket.
"""

import os
import tarfile
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import Settings
from ..core.interfaces import ArchiveCodec, BlobStore
from ..errors import ArchiveImportError
from ..logging import get_logger
from ..utils.archive import TarGzCodec

logger = get_logger("metrics_archiver.pipeline.importer")


@dataclass
class ImportResult:
    bucket: str
    target_dir: str
    objects: List[str] = field(default_factory=list)
    extracted_files: List[str] = field(default_factory=list)


class ImportOrchestrator:
    """Reverses the archive step of an export. Object order is not significant."""

    def __init__(
        self,
        settings: Settings,
        blob_store: BlobStore,
        codec: Optional[ArchiveCodec] = None,
    ):
        self.settings = settings
        self.blob_store = blob_store
        self.codec = codec or TarGzCodec()

    def run(self, target_dir: str) -> ImportResult:
        os.makedirs(target_dir, exist_ok=True)
        result = ImportResult(bucket=self.blob_store.bucket_name, target_dir=target_dir)
        reserved = set(self.settings.reserved_object_names)

        found_any = False
        for blob in self.blob_store.list_objects():
            found_any = True
            if blob.name in reserved:
                logger.debug("Skipping non-archive object", object_name=blob.name)
                continue
            result.extracted_files.extend(self.import_object(blob.name, target_dir))
            result.objects.append(blob.name)

        if not found_any:
            raise ArchiveImportError(f"No objects found in bucket {self.blob_store.bucket_name}")

        logger.info(
            "Import complete",
            bucket=result.bucket,
            objects=len(result.objects),
            files=len(result.extracted_files),
        )
        return result

    def import_object(self, object_name: str, target_dir: str) -> List[str]:
        archive_path = os.path.join(target_dir, f"{object_name}.tar.gz")
        logger.info("Downloading metric archive", object_name=object_name)

        try:
            with open(archive_path, "wb") as archive_file:
                for chunk in self.blob_store.get_object(object_name):
                    archive_file.write(chunk)
        except OSError as e:
            raise ArchiveImportError(f"Unable to write staging to file {archive_path}: {e}") from e

        try:
            extracted = self.codec.decompress_and_extract(archive_path, target_dir)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveImportError(f"Unable to extract archive {object_name}: {e}") from e

        try:
            os.remove(archive_path)
        except OSError as e:
            raise ArchiveImportError(f"Unable to remove archive file {archive_path}: {e}") from e

        return extracted
