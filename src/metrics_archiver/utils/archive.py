"""
Gzipped tar archives for staged metric batches.
"""

import os
import tarfile
from typing import List

from ..logging import get_logger

logger = get_logger("metrics_archiver.utils.archive")


class TarGzCodec:
    """Packs a batch directory into a .tar.gz and unpacks it again."""

    def __init__(self, compression_level: int = 6):
        self.compression_level = compression_level

    def compress_directory(self, source_dir: str, archive_path: str) -> None:
        # Normalize and make absolute to avoid traversal
        source_dir = os.path.abspath(os.path.normpath(source_dir))
        archive_path = os.path.abspath(os.path.normpath(archive_path))
        if not os.path.isdir(source_dir):
            raise NotADirectoryError(f"Not a directory: {source_dir}")

        # Guard to ensure we don't write the archive inside the tree being archived
        if os.path.commonpath([source_dir, archive_path]) == source_dir:
            raise ValueError("archive_path must not be inside source_dir")

        file_count = 0
        with tarfile.open(
            archive_path, "w:gz", compresslevel=self.compression_level
        ) as tar:
            for root, dirs, files in os.walk(source_dir):
                dirs.sort()
                for file in sorted(files):
                    file_path = os.path.join(root, file)
                    if os.path.islink(file_path):
                        continue
                    tar.add(file_path, arcname=os.path.relpath(file_path, source_dir))
                    file_count += 1

        logger.debug(
            "Compressed directory",
            source_dir=source_dir,
            archive_path=archive_path,
            files=file_count,
        )

    def decompress_and_extract(self, archive_path: str, target_dir: str) -> List[str]:
        """Extract regular files and directories into target_dir.

        Returns the extracted file paths. Members that would land outside
        target_dir, links and special files are rejected.
        """
        target_dir = os.path.abspath(target_dir)
        extracted = []
        with tarfile.open(archive_path, "r:*") as tar:
            members = tar.getmembers()
            for member in members:
                destination = os.path.abspath(os.path.join(target_dir, member.name))
                if os.path.commonpath([target_dir, destination]) != target_dir:
                    raise tarfile.TarError(f"Archive member escapes target: {member.name}")
                if not (member.isfile() or member.isdir()):
                    raise tarfile.TarError(f"Unsupported archive member: {member.name}")
                if member.isfile():
                    extracted.append(destination)
            tar.extractall(target_dir, members=members)

        logger.debug("Extracted archive", archive_path=archive_path, files=len(extracted))
        return extracted
