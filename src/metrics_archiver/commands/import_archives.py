"""
Import command: download every metric archive of a bucket and unpack it.
"""

import sys
from typing import Optional

import click

from ..aws.client import AWSClientManager
from ..aws.s3 import S3BlobStore
from ..errors import MetricsArchiverError
from ..pipeline.importer import ImportOrchestrator
from ..utils.error_handling import ErrorContext, display_error


@click.command(name="import")
@click.option("--bucket", required=True, help="Export bucket to read archives from")
@click.option(
    "--target-dir",
    required=True,
    type=click.Path(file_okay=False),
    help="Directory the staged metric files are extracted into",
)
@click.option("--storage-profile", help="AWS profile that owns the bucket")
@click.pass_context
def import_archives(
    ctx: click.Context, bucket: str, target_dir: str, storage_profile: Optional[str]
) -> None:
    """Download and extract all metric archives from a bucket.

    Examples:
        metrics-archiver import --bucket cloudwatch-acme-123456789012 --target-dir ./metrics
    """
    settings = ctx.obj["settings"]

    try:
        manager = AWSClientManager(
            settings, profile_name=storage_profile or settings.storage_profile
        )
        store = S3BlobStore(manager.client("s3"), bucket, settings)
        result = ImportOrchestrator(settings, store).run(target_dir)
    except MetricsArchiverError as e:
        display_error(
            e, ErrorContext(bucket=bucket, stage="import"), show_technical=settings.debug
        )
        sys.exit(1)

    click.echo(
        f"Imported {len(result.objects)} archives "
        f"({len(result.extracted_files)} files) into {result.target_dir}"
    )
