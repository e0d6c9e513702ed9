"""
Export command: pull each project's metrics and archive them into S3.

Wires the CloudWatch source, S3 blob store and resource inventory into one
ExportOrchestrator per project.
"""

import sys
from typing import List, Optional

import click
from tabulate import tabulate

from ..aws.client import AWSClientManager
from ..aws.cloudwatch import CloudWatchMetricsSource
from ..aws.inventory import InstanceNameResolver, ResourceInventory
from ..aws.s3 import S3BlobStore, bucket_name_for
from ..config import Settings
from ..errors import InventoryError, MetricsArchiverError
from ..logging import get_logger
from ..pipeline.exporter import ExportOrchestrator, ExportResult
from ..utils.error_handling import ErrorContext, display_error

logger = get_logger("metrics_archiver.commands.export")


def export_project(
    settings: Settings,
    project: str,
    company: str,
    source_manager: AWSClientManager,
    storage_manager: AWSClientManager,
) -> ExportResult:
    """Build the adapters for one project and run its export."""
    ec2 = source_manager.client("ec2", project)
    inventory = ResourceInventory(ec2_client=ec2)
    resolver = InstanceNameResolver(ec2)

    # Running instances resolve in bulk; terminated ones are looked up lazily
    try:
        resolver.prime(inventory.list_running_instances(project))
    except InventoryError as e:
        logger.warning("Unable to prime instance names", project=project, error=str(e))

    metrics_source = CloudWatchMetricsSource(
        source_manager.client("cloudwatch", project), settings, instance_name_resolver=resolver
    )
    blob_store = S3BlobStore(
        storage_manager.client("s3"),
        bucket_name_for(settings.bucket_prefix, company, project),
        settings,
    )
    orchestrator = ExportOrchestrator(settings, metrics_source, blob_store, inventory=inventory)
    return orchestrator.run(project)


@click.command(name="export")
@click.option(
    "--projects",
    required=True,
    help="Comma-separated list of AWS account ids to export",
)
@click.option("--company", help="Company name used in bucket names")
@click.option("--source-profile", help="AWS profile used to read metrics")
@click.option("--storage-profile", help="AWS profile that owns the destination buckets")
@click.option("--role-name", help="IAM role to assume in each exported account")
@click.option(
    "--threshold-bytes",
    type=click.IntRange(min=1),
    help="Flush a batch once its staged size reaches this many bytes",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Report a failed project and carry on with the next one",
)
@click.pass_context
def export(
    ctx: click.Context,
    projects: str,
    company: Optional[str],
    source_profile: Optional[str],
    storage_profile: Optional[str],
    role_name: Optional[str],
    threshold_bytes: Optional[int],
    continue_on_error: bool,
) -> None:
    """Export compute and container metrics of each project to S3.

    Each project gets its own bucket holding the metric archives, the
    `index` object and a `runningInstances` snapshot.

    Examples:
        # Export two accounts with the default profile
        metrics-archiver export --projects 111111111111,222222222222

        # Read through an assumed role, write with another profile
        metrics-archiver export --projects 111111111111 --role-name MetricsReader \\
            --storage-profile archive
    """
    settings = ctx.obj["settings"]
    if threshold_bytes:
        settings = settings.model_copy(update={"batch_threshold_bytes": threshold_bytes})

    project_list = [p.strip() for p in projects.split(",") if p.strip()]
    if not project_list:
        raise click.BadParameter("at least one project is required", param_hint="--projects")
    company = company or settings.company

    source_manager = AWSClientManager(
        settings,
        profile_name=source_profile or settings.source_profile,
        role_name=role_name or settings.assume_role_name,
    )
    storage_manager = AWSClientManager(
        settings, profile_name=storage_profile or settings.storage_profile
    )

    results: List[ExportResult] = []
    failed: List[str] = []
    for project in project_list:
        click.echo(f"Exporting project {project}...")
        try:
            result = export_project(settings, project, company, source_manager, storage_manager)
        except MetricsArchiverError as e:
            display_error(
                e,
                ErrorContext(
                    project=project,
                    bucket=bucket_name_for(settings.bucket_prefix, company, project),
                    stage="export",
                ),
                show_technical=settings.debug,
            )
            if not continue_on_error:
                sys.exit(1)
            failed.append(project)
            continue

        results.append(result)
        if result.inventory_error:
            click.echo(
                f"Warning: running instances snapshot not stored: {result.inventory_error}",
                err=True,
            )
        for node in result.skipped_nodes:
            click.echo(f"Warning: node {node} does not belong to any cluster", err=True)

    if results:
        rows = [
            [r.project, r.bucket, r.record_count, len(r.objects), len(r.skipped_nodes)]
            for r in results
        ]
        click.echo()
        click.echo(
            tabulate(rows, headers=["Project", "Bucket", "Series", "Objects", "Skipped nodes"])
        )

    if failed:
        click.echo(f"\nFailed projects: {', '.join(failed)}", err=True)
        sys.exit(1)
