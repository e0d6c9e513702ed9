"""
Command-line interface for the metrics archiver.

Provides commands for exporting CloudWatch metrics into per-project S3
buckets, importing those archives back to disk, and browsing the accounts
and clusters that can be exported.
"""

from typing import Optional

import click

from .commands.core.version import version
from .commands.export import export as export_cmd
from .commands.import_archives import import_archives as import_cmd
from .commands.list_clusters import list_clusters as list_clusters_cmd
from .commands.list_projects import list_projects as list_projects_cmd
from .config import get_settings
from .logging import configure_logging, get_logger


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option("--log-level", default=None, help="Set logging level (default: INFO)")
@click.option("--log-file", default=None, help="Also write JSON logs to this file")
@click.pass_context
def main(
    ctx: click.Context, debug: bool, log_level: Optional[str], log_file: Optional[str]
) -> None:
    """Metrics Archiver - export CloudWatch metrics to S3 and back."""
    ctx.ensure_object(dict)

    # Settings are built once here and handed to every command
    updates = {"debug": debug or get_settings().debug}
    if log_level:
        updates["log_level"] = log_level
    settings = get_settings().model_copy(update=updates)

    configure_logging(settings, log_file=log_file)
    logger = get_logger("metrics_archiver.cli")

    ctx.obj["logger"] = logger
    ctx.obj["settings"] = settings


main.add_command(version)
main.add_command(list_projects_cmd)
main.add_command(list_clusters_cmd)
main.add_command(export_cmd)
main.add_command(import_cmd)


if __name__ == "__main__":
    main()
