"""
List the container clusters of one account.
"""

import sys
from typing import Optional

import click
from tabulate import tabulate

from ..aws.client import AWSClientManager
from ..aws.inventory import ResourceInventory
from ..errors import MetricsArchiverError
from ..utils.error_handling import ErrorContext, display_error


@click.command(name="list-clusters")
@click.option("--project", required=True, help="AWS account id to list clusters for")
@click.option("--profile", help="AWS profile used to reach the account")
@click.option("--role-name", help="IAM role to assume in the account")
@click.pass_context
def list_clusters(
    ctx: click.Context, project: str, profile: Optional[str], role_name: Optional[str]
) -> None:
    """List EKS clusters in a project."""
    settings = ctx.obj["settings"]

    try:
        manager = AWSClientManager(
            settings,
            profile_name=profile or settings.source_profile,
            role_name=role_name or settings.assume_role_name,
        )
        inventory = ResourceInventory(eks_client=manager.client("eks", project))
        clusters = inventory.list_clusters(project)
    except MetricsArchiverError as e:
        display_error(e, ErrorContext(project=project), show_technical=settings.debug)
        sys.exit(1)

    if not clusters:
        click.echo(f"No clusters found in project {project}")
        return

    click.echo(tabulate([[name] for name in clusters], headers=["Cluster"]))
