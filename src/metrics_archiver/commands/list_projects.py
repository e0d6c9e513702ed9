"""
List the AWS accounts whose metrics can be exported.
"""

import sys
from typing import Optional

import click
from tabulate import tabulate

from ..aws.client import AWSClientManager
from ..aws.inventory import ResourceInventory
from ..errors import MetricsArchiverError
from ..utils.error_handling import display_error


@click.command(name="list-projects")
@click.option("--profile", help="AWS profile with access to the Organizations API")
@click.pass_context
def list_projects(ctx: click.Context, profile: Optional[str]) -> None:
    """List active accounts in the AWS Organization."""
    settings = ctx.obj["settings"]

    try:
        manager = AWSClientManager(settings, profile_name=profile or settings.source_profile)
        inventory = ResourceInventory(organizations_client=manager.client("organizations"))
        projects = inventory.list_projects()
    except MetricsArchiverError as e:
        display_error(e, show_technical=settings.debug)
        sys.exit(1)

    if not projects:
        click.echo("No active projects found")
        return

    rows = [[p.project_id, p.name, p.status, p.email] for p in projects]
    click.echo(tabulate(rows, headers=["Project ID", "Name", "Status", "Email"]))
    click.echo(f"\nTotal: {len(projects)} projects")
