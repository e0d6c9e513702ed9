"""
Resource inventory: accounts, EKS clusters and running EC2 instances.

Informational only; nothing here feeds the batching pipeline except the
instance name lookup used to label compute series.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ..errors import InventoryError
from ..logging import get_logger

logger = get_logger("metrics_archiver.aws.inventory")


@dataclass
class Project:
    """An AWS account that metrics can be exported from."""

    project_id: str
    name: str
    status: str
    email: str = ""


class ResourceInventory:
    """Wraps the Organizations, EC2 and EKS listing calls."""

    def __init__(
        self,
        organizations_client: Any = None,
        ec2_client: Any = None,
        eks_client: Any = None,
    ):
        self.organizations = organizations_client
        self.ec2 = ec2_client
        self.eks = eks_client

    def list_projects(self) -> List[Project]:
        """List all active accounts in the AWS Organization."""
        projects = []
        try:
            paginator = self.organizations.get_paginator("list_accounts")
            for page in paginator.paginate():
                for account in page.get("Accounts", []):
                    if account["Status"] != "ACTIVE":
                        logger.debug(
                            "Skipping non-active account",
                            account_id=account["Id"],
                            status=account["Status"],
                        )
                        continue
                    projects.append(
                        Project(
                            project_id=account["Id"],
                            name=account["Name"],
                            status=account["Status"],
                            email=account.get("Email", ""),
                        )
                    )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "AccessDeniedException":
                raise InventoryError(
                    "Access denied to Organizations API. "
                    "Ensure the role has organizations:ListAccounts permission."
                ) from e
            raise InventoryError(f"Unable to list projects: {e}") from e
        except BotoCoreError as e:
            raise InventoryError(f"Unable to list projects: {e}") from e

        logger.info("Project discovery complete", total_projects=len(projects))
        return projects

    def list_clusters(self, project: str) -> List[str]:
        clusters = []
        try:
            paginator = self.eks.get_paginator("list_clusters")
            for page in paginator.paginate():
                clusters.extend(page.get("clusters", []))
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(f"Failed to list container clusters for {project}: {e}") from e
        return clusters

    def list_running_instances(self, project: str) -> List[Dict[str, Any]]:
        instances = []
        try:
            paginator = self.ec2.get_paginator("describe_instances")
            for page in paginator.paginate(
                Filters=[{"Name": "instance-state-name", "Values": ["running"]}]
            ):
                for reservation in page.get("Reservations", []):
                    instances.extend(reservation.get("Instances", []))
        except (ClientError, BotoCoreError) as e:
            raise InventoryError(f"Unable to list running instances for {project}: {e}") from e

        logger.info("Listed running instances", project=project, instances=len(instances))
        return instances


def instance_display_name(instance: Dict[str, Any]) -> str:
    """Name tag, falling back to the private DNS name and then the id."""
    for tag in instance.get("Tags", []):
        if tag.get("Key") == "Name" and tag.get("Value"):
            return tag["Value"]
    return instance.get("PrivateDnsName") or instance["InstanceId"]


class InstanceNameResolver:
    """Caching instance id -> display name lookup.

    Instances that no longer exist resolve to their own id so that series
    for terminated instances still carry a name.
    """

    def __init__(self, ec2_client: Any):
        self.ec2 = ec2_client
        self._names: Dict[str, str] = {}

    def prime(self, instances: List[Dict[str, Any]]) -> None:
        for instance in instances:
            self._names[instance["InstanceId"]] = instance_display_name(instance)

    def __call__(self, instance_id: str) -> str:
        name = self._names.get(instance_id)
        if name is None:
            name = self._lookup(instance_id) or instance_id
            self._names[instance_id] = name
        return name

    def _lookup(self, instance_id: str) -> Optional[str]:
        try:
            response = self.ec2.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code in ("InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"):
                logger.debug("Instance not found for name lookup", instance_id=instance_id)
                return None
            raise InventoryError(f"Unable to describe instance {instance_id}: {e}") from e
        except BotoCoreError as e:
            raise InventoryError(f"Unable to describe instance {instance_id}: {e}") from e

        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                return instance_display_name(instance)
        return None
