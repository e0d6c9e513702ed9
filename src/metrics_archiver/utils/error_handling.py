"""
Error categorization and recovery guidance for CLI output.

Maps pipeline exceptions (and anything else that escapes a command) to a
category, a short title and suggested next steps.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import click
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..errors import (
    ArchiveError,
    ArchiveImportError,
    BlobStoreError,
    CleanupError,
    ConfigurationError,
    ConsistencyError,
    InventoryError,
    SourceError,
    StagingError,
)


class ErrorCategory(Enum):
    """Categories of errors for consistent handling."""

    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    API_QUOTA = "api_quota"
    PERMISSION = "permission"
    CONSISTENCY = "consistency"
    LOCAL_STORAGE = "local_storage"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Where the error happened."""

    project: Optional[str] = None
    bucket: Optional[str] = None
    stage: Optional[str] = None


@dataclass
class RecoveryAction:
    """Suggested recovery action for an error."""

    action: str
    description: str
    command: Optional[str] = None
    priority: int = 1  # 1 = high, 2 = medium, 3 = low

    def format_for_display(self) -> str:
        parts = [f"- {self.action}"]
        if self.description:
            parts.append(f"  {self.description}")
        if self.command:
            parts.append(f"  Command: {self.command}")
        return "\n".join(parts)


@dataclass
class ErrorInfo:
    """Complete error information with recovery guidance."""

    category: ErrorCategory
    title: str
    message: str
    technical_details: str
    context: ErrorContext
    recovery_actions: List[RecoveryAction] = field(default_factory=list)

    def format_for_display(self, show_technical: bool = False) -> str:
        lines = [f"Error: {self.title}"]
        if self.message:
            lines.append(f"  {self.message}")
        if self.context.project:
            lines.append(f"  Project: {self.context.project}")
        if self.context.bucket:
            lines.append(f"  Bucket: {self.context.bucket}")
        if self.context.stage:
            lines.append(f"  Stage: {self.context.stage}")
        if show_technical and self.technical_details:
            lines.append(f"  Technical: {self.technical_details}")
        if self.recovery_actions:
            lines.append("")
            lines.append("Suggested actions:")
            for action in sorted(self.recovery_actions, key=lambda x: x.priority):
                lines.append(action.format_for_display())
        return "\n".join(lines)


_THROTTLING_CODES = {"Throttling", "ThrottlingException", "RequestLimitExceeded", "SlowDown"}
_PERMISSION_CODES = {"AccessDenied", "AccessDeniedException", "UnauthorizedOperation"}
_AUTH_CODES = {"ExpiredToken", "InvalidClientTokenId", "SignatureDoesNotMatch"}


class ErrorHandler:
    """Categorizes errors and attaches recovery guidance."""

    def __init__(self):
        self._recovery_actions = self._build_recovery_actions()

    def _build_recovery_actions(self) -> Dict[ErrorCategory, List[RecoveryAction]]:
        return {
            ErrorCategory.CONFIGURATION: [
                RecoveryAction(
                    "Check credentials and profiles",
                    "Verify the profiles passed to the command exist in ~/.aws/config",
                    "aws configure list-profiles",
                    priority=1,
                ),
                RecoveryAction(
                    "Check environment variables",
                    "Settings can also come from the environment or a .env file",
                    priority=2,
                ),
            ],
            ErrorCategory.AUTHENTICATION: [
                RecoveryAction(
                    "Refresh credentials",
                    "If using temporary credentials, refresh them",
                    "aws sts get-caller-identity",
                    priority=1,
                ),
            ],
            ErrorCategory.NETWORK: [
                RecoveryAction(
                    "Retry the export",
                    "Network and service errors are usually transient",
                    priority=1,
                ),
                RecoveryAction(
                    "Check firewall/proxy",
                    "Ensure AWS endpoints are accessible through your network",
                    priority=2,
                ),
            ],
            ErrorCategory.API_QUOTA: [
                RecoveryAction(
                    "Wait and retry",
                    "The API is throttling requests; try again later",
                    priority=1,
                ),
            ],
            ErrorCategory.PERMISSION: [
                RecoveryAction(
                    "Check IAM permissions",
                    "The role needs cloudwatch:ListMetrics, cloudwatch:GetMetricData, "
                    "ec2:DescribeInstances and s3 bucket/object access",
                    priority=1,
                ),
            ],
            ErrorCategory.CONSISTENCY: [
                RecoveryAction(
                    "Inspect the metric labels",
                    "A series is missing a label the index needs (instance_id, "
                    "instance_name or cluster_name)",
                    priority=1,
                ),
            ],
            ErrorCategory.LOCAL_STORAGE: [
                RecoveryAction(
                    "Check disk space",
                    "Staged batches can reach the configured threshold in size",
                    "df -h",
                    priority=1,
                ),
                RecoveryAction(
                    "Clean up staging leftovers",
                    "Intermediates are kept after a failure for diagnosis",
                    priority=2,
                ),
            ],
        }

    def categorize_error(self, error: Exception) -> ErrorCategory:
        if isinstance(error, ConfigurationError) or isinstance(error, NoCredentialsError):
            return ErrorCategory.CONFIGURATION
        if isinstance(error, ConsistencyError):
            return ErrorCategory.CONSISTENCY
        if isinstance(error, (StagingError, ArchiveError, CleanupError, OSError)):
            return ErrorCategory.LOCAL_STORAGE

        cause = error.__cause__ if error.__cause__ is not None else error
        if isinstance(cause, ClientError):
            code = cause.response.get("Error", {}).get("Code", "")
            if code in _THROTTLING_CODES:
                return ErrorCategory.API_QUOTA
            if code in _PERMISSION_CODES:
                return ErrorCategory.PERMISSION
            if code in _AUTH_CODES:
                return ErrorCategory.AUTHENTICATION
            return ErrorCategory.NETWORK
        if isinstance(cause, BotoCoreError):
            return ErrorCategory.NETWORK
        if isinstance(error, (SourceError, BlobStoreError, InventoryError, ArchiveImportError)):
            return ErrorCategory.NETWORK
        return ErrorCategory.UNKNOWN

    def create_error_info(
        self, error: Exception, context: Optional[ErrorContext] = None
    ) -> ErrorInfo:
        category = self.categorize_error(error)
        return ErrorInfo(
            category=category,
            title=f"{category.value.replace('_', ' ').title()} Error",
            message=str(error),
            technical_details=f"{type(error).__name__}: {error}",
            context=context or ErrorContext(),
            recovery_actions=list(self._recovery_actions.get(category, [])),
        )


def display_error(
    error: Exception, context: Optional[ErrorContext] = None, show_technical: bool = False
) -> ErrorInfo:
    """Print a categorized error with recovery hints to stderr."""
    info = ErrorHandler().create_error_info(error, context)
    click.echo(info.format_for_display(show_technical=show_technical), err=True)
    return info
