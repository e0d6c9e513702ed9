"""
Configuration management for the metrics archiver.

Handles environment variables, AWS credentials, and pipeline settings
using Pydantic Settings for type safety and validation.

A single Settings instance is built by the CLI entry point and handed to
every component explicitly; nothing below the CLI reads settings on its own.
"""

import tempfile
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application settings
    app_name: str = Field(default="Metrics Archiver", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(
        default=None, description="Optional path for JSON structured log output"
    )

    # AWS settings
    aws_region: str = Field(default="us-east-1", description="Default AWS region")
    aws_profile: Optional[str] = Field(
        default=None, description="AWS profile name from ~/.aws/credentials"
    )
    aws_access_key_id: Optional[str] = Field(
        default=None, description="AWS Access Key ID (overrides profile)"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, description="AWS Secret Access Key (overrides profile)"
    )
    aws_session_token: Optional[str] = Field(
        default=None, description="AWS Session Token (overrides profile)"
    )

    # Cross-account access for exported projects
    source_profile: Optional[str] = Field(
        default=None, description="Profile used to read metrics and inventory"
    )
    storage_profile: Optional[str] = Field(
        default=None, description="Profile that owns the destination buckets"
    )
    assume_role_name: Optional[str] = Field(
        default=None,
        description="IAM role to assume in each exported account (None uses the profile directly)",
    )
    role_session_name: str = Field(
        default="metrics-archiver", description="Session name used for AssumeRole"
    )

    # Staging and batching
    staging_dir: str = Field(
        default_factory=tempfile.gettempdir,
        description="Directory where batch directories and archives are staged",
    )
    batch_threshold_bytes: int = Field(
        default=500 * 1024 * 1024,
        description="Flush a batch once its staged size reaches this many bytes",
    )

    # Metric query settings
    retention_days: int = Field(
        default=455,
        description="Query window length; CloudWatch keeps hourly data for 455 days",
    )
    metric_period_seconds: int = Field(
        default=3600, description="CloudWatch aggregation period"
    )
    metric_statistic: str = Field(
        default="Average", description="CloudWatch statistic to export"
    )
    compute_metric_pattern: str = Field(
        default="AWS/EC2/", description="Substring identifying compute metric types"
    )
    container_metric_pattern: str = Field(
        default="ContainerInsights/",
        description="Substring identifying container metric types",
    )
    compute_dimensions: List[str] = Field(
        default_factory=lambda: ["InstanceId"],
        description="Dimensions a compute series must carry",
    )
    container_dimensions: List[str] = Field(
        default_factory=lambda: ["ClusterName", "InstanceId"],
        description="Dimensions a container series must carry",
    )

    # Destination naming
    bucket_prefix: str = Field(default="cloudwatch", description="Bucket name prefix")
    company: str = Field(default="telemetry", description="Company name used in bucket names")
    index_object_name: str = Field(default="index", description="Name of the index object")
    inventory_object_name: str = Field(
        default="runningInstances", description="Name of the inventory snapshot object"
    )

    # Transfer settings
    download_chunk_bytes: int = Field(
        default=5 * 1024 * 1024, description="Chunk size for streaming downloads"
    )
    multipart_threshold_bytes: int = Field(
        default=64 * 1024 * 1024, description="Switch to multipart uploads above this size"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    @field_validator("batch_threshold_bytes", "retention_days", "download_chunk_bytes")
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @property
    def reserved_object_names(self) -> List[str]:
        """Objects in an export bucket that are not metric archives."""
        return [self.index_object_name, self.inventory_object_name]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the settings instance for the CLI entry point."""
    return Settings()
