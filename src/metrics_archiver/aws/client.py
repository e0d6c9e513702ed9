"""
AWS client factory with profile, explicit credential and role support.

One manager is built per credential source (the account metrics are read
from, the account that owns the buckets) and handed to the commands. When a
role name is configured the manager assumes that role in each exported
account and caches the resulting session.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    ProfileNotFound,
)

from ..config import Settings
from ..errors import ConfigurationError
from ..logging import get_logger

logger = get_logger("metrics_archiver.aws.client")


class AWSClientManager:
    """Creates boto3 clients for one credential source."""

    def __init__(
        self,
        settings: Settings,
        profile_name: Optional[str] = None,
        role_name: Optional[str] = None,
    ):
        self.settings = settings
        self.profile_name = profile_name or settings.aws_profile
        self.role_name = role_name
        self._base_session: Optional[boto3.Session] = None
        self._role_sessions: Dict[str, Dict[str, Any]] = {}

    def _get_session_kwargs(self) -> Dict[str, Any]:
        """Get session configuration based on settings priority."""
        kwargs: Dict[str, Any] = {"region_name": self.settings.aws_region}

        # Priority: explicit credentials > profile > environment/IAM
        if self.settings.aws_access_key_id and self.settings.aws_secret_access_key:
            kwargs.update(
                {
                    "aws_access_key_id": self.settings.aws_access_key_id,
                    "aws_secret_access_key": self.settings.aws_secret_access_key,
                }
            )
            if self.settings.aws_session_token:
                kwargs["aws_session_token"] = self.settings.aws_session_token
            logger.debug("Using explicit AWS credentials", region=self.settings.aws_region)

        elif self.profile_name:
            kwargs["profile_name"] = self.profile_name
            logger.debug(
                "Using AWS profile", profile=self.profile_name, region=self.settings.aws_region
            )

        else:
            logger.debug("Using default AWS credential chain", region=self.settings.aws_region)

        return kwargs

    def _get_boto_config(self) -> Config:
        return Config(
            retries={"mode": "adaptive", "max_attempts": 5},
            region_name=self.settings.aws_region,
            connect_timeout=10,
            read_timeout=60,
        )

    def get_base_session(self) -> boto3.Session:
        if self._base_session is None:
            try:
                self._base_session = boto3.Session(**self._get_session_kwargs())
            except ProfileNotFound as e:
                raise ConfigurationError(
                    f"AWS profile '{self.profile_name}' not found. "
                    f"Available profiles: {', '.join(boto3.Session().available_profiles) or 'None'}"
                ) from e
        return self._base_session

    def get_session(self, account_id: Optional[str] = None) -> boto3.Session:
        """Session for an account; assumes the configured role when there is one."""
        if not self.role_name or not account_id:
            return self.get_base_session()

        cached = self._role_sessions.get(account_id)
        if cached and not self._is_expired(cached["expiration"]):
            return cached["session"]

        role_arn = f"arn:aws:iam::{account_id}:role/{self.role_name}"
        sts = self.get_base_session().client("sts", config=self._get_boto_config())
        try:
            response = sts.assume_role(
                RoleArn=role_arn,
                RoleSessionName=self.settings.role_session_name,
                DurationSeconds=3600,
            )
        except NoCredentialsError as e:
            raise ConfigurationError(
                "No AWS credentials found to assume role. Configure a profile or "
                "AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY."
            ) from e
        except (ClientError, BotoCoreError) as e:
            raise ConfigurationError(f"Unable to assume role {role_arn}: {e}") from e

        credentials = response["Credentials"]
        session = boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.settings.aws_region,
        )
        self._role_sessions[account_id] = {
            "session": session,
            "expiration": credentials["Expiration"],
        }
        logger.info(
            "Assumed role",
            account_id=account_id,
            role_name=self.role_name,
            expires_at=str(credentials["Expiration"]),
        )
        return session

    def client(self, service_name: str, account_id: Optional[str] = None) -> Any:
        session = self.get_session(account_id)
        try:
            return session.client(service_name, config=self._get_boto_config())
        except NoCredentialsError as e:
            raise ConfigurationError(f"No AWS credentials found for {service_name}") from e

    @staticmethod
    def _is_expired(expiration: datetime) -> bool:
        """True when credentials expire within five minutes."""
        if expiration.tzinfo is None:
            expiration = expiration.replace(tzinfo=timezone.utc)
        return expiration - datetime.now(timezone.utc) <= timedelta(minutes=5)
