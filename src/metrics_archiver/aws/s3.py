"""
S3-backed blob store bound to a single bucket.
"""

import io
from typing import Any, Iterator

from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..core.interfaces import BlobObject
from ..errors import BlobStoreError
from ..logging import get_logger

logger = get_logger("metrics_archiver.aws.s3")


def bucket_name_for(prefix: str, company: str, project: str) -> str:
    """`{prefix}-{company}-{project}`, lower-cased as S3 requires."""
    return f"{prefix}-{company}-{project}".lower()


class S3BlobStore:
    """
    Bucket-scoped object operations.

    Uploads go through the managed transfer, which commits the object only
    when the whole payload (or every multipart part) has been written and
    aborts a failed multipart upload, so readers never see partial objects.
    """

    def __init__(self, s3_client: Any, bucket_name: str, settings: Settings):
        self.client = s3_client
        self.bucket_name = bucket_name
        self.region = settings.aws_region
        self.chunk_size = settings.download_chunk_bytes
        self.transfer_config = TransferConfig(
            multipart_threshold=settings.multipart_threshold_bytes
        )

    def create_bucket(self) -> bool:
        """Create the bucket; returns False when the caller already owns it."""
        kwargs = {"Bucket": self.bucket_name}
        if self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}

        logger.info("Creating bucket", bucket=self.bucket_name, region=self.region)
        try:
            self.client.create_bucket(**kwargs)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "BucketAlreadyOwnedByYou":
                logger.info(
                    "Skipping creating bucket as bucket already exists",
                    bucket=self.bucket_name,
                )
                return False
            raise BlobStoreError(f"Unable to create new bucket {self.bucket_name}: {e}") from e
        except BotoCoreError as e:
            raise BlobStoreError(f"Unable to create new bucket {self.bucket_name}: {e}") from e
        return True

    def put_object(self, name: str, data: bytes) -> None:
        try:
            with io.BytesIO(data) as body:
                self.client.upload_fileobj(
                    body, self.bucket_name, name, Config=self.transfer_config
                )
        except (ClientError, BotoCoreError, S3UploadFailedError) as e:
            raise BlobStoreError(
                f"Unable to write object {name} to bucket {self.bucket_name}: {e}"
            ) from e

    def get_object(self, name: str) -> Iterator[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=name)
            body = response["Body"]
            try:
                for chunk in body.iter_chunks(chunk_size=self.chunk_size):
                    yield chunk
            finally:
                body.close()
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(
                f"Unable to read object {name} from bucket {self.bucket_name}: {e}"
            ) from e

    def list_objects(self) -> Iterator[BlobObject]:
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket_name):
                for obj in page.get("Contents", []):
                    yield BlobObject(name=obj["Key"], size=obj.get("Size", 0))
        except (ClientError, BotoCoreError) as e:
            raise BlobStoreError(f"Unable to list objects in {self.bucket_name}: {e}") from e
