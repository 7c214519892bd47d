import logging
import os
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dailyquiz.core.config import settings
from dailyquiz.core.exceptions import ArtifactPublishError
from dailyquiz.repositories.interfaces import ArtifactPublisher

logger = logging.getLogger(__name__)


# ===========================================================
# ✅ S3 + CDN publisher
# ===========================================================


class S3ArtifactPublisher(ArtifactPublisher):
    """Uploads templates to S3; consumers read them through the CDN in front of the bucket"""

    def __init__(
        self,
        s3_client=None,
        bucket: Optional[str] = None,
        prefix: Optional[str] = None,
        cdn_base_url: Optional[str] = None,
    ):
        self.bucket = bucket if bucket is not None else settings.S3_BUCKET
        self.prefix = (prefix if prefix is not None else settings.TEMPLATE_PREFIX).strip("/")
        self.cdn_base_url = (cdn_base_url or settings.CDN_BASE_URL).rstrip("/")

        # Initialize S3 client
        self.s3_client = s3_client
        if self.s3_client is None and settings.AWS_ACCESS_KEY and settings.AWS_SECRET_KEY:
            self.s3_client = boto3.client(
                "s3",
                aws_access_key_id=settings.AWS_ACCESS_KEY,
                aws_secret_access_key=settings.AWS_SECRET_KEY,
                region_name=settings.AWS_REGION,
            )

    def object_key(self, path: str) -> str:
        key = f"{path.strip('/')}.json"
        return f"{self.prefix}/{key}" if self.prefix else key

    def publish(self, path: str, content: bytes) -> str:
        if not self.bucket:
            raise ValueError(
                "S3_BUCKET environment variable is not configured. "
                "Please set S3_BUCKET in your environment variables."
            )
        if not self.s3_client:
            raise ValueError(
                "AWS credentials are not configured. "
                "Please set AWS_ACCESS_KEY and AWS_SECRET_KEY in your environment variables."
            )

        s3_key = self.object_key(path)
        logger.info(f"📤 Uploading template to S3: s3://{self.bucket}/{s3_key}")

        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=s3_key,
                Body=content,
                ContentType="application/json",
                CacheControl="public, max-age=86400",
                Metadata={"service": "daily-quiz-composer"},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"❌ Failed to upload template {s3_key}: {e}")
            raise ArtifactPublishError(f"Failed to upload template to S3: {str(e)}") from e

        location = f"{self.cdn_base_url}/{s3_key}"
        logger.info(f"✅ Template uploaded successfully: {location}")
        return location


# ===========================================================
# ✅ Local filesystem publisher (development)
# ===========================================================


class LocalArtifactPublisher(ArtifactPublisher):
    """Writes templates under a local directory and returns file:// locations"""

    def __init__(self, root_dir: Optional[str] = None, prefix: Optional[str] = None):
        self.root_dir = root_dir or os.path.join(settings.TEMP_DIR, "dailyquiz-templates")
        self.prefix = (prefix if prefix is not None else settings.TEMPLATE_PREFIX).strip("/")

    def publish(self, path: str, content: bytes) -> str:
        relative = os.path.join(self.prefix, f"{path.strip('/')}.json")
        file_path = os.path.abspath(os.path.join(self.root_dir, relative))

        try:
            os.makedirs(os.path.dirname(file_path), exist_ok=True)
            with open(file_path, "wb") as f:
                f.write(content)
        except OSError as e:
            raise ArtifactPublishError(f"Failed to write template to {file_path}: {str(e)}") from e

        logger.info(f"💾 Template written to {file_path}")
        return f"file://{file_path}"


def get_artifact_publisher() -> ArtifactPublisher:
    """S3 when a bucket is configured, otherwise the local directory"""
    if settings.S3_BUCKET:
        return S3ArtifactPublisher()
    logger.warning("⚠️ S3_BUCKET not set, publishing templates to the local filesystem")
    return LocalArtifactPublisher()
