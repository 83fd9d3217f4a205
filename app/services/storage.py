# app/services/storage.py
from functools import lru_cache
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings, get_settings
from app.core.exceptions import StorageError
from app.core.logger import logger


class ObjectStorage:
    """Thin wrapper around one S3 bucket: write bytes, build public links."""

    def __init__(self, client, bucket_name: str, public_base_url: Optional[str] = None,
                 endpoint_url: Optional[str] = None, region: str = "us-east-1"):
        self.client = client
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url
        self.endpoint_url = endpoint_url
        self.region = region

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        client = boto3.client(
            "s3",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
            endpoint_url=settings.aws_s3_endpoint_url,
        )
        return cls(
            client,
            bucket_name=settings.aws_s3_bucket_name,
            public_base_url=settings.public_base_url,
            endpoint_url=settings.aws_s3_endpoint_url,
            region=settings.aws_region,
        )

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        logger.info(f"[storage] putting object {key} ({len(data)} bytes)")
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"[storage] put_object failed for {key}: {exc}")
            raise StorageError(str(exc)) from exc

    def get_public_url(self, key: str) -> str:
        path = quote(key)
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint_url:
            # path-style for S3-compatible endpoints
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{path}"
        return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{path}"


@lru_cache
def get_storage() -> ObjectStorage:
    return ObjectStorage.from_settings(get_settings())
