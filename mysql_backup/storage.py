"""S3 object storage used to keep the compressed dumps."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import DEFAULT_CHUNK_SIZE, Settings

LOGGER = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageError(Exception):
    """Raised when talking to object storage fails."""


@dataclass
class S3Storage:
    """Thin wrapper over a boto3 S3 client bound to a single bucket."""

    client: object
    bucket: str

    @classmethod
    def connect(cls, settings: Settings) -> "S3Storage":
        try:
            session = boto3.session.Session(
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
                region_name=settings.aws_region,
            )
            client = session.client("s3", endpoint_url=settings.s3_endpoint_url)
        except BotoCoreError as exc:
            raise StorageError(f"Could not connect to S3: {exc}") from exc
        LOGGER.debug("Connected to S3 bucket '%s'.", settings.bucket)
        return cls(client=client, bucket=settings.bucket)

    def store(self, key: str, file_path: Path) -> None:
        file_path = Path(file_path)
        if not file_path.exists():
            raise StorageError(f"File to upload '{file_path}' not found.")
        try:
            self.client.upload_file(str(file_path), self.bucket, key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload of '{file_path}' to s3://{self.bucket}/{key} failed: {exc}") from exc
        LOGGER.info("Uploaded '%s' to s3://%s/%s.", file_path, self.bucket, key)

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"Could not check s3://{self.bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Could not check s3://{self.bucket}/{key}: {exc}") from exc
        return True

    def list_keys(self, prefix: str = "") -> List[str]:
        keys: List[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not list s3://{self.bucket}/{prefix}: {exc}") from exc
        return keys

    def stream(self, key: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            try:
                for chunk in body.iter_chunks(chunk_size=chunk_size):
                    if chunk:
                        yield chunk
            finally:
                body.close()
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Could not download s3://{self.bucket}/{key}: {exc}") from exc


__all__ = ["S3Storage", "StorageError"]
