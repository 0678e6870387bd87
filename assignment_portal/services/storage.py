"""Object storage for submitted PDFs (S3 compatible)."""

import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from assignment_portal.core import config

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """Raised when the storage backend rejects or cannot complete a call."""


@dataclass(frozen=True)
class StoredFile:
    key: str
    share_link: str
    direct_link: str


class SubmissionStorage(Protocol):
    def upload(self, key: str, content: bytes, content_type: str) -> StoredFile: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


def build_object_key(assignment_id: int, student_id: int, token: str, filename: str) -> str:
    parts = [str(assignment_id), str(student_id), token, filename]
    if config.STORAGE_KEY_PREFIX:
        parts.insert(0, config.STORAGE_KEY_PREFIX)
    return "/".join(parts)


class S3SubmissionStorage:
    def __init__(
        self,
        client: Any,
        bucket: str,
        *,
        public_base_url: str = "",
        link_expires_seconds: int = 3600,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")
        self._link_expires_seconds = link_expires_seconds

    def upload(self, key: str, content: bytes, content_type: str) -> StoredFile:
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
            share_link, direct_link = self._links(key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Upload of {key} failed: {exc}") from exc

        logger.info("Stored submission object %s (%d bytes)", key, len(content))
        return StoredFile(key=key, share_link=share_link, direct_link=direct_link)

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Delete of {key} failed: {exc}") from exc

    def close(self) -> None:
        self._client.close()

    def _links(self, key: str) -> tuple[str, str]:
        if self._public_base_url:
            url = f"{self._public_base_url}/{quote(key)}"
            return url, url

        filename = quote(key.rsplit("/", 1)[-1])
        share_link = self._presign(key, f"attachment; filename*=UTF-8''{filename}")
        direct_link = self._presign(key, "inline")
        return share_link, direct_link

    def _presign(self, key: str, disposition: str) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={
                "Bucket": self._bucket,
                "Key": key,
                "ResponseContentDisposition": disposition,
            },
            ExpiresIn=self._link_expires_seconds,
        )


class NullSubmissionStorage:
    """Fallback that signals object storage is not configured."""

    def upload(self, key: str, content: bytes, content_type: str) -> StoredFile:
        raise StorageError("storage not configured")

    def delete(self, key: str) -> None:
        raise StorageError("storage not configured")

    def close(self) -> None:
        return None


def build_storage() -> SubmissionStorage:
    if not config.STORAGE_BUCKET:
        logger.warning("STORAGE_BUCKET is not set; submissions will be rejected until storage is configured")
        return NullSubmissionStorage()

    client = boto3.client(
        "s3",
        region_name=config.STORAGE_REGION,
        endpoint_url=config.STORAGE_ENDPOINT_URL,
        aws_access_key_id=config.STORAGE_ACCESS_KEY_ID,
        aws_secret_access_key=config.STORAGE_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
    )
    return S3SubmissionStorage(
        client,
        config.STORAGE_BUCKET,
        public_base_url=config.STORAGE_PUBLIC_BASE_URL,
        link_expires_seconds=config.STORAGE_LINK_EXPIRES_SECONDS,
    )
