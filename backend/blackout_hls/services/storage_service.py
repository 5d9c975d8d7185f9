"""S3-compatible object storage client."""
import asyncio
import logging
from pathlib import Path
from typing import Iterable, List
from urllib.parse import quote

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from blackout_hls.config import StorageConfig
from blackout_hls.errors import NotFoundError, StorageFailure

logger = logging.getLogger(__name__)

# delete_objects accepts at most 1000 keys per call
DELETE_BATCH_SIZE = 1000
DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class StorageError(StorageFailure):
    """Object storage request failed."""
    pass


class BlobStore:
    """
    Thin async wrapper around a boto3 S3 client bound to one bucket.

    boto3 is blocking, so every call is pushed to a worker thread. All
    botocore failures surface as StorageError carrying the provider message.
    """

    def __init__(self, config: StorageConfig, client=None):
        self.bucket = config.bucket
        self.region = config.region
        self.endpoint_url = config.endpoint_url
        self.public_base_url = config.public_base_url
        self._client = client or boto3.client(
            "s3",
            region_name=config.region,
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id.get_secret_value(),
            aws_secret_access_key=config.secret_access_key.get_secret_value(),
            config=Config(signature_version="s3v4"),
        )

    def __repr__(self):
        return f"<BlobStore(bucket={self.bucket!r}, region={self.region!r})>"

    def url_for(self, key: str) -> str:
        """Deterministic public URL of a key."""
        quoted = quote(key, safe="/")
        if self.public_base_url:
            return f"{self.public_base_url}/{quoted}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

    async def put(self, data: bytes, key: str, content_type: str) -> str:
        """Upload bytes under a key and return the object URL."""
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload of {key} failed: {e}") from e
        logger.debug(f"Uploaded {key} ({len(data)} bytes, {content_type})")
        return self.url_for(key)

    def _list_sync(self, prefix: str) -> List[str]:
        keys = []
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for obj in page.get("Contents") or []:
                key = obj.get("Key")
                if key and not key.endswith("/"):
                    keys.append(key)
        return keys

    async def list(self, prefix: str) -> List[str]:
        """All object keys under a prefix (folder markers excluded)."""
        try:
            return await asyncio.to_thread(self._list_sync, prefix)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Listing {prefix} failed: {e}") from e

    def _list_folders_sync(self, prefix: str) -> List[str]:
        folders = []
        paginator = self._client.get_paginator("list_objects_v2")
        kwargs = {"Bucket": self.bucket, "Delimiter": "/"}
        if prefix:
            kwargs["Prefix"] = prefix
        for page in paginator.paginate(**kwargs):
            for common in page.get("CommonPrefixes") or []:
                folders.append(common["Prefix"])
        return folders

    async def list_folders(self, prefix: str = "") -> List[str]:
        """Immediate sub-folders (common prefixes) below a prefix."""
        try:
            return await asyncio.to_thread(self._list_folders_sync, prefix)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Listing folders under {prefix!r} failed: {e}") from e

    def _download_sync(self, key: str, path: Path) -> None:
        response = self._client.get_object(Bucket=self.bucket, Key=key)
        body = response["Body"]
        try:
            with open(path, "wb") as fh:
                for chunk in body.iter_chunks(DOWNLOAD_CHUNK_SIZE):
                    fh.write(chunk)
        finally:
            body.close()

    async def download(self, key: str, path: str | Path) -> Path:
        """Stream an object into a local file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            await asyncio.to_thread(self._download_sync, key, path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404", "NotFound"):
                raise NotFoundError(f"Object {key} not found in bucket {self.bucket}") from e
            raise StorageError(f"Download of {key} failed: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Download of {key} failed: {e}") from e
        logger.debug(f"Downloaded {key} -> {path}")
        return path

    def _delete_sync(self, keys: List[str]) -> int:
        deleted = 0
        for i in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[i:i + DELETE_BATCH_SIZE]
            resp = self._client.delete_objects(
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": False},
            )
            errors = resp.get("Errors") or []
            if errors:
                first = errors[0]
                raise StorageError(
                    f"Failed to delete {len(errors)} object(s), "
                    f"first {first.get('Key')}: {first.get('Code')} {first.get('Message')}"
                )
            deleted += len(resp.get("Deleted") or batch)
        return deleted

    async def delete_all(self, keys: Iterable[str]) -> int:
        """Bulk-delete keys, returning how many were removed."""
        keys = list(keys)
        if not keys:
            return 0
        try:
            return await asyncio.to_thread(self._delete_sync, keys)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Bulk delete failed: {e}") from e
