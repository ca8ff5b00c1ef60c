"""
Key-value storage over an S3-compatible blob store, plus an in-memory double.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shiftcraft.errors import StorageError

MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


class KeyValueStore(Protocol):
    """Defines the operations the facade needs from the blob store."""

    def get_text(self, key: str) -> Optional[str]:
        ...

    def put_text(self, key: str, text: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def list_keys(self, prefix: str = "") -> list[str]:
        ...


@dataclass
class InMemoryKeyValueStore:
    """Test double for blob store interactions."""

    objects: dict[str, str] = field(default_factory=dict)

    def get_text(self, key: str) -> Optional[str]:
        return self.objects.get(key)

    def put_text(self, key: str, text: str) -> None:
        self.objects[key] = text

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def list_keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.objects if k.startswith(prefix))

    def reset(self) -> None:
        self.objects.clear()


@dataclass
class S3KeyValueStore:
    """
    S3-compatible key-value store.

    Each key is one object under `<namespace>/`, so a bucket can be shared by
    several deployments.
    """

    bucket: str
    namespace: str
    region: Optional[str] = None
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _object_key(self, key: str) -> str:
        return f"{self.namespace}/{key}"

    def get_text(self, key: str) -> Optional[str]:
        try:
            response = self._client.get_object(
                Bucket=self.bucket, Key=self._object_key(key)
            )
            return response["Body"].read().decode("utf-8")
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                return None
            raise StorageError(f"Storage error: {e}")
        except (BotoCoreError, UnicodeDecodeError) as e:
            raise StorageError(f"Storage error: {e}")

    def put_text(self, key: str, text: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=self._object_key(key),
                Body=text.encode("utf-8"),
                ContentType="application/json",
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Storage error: {e}")

    def delete(self, key: str) -> None:
        # S3 deletes are idempotent; an absent key is not an error.
        try:
            self._client.delete_object(Bucket=self.bucket, Key=self._object_key(key))
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Storage error: {e}")

    def list_keys(self, prefix: str = "") -> list[str]:
        root = f"{self.namespace}/"
        keys: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=root + prefix):
                for item in page.get("Contents", []):
                    keys.append(item["Key"][len(root):])
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Storage error: {e}")
        return sorted(keys)
