# blogmedia/services/storage/client.py
from __future__ import annotations

"""
🧊 Blog Media • S3 storage client
=================================

Thin boto3 wrapper bound to **one** `ResolvedCredential` and one bucket.
Instances are disposable: when credentials rotate, the factory builds a new
client instead of mutating this one.

🔗 Operations
-------------
- `put_bytes`, `get_bytes`, `delete` (best-effort)
- `list_objects` (one ListObjectsV2 page, ≤ 1000 keys)
- `presigned_get`

All methods are synchronous (boto3); async callers wrap them with
`asyncio.to_thread`. S3 failures surface as `S3StorageError`.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from blogmedia.schemas.credentials import ResolvedCredential
from blogmedia.services.storage.keys import InvalidKey, check_existing_key

logger = logging.getLogger(__name__)

MAX_LIST_KEYS = 1000


# ─────────────────────────────────────────────────────────────────────────────
# 🧱 Exceptions / results
# ─────────────────────────────────────────────────────────────────────────────
class S3StorageError(RuntimeError):
    """Raised when a storage operation fails (network, auth, policy, bad key)."""


class InvalidObjectKey(S3StorageError):
    """The key itself is unusable; retrying with other credentials cannot help."""


@dataclass(frozen=True)
class RemoteObject:
    key: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(frozen=True)
class ListPage:
    objects: List[RemoteObject]
    next_token: Optional[str] = None

    @property
    def truncated(self) -> bool:
        return self.next_token is not None


def _key(key: str) -> str:
    try:
        return check_existing_key(key)
    except InvalidKey as e:
        raise InvalidObjectKey(str(e)) from e


# ─────────────────────────────────────────────────────────────────────────────
# 📦 Client
# ─────────────────────────────────────────────────────────────────────────────
class StorageClient:
    """
    Parameters
    ----------
    credential : ResolvedCredential
        Keys the boto3 client is built with (never the ambient AWS chain).
    bucket : str
        The single media bucket.
    region_name : str
    endpoint_url : str | None
        S3-compatible endpoint (MinIO/LocalStack); path-style addressing is
        used when set.
    boto_client : Any
        Pre-built client (tests).
    """

    def __init__(
        self,
        credential: ResolvedCredential,
        *,
        bucket: str,
        region_name: str,
        endpoint_url: Optional[str] = None,
        boto_client: Any = None,
    ) -> None:
        if not bucket:
            raise S3StorageError("Bucket name not configured")
        self.credential = credential
        self.bucket = bucket
        self.region = region_name

        if boto_client is not None:
            self.client = boto_client
        else:
            cfg = BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 5, "mode": "standard"},
                connect_timeout=3,
                read_timeout=10,
                s3={"addressing_style": "path" if endpoint_url else "virtual"},
            )
            kwargs: Dict[str, Any] = {
                "config": cfg,
                "region_name": region_name,
                "aws_access_key_id": credential.access_key_id,
                "aws_secret_access_key": credential.secret_access_key,
            }
            if credential.session_token:
                kwargs["aws_session_token"] = credential.session_token
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            try:
                self.client = boto3.client("s3", **kwargs)
            except (BotoCoreError, ValueError) as e:  # pragma: no cover
                raise S3StorageError(f"Failed to create S3 client: {e}") from e

        self._repr = (
            f"StorageClient(bucket={self.bucket}, region={self.region}, key={credential.key_hint}, "
            f"endpoint={'yes' if endpoint_url else 'no'})"
        )

    def bound_to(self, credential: Optional[ResolvedCredential]) -> bool:
        return credential is not None and credential is self.credential

    # ────────────────────────────────────────────────────────────────────────
    # 🔐 Signed URL helpers
    # ────────────────────────────────────────────────────────────────────────
    def presigned_get(
        self,
        key: str,
        *,
        expires_in: int = 3600,
        response_content_type: Optional[str] = None,
        response_content_disposition: Optional[str] = None,
    ) -> str:
        """
        Generate a **presigned GET** URL valid for `expires_in` seconds.

        Expiry is enforced by S3 (`X-Amz-Expires`); nothing is tracked locally.

        Raises
        ------
        S3StorageError
            On signing failure or invalid key.
        """
        params: Dict[str, Any] = {"Bucket": self.bucket, "Key": _key(key)}
        if response_content_type:
            params["ResponseContentType"] = response_content_type
        if response_content_disposition:
            params["ResponseContentDisposition"] = response_content_disposition
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params=params,
                ExpiresIn=int(expires_in),
            )
        except (BotoCoreError, ClientError, ValueError) as e:
            raise S3StorageError(f"Failed to create presigned GET: {e}") from e

    # ────────────────────────────────────────────────────────────────────────
    # 🚀 Object operations
    # ────────────────────────────────────────────────────────────────────────
    def put_bytes(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> None:
        args: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": _key(key),
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            args["CacheControl"] = cache_control
        if metadata:
            args["Metadata"] = metadata
        try:
            self.client.put_object(**args)
        except (BotoCoreError, ClientError) as e:
            raise S3StorageError(f"Failed to upload object: {e}") from e

    def get_bytes(self, key: str) -> bytes:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=_key(key))
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise S3StorageError(f"Failed to download object: {e}") from e

    def delete(self, key: str) -> bool:
        """
        Best-effort delete.

        - True on success and for "NoSuchKey" (idempotent).
        - False on any other error (logged at WARNING).
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=_key(key))
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in {"NoSuchKey", "404"}:
                return True
            logger.warning("delete_object failed (non-fatal): %s", e)
            return False
        except (BotoCoreError, S3StorageError) as e:
            logger.warning("delete_object failed (non-fatal): %s", e)
            return False

    def list_objects(
        self,
        prefix: str = "",
        *,
        max_keys: int = MAX_LIST_KEYS,
        continuation_token: Optional[str] = None,
    ) -> ListPage:
        """One ListObjectsV2 page (capped at 1000 keys by S3)."""
        args: Dict[str, Any] = {
            "Bucket": self.bucket,
            "Prefix": prefix.lstrip("/"),
            "MaxKeys": max(1, min(int(max_keys), MAX_LIST_KEYS)),
        }
        if continuation_token:
            args["ContinuationToken"] = continuation_token
        try:
            resp = self.client.list_objects_v2(**args)
        except (BotoCoreError, ClientError) as e:
            raise S3StorageError(f"Failed to list objects: {e}") from e

        objects = [
            RemoteObject(
                key=item["Key"],
                size=int(item.get("Size") or 0),
                last_modified=item.get("LastModified"),
                etag=(item.get("ETag") or "").strip('"') or None,
            )
            for item in resp.get("Contents", []) or []
        ]
        next_token = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return ListPage(objects=objects, next_token=next_token)

    def __repr__(self) -> str:  # pragma: no cover
        return self._repr


__all__ = ["StorageClient", "S3StorageError", "InvalidObjectKey", "RemoteObject", "ListPage", "MAX_LIST_KEYS"]
