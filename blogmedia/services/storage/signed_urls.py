# blogmedia/services/storage/signed_urls.py
from __future__ import annotations

"""
🔏 Blog Media • Signed URL service
==================================

Mints time-boxed GET URLs for private objects.

Flow
----
1) Reject a caller-supplied bucket that is not the configured one.
2) Clamp the TTL to [1, 604800] seconds (SigV4 upper bound).
3) Sign with the factory's cached client.
4) On failure, refresh credentials once and sign with a fresh client;
   a second failure raises `SigningFailure`. An unusable key fails at once.

Expiry is enforced by the object store through `X-Amz-Expires`.
"""

import logging
import time as _time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from blogmedia.core.config import settings
from blogmedia.core.exceptions import BucketMismatch, SigningFailure, StorageError
from blogmedia.core.metrics import inc_presign, observe_presign_seconds
from blogmedia.schemas.credentials import utcnow
from blogmedia.services.storage.client import InvalidObjectKey, S3StorageError
from blogmedia.services.storage.factory import StorageClientFactory

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 1
MAX_TTL_SECONDS = 604800


@dataclass(frozen=True)
class SignedUrl:
    url: str
    key: str
    ttl_seconds: int
    expires_at: datetime


def clamp_ttl(ttl: Optional[int]) -> int:
    if ttl is None:
        ttl = settings.SIGNED_URL_DEFAULT_TTL_SECONDS
    return max(MIN_TTL_SECONDS, min(int(ttl), MAX_TTL_SECONDS))


class SignedUrlService:
    def __init__(self, factory: StorageClientFactory) -> None:
        self._factory = factory

    async def sign(
        self,
        key: str,
        *,
        bucket: Optional[str] = None,
        ttl: Optional[int] = None,
        response_content_type: Optional[str] = None,
    ) -> SignedUrl:
        """
        Parameters
        ----------
        key : str
            Object key in the configured bucket.
        bucket : str | None
            Optional bucket the caller believes the object lives in.
        ttl : int | None
            Lifetime in seconds (default `SIGNED_URL_DEFAULT_TTL_SECONDS`).

        Raises
        ------
        BucketMismatch
            `bucket` differs from the configured bucket.
        SigningFailure
            Signing failed with the cached client and again after a refresh.
        StorageError
            Credentials could not be resolved at all (raised unchanged).
        """
        configured = await self._factory.resolve_bucket()
        if bucket and bucket != configured:
            raise BucketMismatch(
                "Object is not stored in the configured bucket",
                details={"bucket": bucket},
            )

        ttl_seconds = clamp_ttl(ttl)
        t0 = _time.perf_counter()
        try:
            client = await self._factory.get_client()
            url = client.presigned_get(key, expires_in=ttl_seconds, response_content_type=response_content_type)
        except InvalidObjectKey as e:
            inc_presign("error")
            observe_presign_seconds("error", _time.perf_counter() - t0)
            raise SigningFailure(
                "Failed to sign URL",
                remediation="The object key cannot be addressed; rename or remove the object",
                details={"key": key, "reason": str(e)},
            ) from e
        except (S3StorageError, StorageError) as first:
            logger.warning("Presign failed, retrying with fresh credentials: %s", first)
            try:
                client = await self._factory.build_fresh()
                url = client.presigned_get(key, expires_in=ttl_seconds, response_content_type=response_content_type)
            except (S3StorageError, StorageError) as second:
                inc_presign("error")
                observe_presign_seconds("error", _time.perf_counter() - t0)
                raise SigningFailure(
                    "Failed to sign URL",
                    remediation="Check storage credentials status and bucket permissions",
                    details={"key": key, "reason": str(second)},
                ) from second

        inc_presign("ok")
        observe_presign_seconds("ok", _time.perf_counter() - t0)
        return SignedUrl(
            url=url,
            key=key,
            ttl_seconds=ttl_seconds,
            expires_at=utcnow() + timedelta(seconds=ttl_seconds),
        )


__all__ = ["SignedUrlService", "SignedUrl", "clamp_ttl", "MAX_TTL_SECONDS"]
