# blogmedia/api/http_utils.py
from __future__ import annotations

"""
Blog Media · HTTP utilities
===========================

Small helpers shared by the admin routers:

- `set_sensitive_cache`: mark responses carrying signed URLs or credential
  state as non-cacheable.
- `decode_base64_payload`: strict base64 decoding for direct-proxy uploads.
"""

import base64
import binascii

from fastapi import Response

from blogmedia.core.exceptions import UploadRejected


def set_sensitive_cache(response: Response) -> None:
    """`Cache-Control: no-store` (+ legacy Pragma/Expires); idempotent."""
    response.headers["Cache-Control"] = "no-store"
    response.headers.setdefault("Pragma", "no-cache")
    response.headers.setdefault("Expires", "0")


def decode_base64_payload(data_base64: str) -> bytes:
    """Decode a base64 body, accepting an optional `data:<mime>;base64,` prefix."""
    raw = (data_base64 or "").strip()
    if raw.startswith("data:") and "," in raw:
        raw = raw.split(",", 1)[1]
    try:
        return base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError):
        raise UploadRejected("Invalid base64 payload")


__all__ = ["set_sensitive_cache", "decode_base64_payload"]
