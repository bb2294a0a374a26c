# blogmedia/core/exceptions.py
from __future__ import annotations

"""
Blog Media • Application Exceptions
===================================
A small, consistent layer on top of FastAPI's `HTTPException` that lets us
attach structured metadata and render it through the problem+json handlers
in `blogmedia.core.exception_handlers`.

Key ideas
---------
- One base `AppException` that carries `code`, `details`, `extra`.
- `StorageError` is the root of the storage/credential taxonomy. Every member
  carries operator-facing `remediation` text and a `retryable` flag consumed
  by the background credential timer.
- Errors are raised in services and surface unchanged through the routers;
  nothing in between translates them.

Usage
-----
    raise ConfigurationIncomplete("role_assumption", missing=["roleArn"])
"""

from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, status

__all__ = [
    "AppException",
    "InvalidTokenException",
    "PermissionDeniedException",
    "StorageError",
    "ConfigurationIncomplete",
    "SessionExpired",
    "EnvironmentMismatch",
    "UpstreamAuthError",
    "SigningFailure",
    "ObjectNotFound",
    "BucketMismatch",
    "UploadRejected",
    "FolderConflict",
]


# ──────────────────────────────────────────────────────────────
# 📦 Core: AppException
# ──────────────────────────────────────────────────────────────
class AppException(HTTPException):
    """Base application-level exception with optional metadata.

    Attributes
    -----------
    status_code : int
        HTTP status code.
    message : str
        Human-readable error message (serialized as `detail` as well).
    code : str | int
        Stable machine-readable error code. Defaults to `status_code`.
    details : Any
        Machine-readable details (missing fields, ids, counts).
    extra : dict | None
        Additional non-sensitive metadata to surface to clients.
    """

    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        code: Optional[str | int] = None,
        details: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code: str | int = code if code is not None else status_code
        self.message: str = message
        self.details: Optional[Any] = details
        self.extra: Dict[str, Any] = extra or {}

    def __str__(self) -> str:
        return self.message

    # ── [Helper] Canonical body used by handlers ───────────────────────────
    def to_problem(self) -> Dict[str, Any]:
        """Return the extension members merged into the problem+json body."""
        body: Dict[str, Any] = {"code": self.code}
        if self.details is not None:
            body["details"] = self.details
        extra_sanitized = dict(self.extra) if self.extra else {}
        for k in ("token", "authorization", "password", "secret", "secretAccessKey", "sessionToken"):
            extra_sanitized.pop(k, None)
        body.update(extra_sanitized)
        return body


# ──────────────────────────────────────────────────────────────
# 🔑 Auth (identity is issued elsewhere; we only verify it)
# ──────────────────────────────────────────────────────────────
class InvalidTokenException(AppException):
    """Raised for missing, invalid or expired bearer tokens (401)."""

    def __init__(self, detail: str = "Invalid or expired token") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message=detail,
            code="invalid_token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class PermissionDeniedException(AppException):
    """Raised when the authenticated principal is not an operator."""

    def __init__(self, *, role: Optional[str]) -> None:
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            message="Admin access required",
            code="permission_denied",
            details={"role": role},
        )


# ──────────────────────────────────────────────────────────────
# ☁️ Storage / credential taxonomy
# ──────────────────────────────────────────────────────────────
class StorageError(AppException):
    """Root of every storage-subsystem failure."""

    default_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "storage_error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        remediation: Optional[str] = None,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.remediation = remediation
        extra = {"remediation": remediation} if remediation else None
        super().__init__(
            status_code=status_code or self.default_status,
            message=message,
            code=self.default_code,
            details=details,
            extra=extra,
        )


class ConfigurationIncomplete(StorageError):
    """Strategy selected but required fields are missing (never retried)."""

    default_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = "configuration_incomplete"

    def __init__(
        self,
        strategy: Optional[str],
        *,
        missing: Iterable[str] = (),
        message: Optional[str] = None,
        remediation: Optional[str] = None,
    ) -> None:
        self.strategy = strategy
        self.missing = list(missing)
        if message is None:
            if self.missing:
                message = f"Storage configuration for '{strategy}' is incomplete"
            else:
                message = "Storage configuration is incomplete"
        if remediation is None:
            remediation = (
                f"Complete the {strategy} settings: missing {', '.join(self.missing)}"
                if self.missing
                else "Select an authentication strategy and save the storage settings"
            )
        super().__init__(
            message,
            remediation=remediation,
            details={"strategy": strategy, "missing": self.missing},
        )


class SessionExpired(StorageError):
    """Upstream federation session needs out-of-band re-authentication."""

    default_status = status.HTTP_401_UNAUTHORIZED
    default_code = "session_expired"


class EnvironmentMismatch(StorageError):
    """Web-identity strategy selected outside its expected host platform."""

    default_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_code = "environment_mismatch"


class UpstreamAuthError(StorageError):
    """Transient failure during token exchange or role assumption."""

    default_status = status.HTTP_502_BAD_GATEWAY
    default_code = "upstream_auth_error"
    retryable = True


class SigningFailure(StorageError):
    default_status = status.HTTP_502_BAD_GATEWAY
    default_code = "signing_failure"


class ObjectNotFound(StorageError):
    default_status = status.HTTP_404_NOT_FOUND
    default_code = "object_not_found"


class BucketMismatch(StorageError):
    default_status = status.HTTP_404_NOT_FOUND
    default_code = "bucket_mismatch"


class UploadRejected(StorageError):
    """Upload refused before touching the store (type or size)."""

    default_status = status.HTTP_400_BAD_REQUEST
    default_code = "upload_rejected"


class FolderConflict(StorageError):
    default_status = status.HTTP_409_CONFLICT
    default_code = "folder_conflict"
