# blogmedia/services/storage/keys.py
from __future__ import annotations

"""
🔑 Blog Media • Object key layout & classification
==================================================

Key layout (single private bucket):

    uploads/[{folder_hint}/]{YYYY-MM-DD}/{base}-{uuid8}.{ext}
    uploads/.../thumbnails/{stem}-thumb.{jpg|png}

Classification is a pure function of MIME type:

    image/*          → image    → /images
    video/*          → video    → /videos
    application/pdf  → document → /documents
    anything else    → other    → /documents
"""

from datetime import date
from pathlib import PurePosixPath
from typing import Optional
from uuid import uuid4
import re

from blogmedia.schemas.enums import FileClassification

# ─────────────────────────────────────────────────────────────────────────────
# 🧰 Constants
# ─────────────────────────────────────────────────────────────────────────────
UPLOAD_ROOT = "uploads"
THUMBNAIL_DIR = "thumbnails"
THUMBNAIL_SUFFIX = "-thumb"

_EXT_TO_MIME = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "pdf": "application/pdf",
}

_MIME_TO_EXT = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "application/pdf": "pdf",
    "video/mp4": "mp4",
    "video/quicktime": "mov",
}

# Upload allow-list
ALLOWED_UPLOAD_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "video/mp4",
        "video/quicktime",
    }
)

CANONICAL_FOLDERS = {
    FileClassification.IMAGE: "/images",
    FileClassification.VIDEO: "/videos",
    FileClassification.DOCUMENT: "/documents",
    FileClassification.OTHER: "/documents",
}

DEFAULT_MIME = "application/octet-stream"

_KEY_ALLOWED_RE = re.compile(r"[A-Za-z0-9._\-/+=@() ]+")
_SAFE_SEG_RE = re.compile(r"[^A-Za-z0-9._-]+")
_ORIGINAL_NAME_RE = re.compile(r"^(.+)-[a-f0-9]{8}\.(.+)$")


class InvalidKey(ValueError):
    """Raised for empty, traversing or otherwise unsafe object keys."""


# ─────────────────────────────────────────────────────────────────────────────
# 🧹 Normalization
# ─────────────────────────────────────────────────────────────────────────────
def normalize_key(key: str) -> str:
    """
    Normalize and validate an object key.

    Steps
    -----
    1) Strip whitespace and leading '/'
    2) Collapse '//' runs
    3) Reject path traversal ('..') and disallowed characters

    Raises
    ------
    InvalidKey
        If the key is empty or unsafe.
    """
    k = str(key or "").strip().lstrip("/")
    k = re.sub(r"/{2,}", "/", k)
    if not k:
        raise InvalidKey("Invalid storage key: empty")
    if ".." in k.split("/"):
        raise InvalidKey("Invalid storage key: path traversal detected")
    if not _KEY_ALLOWED_RE.fullmatch(k):
        raise InvalidKey("Invalid storage key: contains forbidden characters")
    return k


def check_existing_key(key: str) -> str:
    """
    Validate a key that already exists in the bucket.

    Only empty and traversing keys are rejected; the key is returned
    unchanged so objects named outside the upload charset stay addressable.
    """
    k = str(key or "")
    if not k.strip():
        raise InvalidKey("Invalid storage key: empty")
    if ".." in k.split("/"):
        raise InvalidKey("Invalid storage key: path traversal detected")
    return k


def sanitize_segment(value: Optional[str], fallback: str) -> str:
    """Reduce a user-supplied name to a single safe, lowercase path segment."""
    s = _SAFE_SEG_RE.sub("-", (value or "").strip().lower()).strip("-.")
    return s[:80] or fallback


def normalize_folder(path: Optional[str]) -> str:
    """Canonical `/a/b` folder path; `/` for empty input."""
    parts = [sanitize_segment(p, "") for p in str(path or "").split("/")]
    parts = [p for p in parts if p]
    return "/" + "/".join(parts)


# ─────────────────────────────────────────────────────────────────────────────
# 🏷️ MIME & classification
# ─────────────────────────────────────────────────────────────────────────────
def extension_of(key: str) -> str:
    return PurePosixPath(key).suffix.lower().lstrip(".")


def mime_from_key(key: str) -> str:
    return _EXT_TO_MIME.get(extension_of(key), DEFAULT_MIME)


def extension_for_mime(mime_type: str) -> str:
    return _MIME_TO_EXT.get((mime_type or "").lower(), "bin")


def classify(mime_type: Optional[str]) -> FileClassification:
    mt = (mime_type or "").lower()
    if mt.startswith("image/"):
        return FileClassification.IMAGE
    if mt.startswith("video/"):
        return FileClassification.VIDEO
    if mt == "application/pdf":
        return FileClassification.DOCUMENT
    return FileClassification.OTHER


def folder_for(mime_type: Optional[str]) -> str:
    return CANONICAL_FOLDERS[classify(mime_type)]


# ─────────────────────────────────────────────────────────────────────────────
# 🗝️ Key generation
# ─────────────────────────────────────────────────────────────────────────────
def generate_upload_key(
    mime_type: str,
    *,
    original_name: Optional[str] = None,
    folder_hint: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """`uploads/[hint/]YYYY-MM-DD/{base}-{uuid8}.{ext}` for a new upload."""
    day = (today or date.today()).isoformat()
    base = sanitize_segment(PurePosixPath(original_name or "").stem, "file")
    ext = extension_for_mime(mime_type)
    parts = [UPLOAD_ROOT]
    hint = normalize_folder(folder_hint).strip("/")
    if hint:
        parts.append(hint)
    parts.extend([day, f"{base}-{uuid4().hex[:8]}.{ext}"])
    return normalize_key("/".join(parts))


def thumbnail_key_for(key: str, ext: str) -> str:
    """Deterministic sibling key: `dir/thumbnails/{stem}-thumb.{ext}`."""
    p = PurePosixPath(check_existing_key(key))
    name = f"{p.stem}{THUMBNAIL_SUFFIX}.{ext}"
    parent = p.parent
    if str(parent) in ("", "."):
        return f"{THUMBNAIL_DIR}/{name}"
    return f"{parent}/{THUMBNAIL_DIR}/{name}"


def is_thumbnail_key(key: str) -> bool:
    return f"/{THUMBNAIL_DIR}/" in f"/{key}" and PurePosixPath(key).stem.endswith(THUMBNAIL_SUFFIX)


def original_name_from_key(key: str) -> str:
    """Recover `name.ext` from `name-<8hex>.ext`; otherwise the basename."""
    filename = PurePosixPath(key).name
    m = _ORIGINAL_NAME_RE.match(filename)
    if m:
        return f"{m.group(1)}.{m.group(2)}"
    return filename


__all__ = [
    "ALLOWED_UPLOAD_TYPES",
    "CANONICAL_FOLDERS",
    "InvalidKey",
    "normalize_key",
    "check_existing_key",
    "sanitize_segment",
    "normalize_folder",
    "mime_from_key",
    "extension_for_mime",
    "classify",
    "folder_for",
    "generate_upload_key",
    "thumbnail_key_for",
    "is_thumbnail_key",
    "original_name_from_key",
]
