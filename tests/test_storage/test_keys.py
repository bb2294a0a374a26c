# tests/test_storage/test_keys.py
from __future__ import annotations

import re
from datetime import date

import pytest

from blogmedia.schemas.enums import FileClassification
from blogmedia.services.storage.keys import (
    InvalidKey,
    check_existing_key,
    classify,
    folder_for,
    generate_upload_key,
    is_thumbnail_key,
    mime_from_key,
    normalize_folder,
    normalize_key,
    original_name_from_key,
    thumbnail_key_for,
)


@pytest.mark.parametrize(
    "mime, expected, folder",
    [
        ("image/png", FileClassification.IMAGE, "/images"),
        ("IMAGE/JPEG", FileClassification.IMAGE, "/images"),
        ("video/mp4", FileClassification.VIDEO, "/videos"),
        ("application/pdf", FileClassification.DOCUMENT, "/documents"),
        ("application/zip", FileClassification.OTHER, "/documents"),
        (None, FileClassification.OTHER, "/documents"),
    ],
)
def test_classification_follows_mime(mime, expected, folder):
    assert classify(mime) is expected
    assert folder_for(mime) == folder


def test_mime_from_key_uses_extension():
    assert mime_from_key("uploads/a/b.PNG") == "image/png"
    assert mime_from_key("uploads/a/b.pdf") == "application/pdf"
    assert mime_from_key("uploads/a/b.xyz") == "application/octet-stream"
    assert mime_from_key("uploads/a/noext") == "application/octet-stream"


def test_generate_upload_key_layout():
    key = generate_upload_key("image/png", original_name="My Cover!.PNG", folder_hint="Blog/Posts", today=date(2026, 10, 19))
    assert re.fullmatch(r"uploads/blog/posts/2026-10-19/my-cover-[0-9a-f]{8}\.png", key)


def test_generate_upload_key_without_hint_or_name():
    key = generate_upload_key("application/pdf", today=date(2026, 1, 1))
    assert re.fullmatch(r"uploads/2026-01-01/file-[0-9a-f]{8}\.pdf", key)


def test_upload_keys_are_unique():
    keys = {generate_upload_key("image/jpeg", original_name="a.jpg") for _ in range(50)}
    assert len(keys) == 50


def test_normalize_key_rejects_traversal_and_empty():
    assert normalize_key("//uploads//a.png") == "uploads/a.png"
    with pytest.raises(InvalidKey):
        normalize_key("uploads/../secret")
    with pytest.raises(InvalidKey):
        normalize_key("   ")
    with pytest.raises(InvalidKey):
        normalize_key("uploads/bad\nname.png")


def test_existing_keys_only_reject_empty_and_traversal():
    key = "uploads/2026-01-02/Résumé, final #2.pdf"
    assert check_existing_key(key) == key
    assert thumbnail_key_for(key, "png") == "uploads/2026-01-02/thumbnails/Résumé, final #2-thumb.png"
    with pytest.raises(InvalidKey):
        check_existing_key("uploads/../secret")
    with pytest.raises(InvalidKey):
        check_existing_key("  ")


def test_thumbnail_key_is_sibling_and_recognised():
    thumb = thumbnail_key_for("uploads/2026-10-19/cover-1a2b3c4d.png", "jpg")
    assert thumb == "uploads/2026-10-19/thumbnails/cover-1a2b3c4d-thumb.jpg"
    assert is_thumbnail_key(thumb)
    assert not is_thumbnail_key("uploads/2026-10-19/cover-1a2b3c4d.png")
    assert not is_thumbnail_key("uploads/thumbnails/plain.png")


def test_original_name_recovered_from_key():
    assert original_name_from_key("uploads/2026-10-19/cover-1a2b3c4d.png") == "cover.png"
    assert original_name_from_key("uploads/legacy/holiday photo.jpg") == "holiday photo.jpg"


def test_normalize_folder():
    assert normalize_folder(None) == "/"
    assert normalize_folder("  Blog // Drafts ") == "/blog/drafts"
