# blogmedia/services/thumbnails.py
from __future__ import annotations

"""
🖼️ Blog Media • Thumbnail pipeline
==================================

Derives preview artifacts for images and PDFs and stores them next to the
original:

    uploads/2026-10-19/cover-1a2b3c4d.png
    uploads/2026-10-19/thumbnails/cover-1a2b3c4d-thumb.jpg

- Images: Pillow bounded-box resize (never upscales), JPEG re-encode.
- PDFs: first page rendered by an external tool (`pdftoppm` by default)
  behind the `PdfRenderer` interface.

Every operation reports through `SideEffectResult`. Failures are logged at
WARNING, counted, and returned; they are never raised into the caller, so a
broken thumbnail cannot fail an upload or a delete.
"""

import asyncio
import io
import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession

from blogmedia.core.config import settings
from blogmedia.core.metrics import inc_thumbnail
from blogmedia.db.models.media_file import MediaFile
from blogmedia.repositories import media as media_repo
from blogmedia.services.storage.factory import StorageClientFactory
from blogmedia.services.storage.keys import thumbnail_key_for

logger = logging.getLogger(__name__)

THUMBNAIL_CACHE_CONTROL = "public, max-age=31536000"
PDF_MIME = "application/pdf"
IMAGE_MIMES = ("image/jpeg", "image/png", "image/gif", "image/webp")


# ─────────────────────────────────────────────────────────────────────────────
# 📦 Results
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class SideEffectResult:
    """Outcome of a best-effort side effect (logged + counted, never raised)."""

    ok: bool
    key: Optional[str] = None
    error: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @classmethod
    def skipped(cls, reason: str) -> "SideEffectResult":
        return cls(ok=False, error=reason)


@dataclass(frozen=True)
class RenderResult:
    success: bool
    output_path: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class BackfillReport:
    examined: int = 0
    generated: int = 0
    failed: int = 0
    dry_run: bool = False
    results: List[Dict[str, Any]] = field(default_factory=list)


# ─────────────────────────────────────────────────────────────────────────────
# 📄 PDF rendering adapter
# ─────────────────────────────────────────────────────────────────────────────
class PdfRenderer:
    """Renders the first page of a PDF to a PNG file."""

    async def render_first_page(self, input_path: Path, output_dir: Path, base_name: str) -> RenderResult:
        raise NotImplementedError


class PopplerRenderer(PdfRenderer):
    """
    `pdftoppm -f 1 -l 1 -singlefile -scale-to-x <width> -scale-to-y -1 -png`

    Writes `<output_dir>/<base_name>.png`. The subprocess is killed when it
    exceeds `timeout` seconds.
    """

    def __init__(self, binary: Optional[str] = None, *, width: Optional[int] = None, timeout: Optional[float] = None) -> None:
        self.binary = binary or settings.PDFTOPPM_PATH
        self.width = int(width or settings.PDF_THUMBNAIL_WIDTH)
        self.timeout = float(timeout or settings.PDF_RENDER_TIMEOUT_SECONDS)

    async def render_first_page(self, input_path: Path, output_dir: Path, base_name: str) -> RenderResult:
        output_prefix = Path(output_dir) / base_name
        args = [
            "-f", "1",
            "-l", "1",
            "-singlefile",
            "-scale-to-x", str(self.width),
            "-scale-to-y", "-1",
            "-png",
            str(input_path),
            str(output_prefix),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return RenderResult(success=False, error=f"{self.binary} unavailable: {e}")

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return RenderResult(success=False, error=f"PDF render timed out after {self.timeout:g}s")

        output_path = output_prefix.with_suffix(".png")
        if proc.returncode != 0:
            msg = (stderr or b"").decode("utf-8", "replace").strip() or f"exit status {proc.returncode}"
            return RenderResult(success=False, error=msg)
        if not output_path.exists():
            return RenderResult(success=False, error="renderer produced no output")
        return RenderResult(success=True, output_path=output_path)


# ─────────────────────────────────────────────────────────────────────────────
# 🖌️ Image resize (blocking; run in a worker thread)
# ─────────────────────────────────────────────────────────────────────────────
def render_image_thumbnail(data: bytes, *, max_size: tuple[int, int], quality: int) -> tuple[bytes, int, int]:
    """Return `(jpeg_bytes, original_width, original_height)`."""
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        img.seek(0)
        thumb = img.copy()

    if thumb.mode in ("RGBA", "LA") or (thumb.mode == "P" and "transparency" in thumb.info):
        rgba = thumb.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        thumb = background
    elif thumb.mode != "RGB":
        thumb = thumb.convert("RGB")

    thumb.thumbnail(max_size, Image.Resampling.LANCZOS)
    out = io.BytesIO()
    thumb.save(out, "JPEG", quality=quality, optimize=True)
    return out.getvalue(), width, height


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Pipeline
# ─────────────────────────────────────────────────────────────────────────────
class ThumbnailPipeline:
    def __init__(self, factory: StorageClientFactory, *, renderer: Optional[PdfRenderer] = None) -> None:
        self._factory = factory
        self._renderer = renderer or PopplerRenderer()
        self._max_size = (settings.THUMBNAIL_MAX_WIDTH, settings.THUMBNAIL_MAX_HEIGHT)
        self._quality = settings.THUMBNAIL_JPEG_QUALITY

    @staticmethod
    def supports(mime_type: Optional[str]) -> bool:
        mt = (mime_type or "").lower()
        return mt in IMAGE_MIMES or mt == PDF_MIME

    async def generate(self, storage_key: str, data: bytes, mime_type: str) -> SideEffectResult:
        """
        Build and upload the thumbnail for one stored object.

        Returns
        -------
        SideEffectResult
            `ok=True` with the thumbnail `key` (and original dimensions for
            images), or `ok=False` with the error text.
        """
        mt = (mime_type or "").lower()
        if mt in IMAGE_MIMES:
            kind = "image"
        elif mt == PDF_MIME:
            kind = "pdf"
        else:
            return SideEffectResult.skipped(f"no thumbnail for {mime_type}")

        try:
            if kind == "image":
                result = await self._image(storage_key, data)
            else:
                result = await self._pdf(storage_key, data)
        except Exception as e:
            result = SideEffectResult(ok=False, error=f"{type(e).__name__}: {e}")

        inc_thumbnail(kind, "ok" if result.ok else "error")
        if result.ok:
            logger.info("Thumbnail stored | source=%s thumb=%s", storage_key, result.key)
        else:
            logger.warning("Thumbnail generation failed (non-fatal) | source=%s error=%s", storage_key, result.error)
        return result

    async def _image(self, storage_key: str, data: bytes) -> SideEffectResult:
        jpeg, width, height = await asyncio.to_thread(
            render_image_thumbnail, data, max_size=self._max_size, quality=self._quality
        )
        key = thumbnail_key_for(storage_key, "jpg")
        await self._upload(key, jpeg, "image/jpeg")
        return SideEffectResult(ok=True, key=key, width=width, height=height)

    async def _pdf(self, storage_key: str, data: bytes) -> SideEffectResult:
        key = thumbnail_key_for(storage_key, "png")
        base_name = Path(key).stem
        with tempfile.TemporaryDirectory(prefix="pdf-thumb-") as tmp:
            tmp_dir = Path(tmp)
            source = tmp_dir / "source.pdf"
            await asyncio.to_thread(source.write_bytes, data)
            rendered = await self._renderer.render_first_page(source, tmp_dir, base_name)
            if not rendered.success or rendered.output_path is None:
                return SideEffectResult(ok=False, error=rendered.error or "PDF render failed")
            png = await asyncio.to_thread(Path(rendered.output_path).read_bytes)
        await self._upload(key, png, "image/png")
        return SideEffectResult(ok=True, key=key)

    async def _upload(self, key: str, body: bytes, content_type: str) -> None:
        client = await self._factory.get_client()
        await asyncio.to_thread(
            client.put_bytes,
            key,
            body,
            content_type=content_type,
            cache_control=THUMBNAIL_CACHE_CONTROL,
        )

    async def delete_thumbnail(self, thumbnail_key: Optional[str]) -> SideEffectResult:
        """Best-effort removal of a thumbnail object."""
        if not thumbnail_key:
            return SideEffectResult(ok=True)
        try:
            client = await self._factory.get_client()
            ok = await asyncio.to_thread(client.delete, thumbnail_key)
            result = SideEffectResult(ok=ok, key=thumbnail_key, error=None if ok else "delete_object failed")
        except Exception as e:
            result = SideEffectResult(ok=False, key=thumbnail_key, error=f"{type(e).__name__}: {e}")
        inc_thumbnail("delete", "ok" if result.ok else "error")
        if not result.ok:
            logger.warning("Thumbnail delete failed (non-fatal) | key=%s error=%s", thumbnail_key, result.error)
        return result

    # ────────────────────────────────────────────────────────────────────────
    # 🔁 Backfill
    # ────────────────────────────────────────────────────────────────────────
    async def backfill(self, session: AsyncSession, *, limit: int = 50, dry_run: bool = False) -> BackfillReport:
        """Generate thumbnails for image/PDF rows that have none. Commits per record."""
        report = BackfillReport(dry_run=dry_run)
        rows = await media_repo.list_missing_thumbnails(session, mime_types=IMAGE_MIMES + (PDF_MIME,), limit=limit)
        for row in rows:
            report.examined += 1
            if dry_run:
                report.results.append({"id": str(row.id), "key": row.storage_key, "status": "pending"})
                continue
            result = await self._backfill_one(row)
            if result.ok:
                self.attach(row, result)
                await session.commit()
                report.generated += 1
                report.results.append({"id": str(row.id), "key": row.storage_key, "status": "generated", "thumbnail_key": result.key})
            else:
                report.failed += 1
                report.results.append({"id": str(row.id), "key": row.storage_key, "status": "error", "error": result.error})
        logger.info(
            "Thumbnail backfill | examined=%s generated=%s failed=%s dry_run=%s",
            report.examined,
            report.generated,
            report.failed,
            dry_run,
        )
        return report

    async def _backfill_one(self, row: MediaFile) -> SideEffectResult:
        try:
            client = await self._factory.get_client()
            data = await asyncio.to_thread(client.get_bytes, row.storage_key)
        except Exception as e:
            logger.warning("Backfill download failed | key=%s error=%s", row.storage_key, e)
            return SideEffectResult(ok=False, error=f"{type(e).__name__}: {e}")
        return await self.generate(row.storage_key, data, row.mime_type)

    @staticmethod
    def attach(row: MediaFile, result: SideEffectResult) -> None:
        """Link a successful thumbnail (and original dimensions) to its record."""
        if not result.ok or not result.key:
            return
        row.thumbnail_key = result.key
        if result.width and result.height:
            row.width = result.width
            row.height = result.height


__all__ = [
    "SideEffectResult",
    "RenderResult",
    "BackfillReport",
    "PdfRenderer",
    "PopplerRenderer",
    "ThumbnailPipeline",
    "render_image_thumbnail",
]
