"""Image ingestion: store, compress and attach uploaded fault photos.

Each upload is written under its final generated name, re-encoded on a worker
thread, and the compressed bytes are swapped in through a temporary file and
an atomic rename. A crash at any point leaves either the original upload or
the finished JPEG at the final path, never a truncated file.

Files in one batch are processed independently. A file that cannot be
processed is cleaned up and reported in its own :class:`IngestResult` while
the rest of the batch carries on.
"""
from __future__ import annotations

import io
import logging
import secrets
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import ImageProcessingError, ValidationError
from .models import Fault, FaultImage

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png"}
DEFAULT_EXTENSION = ".jpg"

_executor = ThreadPoolExecutor(max_workers=get_settings().image_workers, thread_name_prefix="image-compress")


@dataclass
class RawImage:
    filename: str
    content_type: Optional[str]
    data: bytes


@dataclass
class IngestResult:
    filename: str
    ok: bool
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class IngestBatch:
    """Outcome of one ingestion call.

    ``stored_paths`` lists every file left on disk so a caller whose database
    commit fails can remove them again.
    """

    results: List[IngestResult]
    stored_paths: List[Path]

    @property
    def ingested_count(self) -> int:
        return sum(1 for result in self.results if result.ok)


def upload_root() -> Path:
    root = Path(get_settings().upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


def generate_storage_name(filename: str) -> str:
    extension = Path(filename or "").suffix.lower() or DEFAULT_EXTENSION
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{extension}"


def path_for_url(url: str) -> Path:
    # Only the basename is trusted; stored names never contain separators.
    return upload_root() / Path(url).name


def enforce_batch_limit(images: Sequence[RawImage]) -> None:
    limit = get_settings().max_images_per_request
    if len(images) > limit:
        raise ValidationError(f"At most {limit} images can be attached per request, got {len(images)}")


def compress_image(source: Path, max_dimension: int, quality: int) -> bytes:
    """Return ``source`` re-encoded as JPEG with its longest edge capped."""

    try:
        with Image.open(source) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                img = img.convert("RGB")
            # thumbnail() preserves aspect ratio and never upscales.
            img.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
            buffer = io.BytesIO()
            img.save(buffer, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise ImageProcessingError(f"Could not decode image: {exc}") from exc
    return buffer.getvalue()


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Could not remove %s", path, exc_info=True)


def store_image(image: RawImage) -> Path:
    """Persist one upload as a compressed JPEG and return its final path."""

    settings = get_settings()
    storage_name = generate_storage_name(image.filename)
    if Path(storage_name).suffix not in ALLOWED_EXTENSIONS:
        raise ImageProcessingError(f"Unsupported image type '{Path(storage_name).suffix}'")
    if not image.data:
        raise ImageProcessingError("Empty upload")

    final_path = upload_root() / storage_name
    temp_path = final_path.with_name(f"{storage_name}.tmp")
    try:
        final_path.write_bytes(image.data)
        future = _executor.submit(
            compress_image, final_path, settings.image_max_dimension, settings.image_jpeg_quality
        )
        # The deadline bounds the wait only. An overrunning job cannot be interrupted
        # and keeps its worker until Pillow returns; its output is then discarded.
        try:
            compressed = future.result(timeout=settings.image_processing_timeout)
        except FutureTimeout as exc:
            raise ImageProcessingError(
                f"Compression exceeded {settings.image_processing_timeout:.0f}s"
            ) from exc
        temp_path.write_bytes(compressed)
        temp_path.replace(final_path)
    except ImageProcessingError:
        _remove_quietly(temp_path)
        _remove_quietly(final_path)
        raise
    except OSError as exc:
        _remove_quietly(temp_path)
        _remove_quietly(final_path)
        raise ImageProcessingError(f"Could not store image: {exc}") from exc
    return final_path


def ingest_images(db: Session, fault: Fault, images: Sequence[RawImage]) -> IngestBatch:
    """Store every upload and add a ``FaultImage`` per success to ``db``.

    The caller owns the commit. Rows are only added to the session here.
    """

    enforce_batch_limit(images)
    batch = IngestBatch(results=[], stored_paths=[])
    for image in images:
        try:
            path = store_image(image)
        except ImageProcessingError as exc:
            logger.warning("Image %r for fault %s rejected: %s", image.filename, fault.id, exc.detail)
            batch.results.append(IngestResult(filename=image.filename, ok=False, error=exc.detail))
            continue
        url = f"{URL_PREFIX}{path.name}"
        record = FaultImage(url=url)
        fault.images.append(record)
        db.add(record)
        batch.stored_paths.append(path)
        batch.results.append(IngestResult(filename=image.filename, ok=True, url=url))
    if batch.stored_paths:
        logger.info("Stored %d image(s) for fault %s", len(batch.stored_paths), fault.id)
    return batch


def remove_stored_files(paths: Iterable[Path]) -> None:
    """Delete stored images whose records are already gone.

    A failure leaves an orphan file behind. It is logged and not raised since
    the owning rows are committed by the time this runs.
    """

    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.error("Orphaned image file could not be removed: %s", path, exc_info=True)
