"""Directory-backed object store for game cover images."""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from PIL import Image, ExifTags, UnidentifiedImageError

logger = logging.getLogger(__name__)

__all__ = [
    "CoverStore",
    "CoverStoreError",
    "cover_key_for_appid",
    "open_image_auto_rotate",
]

_ORIENTATION_TAG = next(
    (key for key, value in ExifTags.TAGS.items() if value == 'Orientation'), 274
)
_ROTATIONS = {3: 180, 6: 270, 8: 90}


class CoverStoreError(RuntimeError):
    """Raised when a cover cannot be decoded or written."""


def cover_key_for_appid(appid: int) -> str:
    return f"{int(appid)}.jpg"


def open_image_auto_rotate(source: Any) -> Image.Image:
    """Open image from path or file-like and auto-rotate using EXIF."""
    img = Image.open(source) if not isinstance(source, Image.Image) else source
    orientation = img.getexif().get(_ORIENTATION_TAG)
    rotation = _ROTATIONS.get(orientation)
    if rotation:
        img = img.rotate(rotation, expand=True)
    return img.convert('RGB')


class CoverStore:
    """Stores JPEG blobs under ``<root>/<bucket>/<key>``."""

    def __init__(self, root: str | os.PathLike[str], bucket: str, *, quality: int = 90):
        bucket_name = (bucket or "").strip().strip("/")
        if not bucket_name:
            raise ValueError("bucket name must not be empty")
        self._root = Path(root)
        self._bucket = bucket_name
        self._quality = quality

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def bucket_path(self) -> Path:
        return self._root / self._bucket

    def path_for(self, key: str) -> Path:
        name = Path(str(key)).name
        if not name or name != str(key):
            raise CoverStoreError(f"invalid cover key {key!r}")
        return self.bucket_path / name

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def upload(
        self,
        key: str,
        data: bytes,
        *,
        content_type: str = "image/jpeg",
        upsert: bool = True,
    ) -> Path:
        """Decode ``data`` and persist it as an RGB JPEG under ``key``."""

        if content_type != "image/jpeg":
            raise CoverStoreError(f"unsupported content type {content_type}")
        dest = self.path_for(key)
        if not upsert and dest.exists():
            raise CoverStoreError(f"cover {key} already exists")

        try:
            img = open_image_auto_rotate(io.BytesIO(data))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
            raise CoverStoreError(f"invalid image data for {key}") from exc

        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                img.save(handle, format='JPEG', quality=self._quality)
            os.replace(tmp_name, dest)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise CoverStoreError(f"failed to write cover {key}") from exc

        width, height = img.size
        logger.debug("Stored cover %s/%s (%sx%s)", self._bucket, key, width, height)
        return dest
