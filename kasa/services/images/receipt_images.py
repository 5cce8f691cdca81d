"""
Receipt Image Service

Receipts are photographed on phones, so raw uploads are often several
megabytes and sideways. Before anything reaches the storage bucket we:
1. Check the declared content type
2. Apply the EXIF orientation
3. Downscale so the longest side fits the configured maximum
4. Re-encode as JPEG, stepping the quality down until the size target is met

CRITICAL: A receipt that cannot be processed or uploaded aborts the
transaction. We never record a transaction pointing at a missing image.
"""

import re
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from kasa.config import AppSettings, get_settings
from kasa.services.backend.interface import ReceiptStorage, StorageError


ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/webp")

# Quality ladder for re-encoding
INITIAL_QUALITY = 90
MIN_QUALITY = 40
QUALITY_STEP = 10

STORED_CONTENT_TYPE = "image/jpeg"


class ReceiptImageError(Exception):
    """Base exception for receipt image errors."""
    pass


class ImageProcessingError(ReceiptImageError):
    """The upload is not an image we can read or accept."""
    pass


class ImageUploadError(ReceiptImageError):
    """The storage bucket rejected the upload."""
    pass


@dataclass
class CompressedImage:
    """A re-encoded receipt ready for upload."""
    data: bytes
    width: int
    height: int
    quality: int
    original_size: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class StoredReceipt:
    """Where a receipt ended up."""
    path: str
    public_url: str
    original_size: int
    stored_size: int


def sanitize_filename(filename: str) -> str:
    """
    Make a filename safe for use in a storage key.

    Keeps letters, digits, dots, dashes and underscores. The extension is
    replaced with .jpg because every stored receipt is a JPEG.
    """
    name = (filename or "").rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    stem = name.rsplit(".", 1)[0] if "." in name else name
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", stem).strip("_")
    return f"{stem or 'receipt'}.jpg"


def build_storage_key(user_id: str, filename: str, now_millis: Optional[int] = None) -> str:
    """Storage key of the form ``{user_id}/{unix_millis}_{filename}``."""
    millis = now_millis if now_millis is not None else int(time.time() * 1000)
    return f"{user_id}/{millis}_{sanitize_filename(filename)}"


class ReceiptImageService:
    """
    Compresses receipt images and stores them in the receipts bucket.

    Flow:
    1. validate_content_type() rejects anything but JPEG/PNG/WebP
    2. compress() normalizes orientation, size and format
    3. store() uploads under a per-user key and resolves the public URL
    """

    def __init__(
        self,
        storage: ReceiptStorage,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().app

    def validate_content_type(self, content_type: Optional[str]) -> None:
        if (content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
            raise ImageProcessingError(
                "Sadece JPEG, PNG veya WEBP formatında resim yükleyebilirsiniz."
            )

    def _open(self, image_bytes: bytes) -> Image.Image:
        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise ImageProcessingError(
                f"Dosya çok büyük (en fazla {self._settings.max_upload_size_mb} MB)."
            )
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ImageProcessingError(f"Resim okunamadı: {e}")
        return img

    def compress(self, image_bytes: bytes) -> CompressedImage:
        """
        Re-encode an image within the configured size limits.

        The longest side is capped at ``compressed_image_max_dimension``.
        JPEG quality is lowered in steps until the output fits
        ``compressed_image_max_mb`` or the floor quality is reached; in the
        latter case the floor-quality output is returned as is.
        """
        img = self._open(image_bytes)
        img = ImageOps.exif_transpose(img)
        if img.mode != "RGB":
            img = img.convert("RGB")

        max_side = self._settings.compressed_image_max_dimension
        if max(img.size) > max_side:
            img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)

        target = self._settings.compressed_image_max_bytes
        quality = INITIAL_QUALITY
        while True:
            buffer = BytesIO()
            img.save(buffer, format="JPEG", quality=quality, optimize=True)
            data = buffer.getvalue()
            if len(data) <= target or quality <= MIN_QUALITY:
                break
            quality -= QUALITY_STEP

        return CompressedImage(
            data=data,
            width=img.width,
            height=img.height,
            quality=quality,
            original_size=len(image_bytes),
        )

    async def store(
        self,
        image_bytes: bytes,
        filename: str,
        content_type: Optional[str],
        user_id: str,
    ) -> StoredReceipt:
        """
        Compress and upload a receipt.

        Raises:
            ImageProcessingError: If the file is not an acceptable image
            ImageUploadError: If the upload fails
        """
        self.validate_content_type(content_type)
        compressed = self.compress(image_bytes)
        key = build_storage_key(user_id, filename)

        try:
            path = await self._storage.upload(key, compressed.data, STORED_CONTENT_TYPE)
        except StorageError as e:
            raise ImageUploadError(str(e))

        return StoredReceipt(
            path=path,
            public_url=self.public_url(path),
            original_size=compressed.original_size,
            stored_size=compressed.size,
        )

    def public_url(self, path: str) -> str:
        try:
            return self._storage.get_public_url(path)
        except StorageError as e:
            raise ImageUploadError(str(e))
