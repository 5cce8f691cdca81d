"""Receipt image services package."""

from kasa.services.images.receipt_images import (
    ALLOWED_CONTENT_TYPES,
    CompressedImage,
    ImageProcessingError,
    ImageUploadError,
    ReceiptImageError,
    ReceiptImageService,
    StoredReceipt,
    build_storage_key,
    sanitize_filename,
)

__all__ = [
    "ALLOWED_CONTENT_TYPES",
    "CompressedImage",
    "ImageProcessingError",
    "ImageUploadError",
    "ReceiptImageError",
    "ReceiptImageService",
    "StoredReceipt",
    "build_storage_key",
    "sanitize_filename",
]
