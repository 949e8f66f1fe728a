"""Image services package."""

from minabung.services.image.cloudinary_service import (
    CloudinaryImageService,
    ImageServiceError,
    ImageUploadError,
    InvalidImageError,
)

__all__ = [
    "CloudinaryImageService",
    "ImageServiceError",
    "ImageUploadError",
    "InvalidImageError",
]
