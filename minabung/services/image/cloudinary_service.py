"""
Profile Picture Service using Cloudinary

DESIGN DECISION: Profile pictures live on Cloudinary, we only store the
URL it returns. Cloudinary crops and resizes on upload, so clients can
use the URL directly.

This service handles:
1. Checking the bytes really are an image we accept (Pillow)
2. Uploading to Cloudinary with a face-centered square crop
3. Returning the durable secure URL
"""

import asyncio
import hashlib
from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from PIL import Image, UnidentifiedImageError

from minabung.config import AppSettings, CloudinarySettings, get_settings


class ImageServiceError(Exception):
    """Base exception for image service errors."""
    pass


class InvalidImageError(ImageServiceError):
    """The uploaded bytes are not an acceptable image."""
    pass


class ImageUploadError(ImageServiceError):
    """Failed to upload image to Cloudinary."""
    pass


class CloudinaryImageService:
    """
    Service for profile picture uploads.

    Flow:
    1. Receive raw image bytes
    2. Validate size and format
    3. Upload to Cloudinary with a square crop
    4. Return the secure URL or raise
    """

    def __init__(
        self,
        settings: Optional[CloudinarySettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().cloudinary
        self._app_settings = app_settings or get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _generate_public_id(self, user_id: str, image_bytes: bytes) -> str:
        """
        Generate a public ID for Cloudinary.

        Format: {user_id}_{content_hash}
        """
        content_hash = hashlib.md5(image_bytes).hexdigest()[:8]
        return f"{user_id}_{content_hash}"

    def inspect_image(self, image_bytes: bytes) -> str:
        """
        Check the bytes are an image we accept.

        Returns:
            The detected format, lower-cased (e.g. "png")

        Raises:
            InvalidImageError: If empty, too large, unreadable, or an
                unsupported format
        """
        if not image_bytes:
            raise InvalidImageError("Image is empty")

        if len(image_bytes) > self._app_settings.max_upload_size_bytes:
            raise InvalidImageError(
                f"Image is larger than {self._app_settings.max_upload_size_mb} MB"
            )

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
                image_format = (img.format or "").lower()
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidImageError(f"Could not read image: {e}")

        if image_format not in self._app_settings.supported_formats_list:
            raise InvalidImageError(
                f"Unsupported image format: {image_format or 'unknown'}. "
                f"Allowed: {', '.join(self._app_settings.supported_formats_list)}"
            )

        return image_format

    async def upload_profile_picture(self, image_bytes: bytes, user_id: str) -> str:
        """
        Upload a profile picture.

        Args:
            image_bytes: Raw image bytes
            user_id: Owner of the picture, used in the public id

        Returns:
            The secure URL of the uploaded picture

        Raises:
            InvalidImageError: If the bytes are not an acceptable image
            ImageUploadError: If the upload fails
        """
        self.inspect_image(image_bytes)
        self._configure()

        try:
            # The SDK call is blocking
            result = await asyncio.to_thread(
                cloudinary.uploader.upload,
                image_bytes,
                public_id=self._generate_public_id(user_id, image_bytes),
                folder=self._settings.folder,
                resource_type="image",
                overwrite=True,
                transformation=[
                    {"width": 512, "height": 512, "crop": "fill", "gravity": "face"},
                    {"quality": "auto"},
                    {"fetch_format": "auto"},
                ],
            )
        except CloudinaryError as e:
            raise ImageUploadError(f"Cloudinary error: {e}")
        except OSError as e:
            raise ImageUploadError(f"Failed to upload image: {e}")

        url = result.get("secure_url") or result.get("url")
        if not url:
            raise ImageUploadError("No URL returned from Cloudinary")

        return url
