"""Image decoding and re-encoding for uploaded evidence"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from clubportal.config import settings
from clubportal.exceptions import InvalidUpload, UploadTooLarge

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<payload>.+)$", re.DOTALL)
SAFE_NAME_PATTERN = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class DecodedUpload:
    """Payload extracted from a data URL"""
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def decode_data_url(data_url: str, max_bytes: Optional[int] = None) -> DecodedUpload:
    """
    Decode a ``data:<mime>;base64,<payload>`` string.

    Args:
        data_url: Data URL sent by the client
        max_bytes: Reject decoded payloads larger than this

    Raises:
        InvalidUpload: Not a base64 data URL
        UploadTooLarge: Decoded payload exceeds ``max_bytes``
    """
    match = DATA_URL_PATTERN.match(data_url or "")
    if not match:
        raise InvalidUpload()

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError):
        raise InvalidUpload("Upload payload is not valid base64")

    if max_bytes is not None and len(data) > max_bytes:
        raise UploadTooLarge(
            f"Upload is {len(data)} bytes, the limit is {max_bytes} bytes"
        )

    return DecodedUpload(mime_type=match.group("mime"), data=data)


def safe_filename(filename: str) -> str:
    """Strip a file name down to ``[a-zA-Z0-9_-]`` plus its extension"""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    base, dot, ext = name.rpartition(".")
    if not dot:
        base, ext = name, ""
    safe_base = SAFE_NAME_PATTERN.sub("_", base) or "file"
    safe_ext = SAFE_NAME_PATTERN.sub("", ext).lower()
    return f"{safe_base}.{safe_ext}" if safe_ext else safe_base


class ImageService:
    """Resize and compress images before they are stored"""

    def __init__(
        self,
        max_dimension: Optional[int] = None,
        quality: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ):
        self.max_dimension = max_dimension or settings.image_max_dimension
        self.quality = quality or settings.image_quality
        self.max_bytes = max_bytes or settings.contribution_image_max_bytes

    def compress(self, image_bytes: bytes) -> bytes:
        """
        Re-encode an image as JPEG no larger than ``max_dimension`` on
        either side.

        Args:
            image_bytes: Original image bytes (any format Pillow reads)

        Returns:
            JPEG bytes

        Raises:
            UploadTooLarge: Original exceeds ``max_bytes``
            InvalidUpload: Bytes are not a readable image
        """
        if len(image_bytes) > self.max_bytes:
            raise UploadTooLarge(
                f"Image must be smaller than {self.max_bytes // (1024 * 1024)} MB"
            )

        try:
            image = Image.open(BytesIO(image_bytes))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidUpload(f"Could not read image: {e}")

        image = ImageOps.exif_transpose(image)
        if image.mode != "RGB":
            image = image.convert("RGB")

        original_size = image.size
        # thumbnail keeps the aspect ratio and never upscales
        image.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)

        output = BytesIO()
        image.save(output, format="JPEG", quality=self.quality, optimize=True)
        compressed = output.getvalue()

        logger.debug(
            f"Compressed image {original_size} -> {image.size}, "
            f"{len(image_bytes)} -> {len(compressed)} bytes"
        )
        return compressed

    def compress_data_url(self, data_url: str) -> bytes:
        """Decode a data URL and compress the image it carries"""
        decoded = decode_data_url(data_url)
        if not decoded.mime_type.startswith("image/"):
            raise InvalidUpload(f"Expected an image, got {decoded.mime_type}")
        return self.compress(decoded.data)
