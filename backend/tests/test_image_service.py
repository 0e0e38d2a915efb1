"""Unit tests for image decoding and compression"""

import base64
from io import BytesIO

import pytest
from PIL import Image

from clubportal.exceptions import InvalidUpload, UploadTooLarge
from clubportal.services.image_service import ImageService, decode_data_url, safe_filename


def encode_image(size, mode="RGB", image_format="PNG") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size).save(buffer, format=image_format)
    return buffer.getvalue()


def data_url(payload: bytes, mime="image/png") -> str:
    return f"data:{mime};base64," + base64.b64encode(payload).decode("ascii")


class TestDecodeDataUrl:
    """Test data URL decoding"""

    def test_decode(self):
        """Test MIME type and bytes are extracted"""
        decoded = decode_data_url(data_url(b"hello", "text/plain"))

        assert decoded.mime_type == "text/plain"
        assert decoded.data == b"hello"
        assert decoded.size == 5

    def test_not_a_data_url(self):
        """Test plain strings are rejected"""
        with pytest.raises(InvalidUpload):
            decode_data_url("https://example.com/a.png")

    def test_bad_base64(self):
        """Test corrupt payloads are rejected"""
        with pytest.raises(InvalidUpload):
            decode_data_url("data:image/png;base64,@@@not-base64@@@")

    def test_size_limit(self):
        """Test payloads over the limit are rejected"""
        with pytest.raises(UploadTooLarge):
            decode_data_url(data_url(b"x" * 11), max_bytes=10)


class TestSafeFilename:
    """Test file name sanitizing"""

    def test_spaces_and_symbols(self):
        """Test unsafe characters become underscores"""
        assert safe_filename("my photo (1).PNG") == "my_photo__1_.png"

    def test_path_components_dropped(self):
        """Test directories are stripped"""
        assert safe_filename("../../etc/passwd") == "passwd"
        assert safe_filename("C:\\Users\\me\\shot.jpg") == "shot.jpg"

    def test_empty_base(self):
        """Test names without a usable base get a default"""
        assert safe_filename(".png") == "file.png"


class TestCompress:
    """Test image re-encoding"""

    def test_large_image_downscaled(self):
        """Test the longest side is capped and aspect ratio kept"""
        service = ImageService(max_dimension=1024, quality=78, max_bytes=5 * 1024 * 1024)

        output = service.compress(encode_image((3000, 1500)))

        image = Image.open(BytesIO(output))
        assert image.format == "JPEG"
        assert image.size == (1024, 512)

    def test_small_image_not_upscaled(self):
        """Test images under the cap keep their size"""
        service = ImageService(max_dimension=1024)

        output = service.compress(encode_image((200, 100)))

        assert Image.open(BytesIO(output)).size == (200, 100)

    def test_transparency_flattened(self):
        """Test RGBA images are converted for JPEG"""
        service = ImageService()

        output = service.compress(encode_image((50, 50), mode="RGBA"))

        assert Image.open(BytesIO(output)).mode == "RGB"

    def test_original_too_large(self):
        """Test originals over the byte limit are refused"""
        service = ImageService(max_bytes=100)

        with pytest.raises(UploadTooLarge):
            service.compress(encode_image((400, 400)))

    def test_not_an_image(self):
        """Test unreadable bytes are refused"""
        with pytest.raises(InvalidUpload):
            ImageService().compress(b"definitely not an image")

    def test_compress_data_url_requires_image(self):
        """Test non-image MIME types are refused"""
        with pytest.raises(InvalidUpload):
            ImageService().compress_data_url(data_url(b"%PDF-1.4", "application/pdf"))
