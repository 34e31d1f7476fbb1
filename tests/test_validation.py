"""
Upload Validation and Decoding Tests
====================================
"""

import cv2
import numpy as np
import pytest

from marker_forge.errors import (
    ImageDecodeError,
    ImageTooSmallError,
    InputRejectedError,
    UploadTooLargeError,
)
from marker_forge.imaging.decoder import check_min_dimension, decode_image
from marker_forge.imaging.validation import file_extension, validate_upload
from marker_forge.models.error_codes import ErrorCode

from conftest import encode, make_rgb, solid_rgb


EXTENSIONS = [".jpg", ".jpeg", ".png"]
MIME_TYPES = ["image/jpeg", "image/jpg", "image/png"]


def validate(filename, content_type, size=1000, max_bytes=10 * 1024 * 1024):
    validate_upload(
        filename,
        content_type,
        size,
        allowed_extensions=EXTENSIONS,
        allowed_mime_types=MIME_TYPES,
        max_bytes=max_bytes,
    )


class TestValidateUpload:

    @pytest.mark.parametrize("filename,content_type", [
        ("photo.jpg", "image/jpeg"),
        ("PHOTO.JPEG", "image/jpeg"),
        ("scan.png", "image/png"),
        ("scan.png", "image/png; charset=binary"),
    ])
    def test_accepts(self, filename, content_type):
        validate(filename, content_type)

    def test_missing_file(self):
        with pytest.raises(InputRejectedError) as exc_info:
            validate(None, None, size=0)
        assert exc_info.value.code == ErrorCode.NO_FILE
        assert exc_info.value.status_code == 400

    def test_empty_file(self):
        with pytest.raises(InputRejectedError) as exc_info:
            validate("photo.jpg", "image/jpeg", size=0)
        assert exc_info.value.code == ErrorCode.NO_FILE

    @pytest.mark.parametrize("filename,content_type", [
        ("photo.gif", "image/gif"),
        ("photo.gif", "image/jpeg"),
        ("photo.jpg", "text/plain"),
        ("photo", "image/png"),
        ("photo.png", None),
    ])
    def test_rejects_type(self, filename, content_type):
        with pytest.raises(InputRejectedError) as exc_info:
            validate(filename, content_type)
        assert exc_info.value.code == ErrorCode.UNSUPPORTED_TYPE

    def test_too_large(self):
        with pytest.raises(UploadTooLargeError) as exc_info:
            validate("photo.jpg", "image/jpeg", size=2001, max_bytes=2000)
        assert exc_info.value.status_code == 413
        assert exc_info.value.code == ErrorCode.FILE_TOO_LARGE

    def test_file_extension(self):
        assert file_extension("a/b/Photo.JPG") == ".jpg"
        assert file_extension("noext") == ""
        assert file_extension(None) == ""


class TestDecodeImage:

    def test_decodes_to_rgb(self):
        data = encode(solid_rgb(320, 320, (255, 0, 0)), ".png")

        image = decode_image(data)
        assert image.shape == (320, 320, 3)
        assert tuple(image[0, 0]) == (255, 0, 0)

    def test_drops_alpha(self):
        rgba = np.zeros((320, 320, 4), dtype=np.uint8)
        rgba[..., 1] = 255
        rgba[..., 3] = 128
        ok, buf = cv2.imencode(".png", rgba)
        assert ok

        image = decode_image(buf.tobytes())
        assert image.shape == (320, 320, 3)

    def test_grayscale_becomes_three_channels(self):
        ok, buf = cv2.imencode(".png", np.full((320, 320), 77, dtype=np.uint8))
        assert ok

        image = decode_image(buf.tobytes())
        assert image.shape == (320, 320, 3)
        assert tuple(image[5, 5]) == (77, 77, 77)

    @pytest.mark.parametrize("data", [b"", b"not an image", b"\xff\xd8\xff\xe0broken"])
    def test_corrupt(self, data):
        with pytest.raises(ImageDecodeError) as exc_info:
            decode_image(data)
        assert exc_info.value.code == ErrorCode.DECODE_FAILED
        assert exc_info.value.details


class TestMinDimension:

    def test_accepts_at_limit(self):
        check_min_dimension(make_rgb(300, 300), 300)

    @pytest.mark.parametrize("width,height", [(299, 800), (800, 299)])
    def test_rejects_below_limit(self, width, height):
        with pytest.raises(ImageTooSmallError) as exc_info:
            check_min_dimension(make_rgb(width, height), 300)
        assert exc_info.value.code == ErrorCode.IMAGE_TOO_SMALL
        assert f"{width}x{height}" in exc_info.value.details
