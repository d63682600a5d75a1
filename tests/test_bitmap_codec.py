"""
Tests for the bitmap codec.
"""

import struct

import cv2
import numpy as np
import pytest

from d2go_bridge.bitmap_codec import RGBA_MASKS, encode, read_header
from d2go_bridge.errors import InvalidDimensions, MalformedBitmap
from d2go_bridge.frame import PixelBuffer


def _sample_pixels(width=3, height=2):
    rng = np.random.default_rng(7)
    return PixelBuffer(rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8))


def test_v4_header_layout():
    """The V4 file is 14 + 108 + w*h*4 bytes with bit-field masks."""
    pixels = PixelBuffer(np.zeros((28, 28, 4), dtype=np.uint8))

    data = encode(pixels, "v4")

    assert len(data) == 14 + 108 + 28 * 28 * 4
    magic, file_size, res1, res2, offset = struct.unpack_from("<2sIHHI", data, 0)
    assert magic == b"BM"
    assert file_size == len(data)
    assert (res1, res2) == (0, 0)
    assert offset == 14 + 108

    info_size, width, height, planes, bpp, compression, image_size = struct.unpack_from(
        "<IiiHHII", data, 14
    )
    assert info_size == 108
    assert (width, height) == (28, 28)
    assert planes == 1
    assert bpp == 32
    assert compression == 3
    assert image_size == 28 * 28 * 4
    assert struct.unpack_from("<IIII", data, 54) == (
        0x00FF0000, 0x0000FF00, 0x000000FF, 0xFF000000,
    )


def test_legacy_header_layout():
    """The legacy file uses a 40-byte BI_RGB info header."""
    pixels = _sample_pixels(5, 4)

    data = encode(pixels, "legacy")

    assert len(data) == 14 + 40 + 5 * 4 * 4
    header = read_header(data)
    assert header.info_size == 40
    assert header.pixel_offset == 54
    assert header.compression == 0
    assert (header.width, header.height) == (5, 4)


def test_pixels_written_bottom_up_as_bgra():
    """The first stored pixel is the bottom-left one, in BGRA order."""
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    rgba[0, 0] = (1, 2, 3, 4)      # top-left
    rgba[1, 0] = (10, 20, 30, 40)  # bottom-left
    data = encode(PixelBuffer(rgba))

    body = data[14 + 108:]

    assert list(body[:4]) == [30, 20, 10, 40]
    assert list(body[8:12]) == [3, 2, 1, 4]


def test_v4_round_trip_through_opencv():
    """OpenCV reads the V4 file back to the exact RGBA values, alpha included."""
    pixels = _sample_pixels(7, 5)

    bgra = cv2.imdecode(np.frombuffer(encode(pixels, "v4"), np.uint8), cv2.IMREAD_UNCHANGED)

    assert bgra.shape == (5, 7, 4)
    np.testing.assert_array_equal(cv2.cvtColor(bgra, cv2.COLOR_BGRA2RGBA), pixels.pixels)


def test_legacy_round_trip_through_opencv():
    """OpenCV reads the legacy file back to the same colors."""
    pixels = _sample_pixels(7, 5)

    bgr = cv2.imdecode(np.frombuffer(encode(pixels, "legacy"), np.uint8), cv2.IMREAD_COLOR)

    assert bgr.shape == (5, 7, 3)
    np.testing.assert_array_equal(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), pixels.pixels[..., :3])


def test_read_header_masks():
    """V4 headers expose the RGBA channel masks."""
    header = read_header(encode(_sample_pixels()))

    assert header.masks == RGBA_MASKS


def test_zero_sized_buffer_rejected():
    """Empty buffers cannot be encoded."""
    empty = PixelBuffer(np.zeros((0, 5, 4), dtype=np.uint8))

    with pytest.raises(InvalidDimensions):
        encode(empty)


def test_unknown_variant_rejected():
    """Only 'v4' and 'legacy' headers exist."""
    with pytest.raises(ValueError, match="variant"):
        encode(_sample_pixels(), "v5")


def test_read_header_bad_magic():
    """Files not starting with 'BM' are rejected."""
    data = b"XX" + encode(_sample_pixels())[2:]

    with pytest.raises(MalformedBitmap, match="magic"):
        read_header(data)


def test_read_header_truncated():
    """A file cut inside its info header is rejected."""
    data = encode(_sample_pixels())[:30]

    with pytest.raises(MalformedBitmap, match="too short"):
        read_header(data)
