"""
Tests for the YUV420 to RGBA color converter.
"""

import numpy as np
import pytest

from d2go_bridge.color_converter import convert, to_nv21
from d2go_bridge.errors import MalformedFrame
from d2go_bridge.frame import Plane, YuvFrame


def _neutral_frame(width, height, luma, rotation=0):
    """Frame with the given luma bytes and neutral (128) chroma."""
    chroma = bytes([128] * (width * height // 4))
    return YuvFrame(
        width=width,
        height=height,
        y=Plane(bytes(luma)),
        u=Plane(chroma),
        v=Plane(chroma),
        rotation=rotation,
    )


def test_white_luma_converts_to_white():
    """Y=235 with neutral chroma is full white with opaque alpha."""
    frame = _neutral_frame(4, 4, [235] * 16)

    pixels = convert(frame)

    assert (pixels.width, pixels.height) == (4, 4)
    assert pixels.pixels.dtype == np.uint8
    assert np.all(pixels.pixels[..., :3] >= 253)
    assert np.all(pixels.pixels[..., 3] == 255)


def test_black_luma_converts_to_black():
    """Y=16 is video-range black."""
    frame = _neutral_frame(2, 2, [16] * 4)

    pixels = convert(frame)

    assert np.all(pixels.pixels[..., :3] <= 2)
    assert np.all(pixels.pixels[..., 3] == 255)


def test_nv21_order_is_y_then_vu_pairs():
    """Chroma is interleaved V first, then U."""
    frame = YuvFrame(
        width=4,
        height=2,
        y=Plane(bytes(range(8))),
        u=Plane(bytes([100, 101])),
        v=Plane(bytes([200, 201])),
    )

    data = to_nv21(frame)

    assert data.tolist() == list(range(8)) + [200, 100, 201, 101]


def test_strided_chroma_skips_padding():
    """Only bytes at multiples of the pixel stride are chroma samples."""
    u_samples = [10, 20, 30, 40]
    v_samples = [50, 60, 70, 80]
    # Stride 2 with padding bytes in between; the trailing pad is dropped
    u_bytes = bytes([10, 0xEE, 20, 0xEE, 30, 0xEE, 40])
    v_bytes = bytes([50, 0xEE, 60, 0xEE, 70, 0xEE, 80, 0xEE])
    frame = YuvFrame(
        width=4,
        height=4,
        y=Plane(bytes([128] * 16)),
        u=Plane(u_bytes, pixel_stride=2),
        v=Plane(v_bytes, pixel_stride=2),
    )

    data = to_nv21(frame)

    assert data.size == 24
    assert data[16::2].tolist() == v_samples
    assert data[17::2].tolist() == u_samples


def test_rotation_90_swaps_dimensions_clockwise():
    """A bright left column becomes the top row after a clockwise turn."""
    width, height = 4, 2
    luma = np.full((height, width), 16, dtype=np.uint8)
    luma[:, 0] = 235
    frame = _neutral_frame(width, height, luma.tobytes(), rotation=90)

    pixels = convert(frame)

    assert (pixels.width, pixels.height) == (2, 4)
    assert np.all(pixels.pixels[0, :, 0] >= 253)
    assert np.all(pixels.pixels[1:, :, 0] <= 2)


def test_rotation_180_moves_every_pixel():
    """Every luma sample lands at its 180-degree position."""
    luma = np.full((2, 4), 16, dtype=np.uint8)
    luma[0, 0] = 235
    luma[0, 1] = 235
    luma[1, 2] = 235
    frame = _neutral_frame(4, 2, luma.tobytes(), rotation=180)

    pixels = convert(frame)

    assert (pixels.width, pixels.height) == (4, 2)
    bright = np.array([
        [False, True, False, False],
        [False, False, True, True],
    ])
    assert np.all(pixels.pixels[bright][:, :3] >= 253)
    assert np.all(pixels.pixels[~bright][:, :3] <= 2)


def test_invalid_rotation_rejected():
    """Only multiples of 90 degrees are accepted."""
    frame = _neutral_frame(2, 2, [128] * 4, rotation=45)

    with pytest.raises(MalformedFrame, match="rotation"):
        convert(frame)


def test_short_luma_plane_rejected():
    """A Y plane shorter than width*height is malformed."""
    frame = _neutral_frame(4, 4, [128] * 15)

    with pytest.raises(MalformedFrame, match="Y plane"):
        convert(frame)


def test_oversized_chroma_plane_rejected():
    """A stride-1 chroma plane longer than width*height/4 is malformed."""
    frame = YuvFrame(
        width=2,
        height=2,
        y=Plane(bytes(4)),
        u=Plane(bytes(2)),
        v=Plane(bytes(1)),
    )

    with pytest.raises(MalformedFrame, match="U plane"):
        convert(frame)


def test_odd_dimensions_rejected():
    """4:2:0 subsampling needs even width and height."""
    frame = YuvFrame(
        width=3,
        height=2,
        y=Plane(bytes(6)),
        u=Plane(bytes(1)),
        v=Plane(bytes(1)),
    )

    with pytest.raises(MalformedFrame, match="even"):
        convert(frame)


def test_zero_stride_rejected():
    """A pixel stride below 1 is malformed."""
    frame = YuvFrame(
        width=2,
        height=2,
        y=Plane(bytes(4)),
        u=Plane(bytes(1), pixel_stride=0),
        v=Plane(bytes(1)),
    )

    with pytest.raises(MalformedFrame, match="stride"):
        convert(frame)
