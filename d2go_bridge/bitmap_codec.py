"""
Minimal bitmap (BMP) file codec.

Responsibility:
    Serialize an RGBA PixelBuffer into a self-contained, uncompressed,
    single-frame 32-bit bitmap file, and parse the headers of such files.

Layout written by encode():
    - 14-byte file header: "BM", total file size, two zero reserved
      fields, pixel data offset (14 + info header size).
    - Info header, either
        "legacy": 40-byte BITMAPINFOHEADER, BI_RGB, or
        "v4":     108-byte BITMAPV4HEADER, BI_BITFIELDS with channel masks
                  R=0x00FF0000 G=0x0000FF00 B=0x000000FF A=0xFF000000.
    - Pixel array, bottom row first, BGRA bytes per pixel. Rows of 32-bit
      pixels are always 4-byte aligned, so there is no row padding.

All multi-byte fields are little-endian; width and height are signed.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from d2go_bridge.errors import InvalidDimensions, MalformedBitmap
from d2go_bridge.frame import PixelBuffer

logger = logging.getLogger(__name__)

FILE_HEADER_SIZE = 14
INFO_HEADER_SIZES = {"legacy": 40, "v4": 108}
DEFAULT_VARIANT = "v4"

BI_RGB = 0
BI_BITFIELDS = 3
BITS_PER_PIXEL = 32

RGBA_MASKS = (0x00FF0000, 0x0000FF00, 0x000000FF, 0xFF000000)

_MAGIC = b"BM"
_FILE_HEADER = struct.Struct("<2sIHHI")
_INFO_HEADER = struct.Struct("<IiiHHIIiiII")
_MASKS = struct.Struct("<IIII")

# RGBA <-> BGRA channel order
_SWAP_RB = [2, 1, 0, 3]


@dataclass(frozen=True)
class BitmapHeader:
    """Header fields parsed from a bitmap file."""

    file_size: int
    pixel_offset: int
    info_size: int
    width: int
    height: int
    planes: int
    bits_per_pixel: int
    compression: int
    image_size: int
    masks: Tuple[int, int, int, int]


def info_header_size(variant: str) -> int:
    """Return the info header length in bytes for a bitmap variant."""
    try:
        return INFO_HEADER_SIZES[variant]
    except KeyError:
        raise ValueError(
            f"Unknown bitmap variant: '{variant}'. "
            f"Must be one of {sorted(INFO_HEADER_SIZES)}."
        ) from None


def encode(pixels: PixelBuffer, variant: str = DEFAULT_VARIANT) -> bytes:
    """Encode an RGBA pixel buffer as a 32-bit bitmap file.

    Args:
        pixels: The image to encode.
        variant: "v4" (108-byte header with RGBA bit masks, keeps alpha for
                 any reader) or "legacy" (40-byte header).

    Returns:
        The complete file: 14 + info header size + width*height*4 bytes.

    Raises:
        InvalidDimensions: If the buffer has zero width or height.
        ValueError: If the variant is unknown.
    """
    width, height = pixels.width, pixels.height
    if width <= 0 or height <= 0:
        raise InvalidDimensions(
            f"Cannot encode a {width}x{height} bitmap; both dimensions must be positive."
        )

    info_size = info_header_size(variant)
    offset = FILE_HEADER_SIZE + info_size
    image_size = width * height * 4

    file_header = _FILE_HEADER.pack(_MAGIC, offset + image_size, 0, 0, offset)

    compression = BI_BITFIELDS if variant == "v4" else BI_RGB
    info_header = _INFO_HEADER.pack(
        info_size,
        width,
        height,
        1,  # color planes
        BITS_PER_PIXEL,
        compression,
        image_size,
        0,  # horizontal resolution
        0,  # vertical resolution
        0,  # palette colors
        0,  # important colors
    )
    if variant == "v4":
        # Masks, color space type, CIEXYZ endpoints (36 bytes), RGB gamma (12 bytes)
        info_header += _MASKS.pack(*RGBA_MASKS) + bytes(4 + 36 + 12)

    body = pixels.pixels[::-1, :, _SWAP_RB].tobytes()
    logger.debug("Encoded %dx%d bitmap (%s header)", width, height, variant)
    return file_header + info_header + body


def read_header(data: bytes) -> BitmapHeader:
    """Parse the file and info headers of a bitmap.

    Raises:
        MalformedBitmap: If the magic is wrong or the headers are truncated.
    """
    if len(data) < FILE_HEADER_SIZE + _INFO_HEADER.size:
        raise MalformedBitmap(f"Bitmap too short for its headers ({len(data)} bytes).")

    magic, file_size, _, _, offset = _FILE_HEADER.unpack_from(data, 0)
    if magic != _MAGIC:
        raise MalformedBitmap(f"Not a bitmap file (magic {magic!r}).")

    (info_size, width, height, planes, bpp, compression, image_size,
     _, _, _, _) = _INFO_HEADER.unpack_from(data, FILE_HEADER_SIZE)

    if info_size < _INFO_HEADER.size:
        raise MalformedBitmap(f"Unsupported info header size: {info_size}.")

    # Channel masks live inside V2+ headers, or right after a 40-byte header
    # when the compression is BI_BITFIELDS.
    masks = RGBA_MASKS
    if compression == BI_BITFIELDS:
        masks_at = FILE_HEADER_SIZE + _INFO_HEADER.size
        if len(data) < masks_at + _MASKS.size:
            raise MalformedBitmap("Bitmap truncated inside its channel masks.")
        masks = _MASKS.unpack_from(data, masks_at)
        if info_size < _INFO_HEADER.size + _MASKS.size:
            # BITMAPINFOHEADER + BI_BITFIELDS carries no alpha mask
            masks = masks[:3] + (0,)

    return BitmapHeader(
        file_size=file_size,
        pixel_offset=offset,
        info_size=info_size,
        width=width,
        height=height,
        planes=planes,
        bits_per_pixel=bpp,
        compression=compression,
        image_size=image_size,
        masks=masks,
    )

