"""
Pixel and camera frame containers.

PixelBuffer is the RGBA8888 image handed between pipeline stages; YuvFrame
is the planar camera frame produced by the camera collaborator. Both are
frozen: a stage that produces one owns it until it is handed on, and the
next stage never mutates it.

Non-goals:
    - No color conversion (that belongs in color_converter).
    - No file I/O.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from d2go_bridge.errors import InvalidDimensions

PIXEL_FORMAT = "RGBA8888"
CHANNELS = 4


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """A row-major RGBA8888 image.

    Attributes:
        pixels: uint8 array of shape (height, width, 4). The constructor
                stores a read-only copy, so the caller's array is left alone.
    """

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.array(self.pixels, dtype=np.uint8, copy=True)
        if arr.ndim != 3 or arr.shape[2] != CHANNELS:
            raise InvalidDimensions(
                f"Expected an RGBA array of shape (H, W, 4), got {arr.shape}."
            )
        arr.setflags(write=False)
        object.__setattr__(self, "pixels", arr)

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int) -> "PixelBuffer":
        """Build a buffer from raw RGBA bytes laid out row by row."""
        if width < 0 or height < 0:
            raise InvalidDimensions(
                f"Width and height must be non-negative, got {width}x{height}."
            )
        expected = width * height * CHANNELS
        if len(data) != expected:
            raise InvalidDimensions(
                f"RGBA data for {width}x{height} must be {expected} bytes, "
                f"got {len(data)}."
            )
        arr = np.frombuffer(bytes(data), dtype=np.uint8).reshape(height, width, CHANNELS)
        return cls(arr)

    @classmethod
    def from_bgr(cls, frame: np.ndarray) -> "PixelBuffer":
        """Build a buffer from a BGR image as returned by cv2.imread()."""
        if frame is None or frame.size == 0:
            raise InvalidDimensions("Cannot build a pixel buffer from an empty image.")
        return cls(cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def format(self) -> str:
        return PIXEL_FORMAT

    def to_bytes(self) -> bytes:
        """Return the row-major RGBA bytes (length width*height*4)."""
        return self.pixels.tobytes()


@dataclass(frozen=True)
class Plane:
    """One image plane as delivered by the camera.

    Attributes:
        bytes: Raw plane bytes.
        pixel_stride: Distance in bytes between consecutive samples. Android
                      semi-planar chroma planes report 2; the bytes between
                      samples belong to the other chroma plane.
    """

    bytes: bytes
    pixel_stride: int = 1


@dataclass(frozen=True)
class YuvFrame:
    """A planar YUV420 camera frame.

    Attributes:
        width: Luma width in pixels.
        height: Luma height in pixels.
        y: Full-resolution luma plane.
        u: Quarter-resolution Cb plane.
        v: Quarter-resolution Cr plane.
        rotation: Clockwise rotation in degrees (0, 90, 180 or 270) to apply
                  after color conversion.
    """

    width: int
    height: int
    y: Plane
    u: Plane
    v: Plane
    rotation: int = 0
