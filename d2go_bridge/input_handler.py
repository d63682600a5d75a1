"""
Input loading for the command-line bridge.

Responsibility:
    Read a static image file into an RGBA PixelBuffer, or a raw planar
    I420 dump into a YuvFrame, validating the source up front.

Non-goals:
    - No live camera access; camera frames arrive from the host app.
    - No implicit fallback between source types.
"""

import logging
from pathlib import Path

import cv2

from d2go_bridge.errors import MalformedFrame
from d2go_bridge.frame import Plane, PixelBuffer, YuvFrame

logger = logging.getLogger(__name__)

# Image extensions recognized by this handler
_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}


def load_image(path: str) -> PixelBuffer:
    """Decode an image file into an RGBA PixelBuffer.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the extension is unknown or the file is unreadable.
    """
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(
            f"Input image not found: '{source}'. Provide a valid file path."
        )

    ext = source.suffix.lower()
    if ext not in _IMAGE_EXTENSIONS:
        raise ValueError(
            f"Unrecognized file extension: '{ext}' for source '{source}'. "
            f"Supported images: {_IMAGE_EXTENSIONS}."
        )

    frame = cv2.imread(str(source), cv2.IMREAD_COLOR)
    if frame is None:
        raise ValueError(f"Unreadable image: '{source}'.")

    logger.info("Loaded image %s (%dx%d)", source, frame.shape[1], frame.shape[0])
    return PixelBuffer.from_bgr(frame)


def load_yuv_frame(path: str, width: int, height: int, rotation: int = 0) -> YuvFrame:
    """Read a planar I420 dump (Y, then U, then V; stride 1) as a YuvFrame.

    Raises:
        FileNotFoundError: If the file does not exist.
        MalformedFrame: If the file size does not match width x height.
    """
    source = Path(path)
    if not source.is_file():
        raise FileNotFoundError(
            f"Input frame not found: '{source}'. Provide a valid file path."
        )

    data = source.read_bytes()
    luma = width * height
    chroma = luma // 4
    if width <= 0 or height <= 0 or len(data) != luma + 2 * chroma:
        raise MalformedFrame(
            f"I420 dump '{source}' has {len(data)} bytes; "
            f"a {width}x{height} frame needs {luma + 2 * chroma}."
        )

    logger.info("Loaded I420 frame %s (%dx%d, rotation=%d)", source, width, height, rotation)
    return YuvFrame(
        width=width,
        height=height,
        y=Plane(data[:luma]),
        u=Plane(data[luma:luma + chroma]),
        v=Plane(data[luma + chroma:]),
        rotation=rotation,
    )
