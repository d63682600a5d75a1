"""
YUV420 to RGBA conversion for camera frames.

Responsibility:
    Turn a planar YUV420 camera frame (three planes, each with its own pixel
    stride) into an RGBA8888 PixelBuffer, then rotate it to the frame's
    orientation.

Non-goals:
    - No resizing or normalization (that belongs in preprocessor).
    - No partial conversion of inconsistent frames.

Hard-coded:
    - Chroma is subsampled 2x2 (4:2:0), so width and height must be even.
    - Planes are repacked as NV21: all Y samples, then interleaved V/U pairs.
    - Conversion uses OpenCV's BT.601 video-range NV21 coefficients.
"""

import numpy as np
import cv2

from d2go_bridge.errors import MalformedFrame
from d2go_bridge.frame import Plane, PixelBuffer, YuvFrame

# Clockwise rotation in degrees -> cv2.rotate code
_ROTATIONS = {
    0: None,
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def convert(frame: YuvFrame) -> PixelBuffer:
    """Convert a YUV420 camera frame into a rotated RGBA pixel buffer.

    Args:
        frame: Planar camera frame with per-plane pixel strides.

    Returns:
        An RGBA PixelBuffer with alpha 255. For 90 and 270 degree rotations
        the output is height x width.

    Raises:
        MalformedFrame: If the dimensions, rotation, strides or plane
                        lengths are inconsistent.
    """
    if frame.rotation not in _ROTATIONS:
        raise MalformedFrame(
            f"Unsupported rotation: {frame.rotation}. "
            f"Must be one of {sorted(_ROTATIONS)}."
        )

    nv21 = to_nv21(frame)
    yuv = nv21.reshape(frame.height * 3 // 2, frame.width)
    rgba = cv2.cvtColor(yuv, cv2.COLOR_YUV2RGBA_NV21)

    code = _ROTATIONS[frame.rotation]
    if code is not None:
        rgba = cv2.rotate(rgba, code)

    return PixelBuffer(rgba)


def to_nv21(frame: YuvFrame) -> np.ndarray:
    """Repack the three planes into one NV21 buffer.

    Returns:
        A 1-D uint8 array of length width*height*3/2: the Y samples,
        followed by V/U sample pairs.

    Raises:
        MalformedFrame: If any plane is inconsistent with the frame geometry.
    """
    _validate_geometry(frame)

    luma_size = frame.width * frame.height
    chroma_size = luma_size // 4

    y = _destride(frame.y, luma_size, "Y")
    u = _destride(frame.u, chroma_size, "U")
    v = _destride(frame.v, chroma_size, "V")

    data = np.empty(luma_size + 2 * chroma_size, dtype=np.uint8)
    data[:luma_size] = y
    data[luma_size::2] = v
    data[luma_size + 1::2] = u
    return data


def _validate_geometry(frame: YuvFrame) -> None:
    if frame.width <= 0 or frame.height <= 0:
        raise MalformedFrame(
            f"Frame dimensions must be positive, got {frame.width}x{frame.height}."
        )
    if frame.width % 2 or frame.height % 2:
        raise MalformedFrame(
            f"YUV420 frames need even dimensions, got {frame.width}x{frame.height}."
        )


def _destride(plane: Plane, samples: int, name: str) -> np.ndarray:
    """Pick every pixel_stride-th byte of a plane.

    A plane holding `samples` samples at stride s must be between
    (samples - 1) * s + 1 and samples * s bytes long; the trailing padding
    after the last sample is optional.
    """
    stride = plane.pixel_stride
    if stride < 1:
        raise MalformedFrame(f"{name} plane pixel stride must be >= 1, got {stride}.")

    raw = np.frombuffer(plane.bytes, dtype=np.uint8)
    min_len = (samples - 1) * stride + 1
    max_len = samples * stride
    if not min_len <= raw.size <= max_len:
        raise MalformedFrame(
            f"{name} plane has {raw.size} bytes; expected {samples} samples at "
            f"stride {stride} ({min_len}..{max_len} bytes)."
        )

    return raw[::stride][:samples]
