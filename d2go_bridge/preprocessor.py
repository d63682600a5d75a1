"""
Preprocessing for the inference pipeline.

Responsibility:
    Resize an RGBA PixelBuffer to the model input size and convert it into
    a normalized float32 CHW tensor.

Non-goals:
    - No frame acquisition or color-space conversion.
    - No inference or coordinate mapping.

Hard-coded:
    - Channel order is RGB; alpha is dropped.
    - Values are scaled to [0, 1] before mean/std normalization.
"""

from typing import Sequence, Tuple

import numpy as np
import cv2

from d2go_bridge.config import ModelConfig
from d2go_bridge.errors import InvalidDimensions
from d2go_bridge.frame import PixelBuffer


def resize(pixels: PixelBuffer, input_size: Tuple[int, int]) -> PixelBuffer:
    """Bilinearly resize a pixel buffer to (width, height)."""
    if pixels.width == 0 or pixels.height == 0:
        raise InvalidDimensions(
            "Cannot resize an empty pixel buffer. "
            "Ensure the input source is providing valid frames."
        )

    width, height = input_size
    if (pixels.width, pixels.height) == (width, height):
        return pixels

    resized = cv2.resize(pixels.pixels, (width, height), interpolation=cv2.INTER_LINEAR)
    return PixelBuffer(resized)


def to_input_tensor(
    pixels: PixelBuffer,
    mean: Sequence[float],
    std: Sequence[float],
) -> np.ndarray:
    """Convert RGBA pixels into a normalized (3, H, W) float32 tensor.

    Each channel c becomes (value / 255 - mean[c]) / std[c].
    """
    rgb = pixels.pixels[..., :3].astype(np.float32) / 255.0
    rgb = (rgb - np.asarray(mean, dtype=np.float32)) / np.asarray(std, dtype=np.float32)
    return np.ascontiguousarray(rgb.transpose(2, 0, 1))


def preprocess(pixels: PixelBuffer, config: ModelConfig) -> np.ndarray:
    """Resize and normalize a pixel buffer for the model.

    Args:
        pixels: Input image in RGBA.
        config: ModelConfig providing input_size, mean and std.

    Returns:
        A float32 array of shape (3, input_height, input_width).

    Raises:
        InvalidDimensions: If the pixel buffer is empty.
    """
    resized = resize(pixels, config.input_size)
    return to_input_tensor(resized, config.mean, config.std)
