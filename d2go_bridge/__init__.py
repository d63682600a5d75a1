"""
d2go_bridge: result materialization and image codecs for on-device detection.

Public API:
    - Predictor: Runs the pipeline against a loaded model.
    - Detection, Rect: Records returned to the caller.
    - PixelBuffer, YuvFrame, Plane: Image inputs.
    - The error taxonomy (MalformedFrame, TensorShapeMismatch,
      LabelIndexOutOfRange, InvalidDimensions, MalformedBitmap).

The stage modules (color_converter, bitmap_codec, tensor_decoder,
assembler) can also be used on their own.

Usage:
    from d2go_bridge import Predictor

    predictor = Predictor()
    predictor.load(model, class_names)
    detections = predictor.predict_stream_image(frame)
"""

from d2go_bridge.detection import Detection, Rect
from d2go_bridge.errors import (
    D2goBridgeError,
    InvalidDimensions,
    LabelIndexOutOfRange,
    MalformedBitmap,
    MalformedFrame,
    TensorShapeMismatch,
)
from d2go_bridge.frame import PixelBuffer, Plane, YuvFrame
from d2go_bridge.predictor import Predictor

__all__ = [
    "Predictor",
    "Detection",
    "Rect",
    "PixelBuffer",
    "Plane",
    "YuvFrame",
    "D2goBridgeError",
    "InvalidDimensions",
    "LabelIndexOutOfRange",
    "MalformedBitmap",
    "MalformedFrame",
    "TensorShapeMismatch",
]
