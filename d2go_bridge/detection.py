"""
Detection data transfer objects.

Rect, RawInstance and Detection are the records that flow out of the
tensor decoder and the assembler. Detection is the final type returned to
the caller; to_dict() renders it in the bridge's wire format.

Non-goals:
    - No rendering logic.
    - No file I/O.
    - No coordinate transformation methods (that belongs in assembler).
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True, slots=True)
class Rect:
    """An axis-aligned box as (left, top, right, bottom) floats."""

    left: float
    top: float
    right: float
    bottom: float

    def to_dict(self) -> dict:
        return {
            "left": self.left,
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
        }


@dataclass(frozen=True, eq=False)
class RawInstance:
    """One decoded model instance, still in model-input coordinates.

    Attributes:
        rect: Box in model-input pixels.
        score: Instance confidence.
        label_id: 1-indexed class id (0 is background).
        mask: Optional (28, 28) float grid with values in [0, 1].
        keypoints: Optional (17, 3) array of (x, y, confidence) rows.
    """

    rect: Rect
    score: float
    label_id: int
    mask: Optional[np.ndarray] = None
    keypoints: Optional[np.ndarray] = None


@dataclass(frozen=True)
class Detection:
    """A detected instance in original-image coordinates.

    Attributes:
        rect: Bounding box in original-image pixels.
        confidence: Instance score in [0.0, 1.0].
        class_name: Resolved class label.
        mask: Optional encoded bitmap file (28x28 overlay).
        keypoints: Optional 17 (x, y) pairs in original-image pixels.
    """

    rect: Rect
    confidence: float
    class_name: str
    mask: Optional[bytes] = None
    keypoints: Optional[Tuple[Tuple[float, float], ...]] = None

    def to_dict(self) -> dict:
        """Return the wire-format dict handed back to the application.

        "mask" and "keypoints" are only present for models that produce them.
        """
        out: dict = {"rect": self.rect.to_dict()}
        if self.mask is not None:
            out["mask"] = self.mask
        if self.keypoints is not None:
            out["keypoints"] = [[x, y] for x, y in self.keypoints]
        out["confidenceInClass"] = self.confidence
        out["detectedClass"] = self.class_name
        return out
