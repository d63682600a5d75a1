"""
Decoding of raw model output tensors.

Responsibility:
    Interpret the flattened output tensors of a D2Go-style detector
    (boxes, scores, labels and optional masks/keypoints) as per-instance
    records, and render instance masks as bitmap overlays.

Non-goals:
    - No thresholding, rescaling or label lookup (that belongs in assembler).
    - No model execution.

Hard-coded:
    - Tensor layout, per instance i:
        boxes[4i:4i+4]         left, top, right, bottom (model-input pixels)
        scores[i], labels[i]   confidence and 1-indexed class id
        masks[784i:784(i+1)]   28x28 mask grid, values in [0, 1]
        keypoints[51i:51(i+1)] 17 COCO keypoints as (x, y, confidence)
    - Mask cells >= 0.5 are foreground, independent of the score threshold.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

import numpy as np

from d2go_bridge.bitmap_codec import DEFAULT_VARIANT, encode
from d2go_bridge.detection import RawInstance, Rect
from d2go_bridge.errors import TensorShapeMismatch
from d2go_bridge.frame import PixelBuffer

logger = logging.getLogger(__name__)

BOX_STRIDE = 4
MASK_SIZE = 28
MASK_STRIDE = MASK_SIZE * MASK_SIZE
NUM_KEYPOINTS = 17
KEYPOINT_STRIDE = NUM_KEYPOINTS * 3

MASK_THRESHOLD = 0.5
MASK_ALPHA = 128


@dataclass(frozen=True, eq=False)
class RawInferenceOutput:
    """Named output tensors of one inference call, flattened to 1-D."""

    boxes: np.ndarray
    scores: np.ndarray
    labels: np.ndarray
    masks: Optional[np.ndarray] = None
    keypoints: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "boxes", _flatten(self.boxes, np.float32))
        object.__setattr__(self, "scores", _flatten(self.scores, np.float32))
        object.__setattr__(self, "labels", _class_ids(self.labels))
        if self.masks is not None:
            object.__setattr__(self, "masks", _flatten(self.masks, np.float32))
        if self.keypoints is not None:
            object.__setattr__(self, "keypoints", _flatten(self.keypoints, np.float32))

    @property
    def num_instances(self) -> int:
        return int(self.scores.size)

    @classmethod
    def empty(cls) -> "RawInferenceOutput":
        return cls(boxes=np.empty(0), scores=np.empty(0), labels=np.empty(0))

    @classmethod
    def from_mapping(cls, tensors: Mapping[str, Any]) -> "RawInferenceOutput":
        """Build from the model's name -> tensor mapping.

        A mapping without "boxes" comes from a model with no detection head
        and yields no instances. "scores" and "labels" are required once
        "boxes" is present.

        Raises:
            TensorShapeMismatch: If "scores" or "labels" is missing.
        """
        if "boxes" not in tensors:
            logger.warning(
                "Model output has no 'boxes' tensor (got %s); no instances decoded.",
                sorted(tensors),
            )
            return cls.empty()

        missing = [name for name in ("scores", "labels") if name not in tensors]
        if missing:
            raise TensorShapeMismatch(
                f"Model output has 'boxes' but is missing {missing}."
            )

        return cls(
            boxes=tensors["boxes"],
            scores=tensors["scores"],
            labels=tensors["labels"],
            masks=tensors.get("masks"),
            keypoints=tensors.get("keypoints"),
        )


def decode(output: RawInferenceOutput) -> List[RawInstance]:
    """Split flattened output tensors into per-instance records.

    Args:
        output: The model's named tensors.

    Returns:
        One RawInstance per score, in tensor order.

    Raises:
        TensorShapeMismatch: If any tensor length disagrees with the
                             instance count and its per-instance stride.
    """
    n = output.num_instances
    _check_length("boxes", output.boxes, n, BOX_STRIDE)
    _check_length("labels", output.labels, n, 1)
    if output.masks is not None:
        _check_length("masks", output.masks, n, MASK_STRIDE)
    if output.keypoints is not None:
        _check_length("keypoints", output.keypoints, n, KEYPOINT_STRIDE)

    boxes = output.boxes.reshape(n, BOX_STRIDE)
    masks = None
    if output.masks is not None:
        masks = output.masks.reshape(n, MASK_SIZE, MASK_SIZE)
    keypoints = None
    if output.keypoints is not None:
        keypoints = output.keypoints.reshape(n, NUM_KEYPOINTS, 3)

    instances = []
    for i in range(n):
        left, top, right, bottom = (float(v) for v in boxes[i])
        instances.append(RawInstance(
            rect=Rect(left=left, top=top, right=right, bottom=bottom),
            score=float(output.scores[i]),
            label_id=int(output.labels[i]),
            mask=masks[i] if masks is not None else None,
            keypoints=keypoints[i] if keypoints is not None else None,
        ))

    logger.debug(
        "Decoded %d instances (masks=%s, keypoints=%s)",
        n, masks is not None, keypoints is not None,
    )
    return instances


def random_mask_color(rng: np.random.Generator) -> Tuple[int, int, int]:
    """Draw an RGB overlay color, each channel in [0, 255)."""
    r, g, b = rng.integers(0, 255, size=3)
    return int(r), int(g), int(b)


def render_mask(
    grid: np.ndarray,
    color: Tuple[int, int, int],
    variant: str = DEFAULT_VARIANT,
) -> bytes:
    """Render a 28x28 mask grid as a semi-transparent bitmap overlay.

    Every pixel carries the instance color; background cells (< 0.5) get
    alpha 0 and foreground cells (>= 0.5) alpha 128.

    Args:
        grid: 784 mask values (any shape), row-major from the top row.
        color: RGB overlay color for this instance.
        variant: Bitmap header variant passed to the codec.

    Returns:
        The encoded bitmap file bytes.

    Raises:
        TensorShapeMismatch: If the grid does not hold exactly 784 values.
    """
    cells = np.asarray(grid, dtype=np.float32)
    if cells.size != MASK_STRIDE:
        raise TensorShapeMismatch(
            f"Mask grid must hold {MASK_STRIDE} values, got {cells.size}."
        )
    cells = cells.reshape(MASK_SIZE, MASK_SIZE)

    rgba = np.empty((MASK_SIZE, MASK_SIZE, 4), dtype=np.uint8)
    rgba[..., :3] = color
    rgba[..., 3] = np.where(cells >= MASK_THRESHOLD, MASK_ALPHA, 0)

    return encode(PixelBuffer(rgba), variant)


def _flatten(tensor: Any, dtype) -> np.ndarray:
    return np.asarray(tensor, dtype=dtype).reshape(-1)


def _class_ids(tensor: Any) -> np.ndarray:
    labels = np.asarray(tensor).reshape(-1)
    if labels.size and not np.array_equal(labels, np.round(labels)):
        raise TensorShapeMismatch(
            f"'labels' holds non-integral class ids: {labels[labels != np.round(labels)][:5]}."
        )
    return labels.astype(np.int64)


def _check_length(name: str, tensor: np.ndarray, n: int, stride: int) -> None:
    expected = n * stride
    if tensor.size != expected:
        raise TensorShapeMismatch(
            f"'{name}' has {tensor.size} values; expected {expected} "
            f"({n} instances x {stride})."
        )
