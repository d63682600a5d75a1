"""
Assembly of final detections from decoded instances.

Responsibility:
    Apply confidence thresholding, map boxes and keypoints from model-input
    space back to the original image, resolve class names and attach
    rendered masks. Input order is preserved; nothing is re-sorted.

Non-goals:
    - No tensor slicing (that belongs in tensor_decoder).
    - No non-maximum suppression; the model output is taken as final.

Hard-coded:
    - Keypoints are produced for a 320x320 model input, so they are scaled
      by original_size / 320 regardless of the box scale factors.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from d2go_bridge.bitmap_codec import DEFAULT_VARIANT
from d2go_bridge.detection import Detection, RawInstance, Rect
from d2go_bridge.errors import LabelIndexOutOfRange
from d2go_bridge.tensor_decoder import random_mask_color, render_mask

logger = logging.getLogger(__name__)

# TODO: confirm with the model owners whether this should follow the
# configured input size; boxes already use the dynamic scale factors.
KEYPOINT_REFERENCE_SIZE = 320


def assemble(
    raw: Sequence[RawInstance],
    class_names: Sequence[str],
    min_score: float,
    width_scale: float,
    height_scale: float,
    original_width: int,
    original_height: int,
    rng: Optional[np.random.Generator] = None,
    bitmap_variant: str = DEFAULT_VARIANT,
) -> List[Detection]:
    """Turn decoded instances into caller-facing detections.

    Args:
        raw: Decoded instances in tensor order.
        class_names: Class names for ids 1..len(class_names).
        min_score: Instances scoring below this are dropped; equal is kept.
        width_scale: Original width / model input width (applied to left, right).
        height_scale: Original height / model input height (applied to top, bottom).
        original_width: Original image width, for keypoint rescaling.
        original_height: Original image height, for keypoint rescaling.
        rng: Source of per-instance mask colors. A fresh unseeded generator
             is used when None.
        bitmap_variant: Bitmap header variant for rendered masks.

    Returns:
        Detections for the kept instances, in input order.

    Raises:
        LabelIndexOutOfRange: If a kept instance's label id has no class name.
    """
    if rng is None:
        rng = np.random.default_rng()

    detections: List[Detection] = []

    for instance in raw:
        if np.float32(instance.score) < np.float32(min_score):
            continue

        rect = Rect(
            left=instance.rect.left * width_scale,
            top=instance.rect.top * height_scale,
            right=instance.rect.right * width_scale,
            bottom=instance.rect.bottom * height_scale,
        )

        class_name = _class_name(class_names, instance.label_id)

        keypoints = None
        if instance.keypoints is not None:
            keypoints = tuple(
                (
                    float(x) * original_width / KEYPOINT_REFERENCE_SIZE,
                    float(y) * original_height / KEYPOINT_REFERENCE_SIZE,
                )
                for x, y, _ in instance.keypoints
            )

        mask = None
        if instance.mask is not None:
            mask = render_mask(instance.mask, random_mask_color(rng), bitmap_variant)

        detections.append(Detection(
            rect=rect,
            confidence=instance.score,
            class_name=class_name,
            mask=mask,
            keypoints=keypoints,
        ))

    logger.debug(
        "Kept %d of %d instances (min_score=%.2f)",
        len(detections), len(raw), min_score,
    )
    return detections


def _class_name(class_names: Sequence[str], label_id: int) -> str:
    """Resolve a 1-indexed label id; id 0 is background and never valid."""
    if not 1 <= label_id <= len(class_names):
        raise LabelIndexOutOfRange(
            f"Label id {label_id} has no class name "
            f"(expected 1..{len(class_names)})."
        )
    return class_names[label_id - 1]
