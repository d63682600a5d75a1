"""
Serialization for the inference bridge.

Responsibility:
    Export detection results for offline inspection: mask overlays as
    .bmp files and detections as JSON in the bridge's wire format.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output; writes complete files.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from d2go_bridge.detection import Detection

logger = logging.getLogger(__name__)


def save_masks(
    detections: Sequence[Detection],
    output_dir: str,
    stem: str,
) -> List[Optional[Path]]:
    """Write each detection's mask bitmap to `<output_dir>/<stem>_mask_<i>.bmp`.

    Returns:
        One entry per detection: the written path, or None when the
        detection has no mask.

    Raises:
        OSError: If the output directory is not writable.
    """
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths: List[Optional[Path]] = []
    for i, det in enumerate(detections):
        if det.mask is None:
            paths.append(None)
            continue
        path = out_dir / f"{stem}_mask_{i:03d}.bmp"
        path.write_bytes(det.mask)
        paths.append(path)

    written = sum(p is not None for p in paths)
    if written:
        logger.info("Saved %d mask bitmaps to %s", written, out_dir)
    return paths


def save_json(
    detections_by_source: Dict[str, List[Detection]],
    output_path: str,
    mask_paths: Optional[Dict[str, List[Optional[Path]]]] = None,
) -> None:
    """Export all detections to a JSON file.

    Output schema:
        {
            "sources": [
                {
                    "source": "photo.jpg",
                    "detections": [
                        {"rect": {...}, "mask": "photo_mask_000.bmp",
                         "keypoints": [[x, y], ...],
                         "confidenceInClass": ..., "detectedClass": ...}
                    ]
                }
            ],
            "total_sources": N,
            "total_detections": M
        }

    Mask bytes are not embedded: "mask" holds the saved bitmap's file name
    when mask_paths has one, and is omitted otherwise.

    Args:
        detections_by_source: Mapping of source name → list of Detection objects.
        output_path: Path to the output JSON file.
        mask_paths: Optional mapping of source name → save_masks() result.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)
    mask_paths = mask_paths or {}

    sources = []
    total_detections = 0

    for source in sorted(detections_by_source.keys()):
        dets = detections_by_source[source]
        paths = mask_paths.get(source) or [None] * len(dets)
        total_detections += len(dets)
        sources.append({
            "source": source,
            "detections": [_to_json(d, p) for d, p in zip(dets, paths)],
        })

    payload = {
        "sources": sources,
        "total_sources": len(sources),
        "total_detections": total_detections,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d sources, %d detections)",
        output_path, len(sources), total_detections,
    )


def _to_json(det: Detection, mask_path: Optional[Path]) -> dict:
    out = det.to_dict()
    out.pop("mask", None)
    if mask_path is not None:
        out["mask"] = mask_path.name
    return out


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
