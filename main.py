"""
d2go-bridge CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, run one input
    through the Predictor against recorded model outputs, and write the
    detections (and mask bitmaps) to disk.

Usage:
    python main.py --image photo.jpg --outputs recorded.npz --classes person,bicycle
    python main.py --yuv frame.yuv --width 640 --height 480 --rotation 90 \\
        --outputs recorded.npz --classes person --output-mode save_json,save_masks
    python main.py --config my_config.yaml ...

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import dataclasses
import logging
import sys
import time
from pathlib import Path

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from d2go_bridge.config import get_project_root, load_config, validate
from d2go_bridge.errors import D2goBridgeError
from d2go_bridge.input_handler import load_image, load_yuv_frame
from d2go_bridge.model_loader import load_replay_model
from d2go_bridge.predictor import Predictor
from d2go_bridge.serializer import save_json, save_masks


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="d2go-bridge: replay recorded detector outputs through the bridge",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--image",
        type=str,
        help="Static image file to run through predict_image.",
    )
    source.add_argument(
        "--yuv",
        type=str,
        help="Planar I420 dump to run through predict_stream_image.",
    )
    parser.add_argument("--width", type=int, help="Frame width for --yuv.")
    parser.add_argument("--height", type=int, help="Frame height for --yuv.")
    parser.add_argument(
        "--rotation",
        type=int,
        default=0,
        choices=[0, 90, 180, 270],
        help="Clockwise frame rotation for --yuv.",
    )
    parser.add_argument(
        "--outputs",
        type=str,
        required=True,
        help="Recorded model outputs (.npz with boxes, scores, labels[, masks, keypoints]).",
    )
    parser.add_argument(
        "--classes",
        type=str,
        required=True,
        help="Comma-separated class names for label ids 1..N.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--min-score",
        type=float,
        help="Minimum instance score (0.0 - 1.0). Overrides config.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s), comma-separated: save_json, save_masks. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    args = parser.parse_args()
    if args.yuv is not None and (args.width is None or args.height is None):
        parser.error("--yuv requires --width and --height")
    return args


def main() -> int:
    """Main execution."""
    args = parse_args()

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)

        if args.min_score is not None:
            config = dataclasses.replace(
                config,
                detection=dataclasses.replace(config.detection, min_score=args.min_score),
            )
        if args.output_mode is not None or args.output_path is not None:
            config = dataclasses.replace(
                config,
                output=dataclasses.replace(
                    config.output,
                    mode=args.output_mode or config.output.mode,
                    save_path=args.output_path or config.output.save_path,
                ),
            )
        validate(config)

        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    # 2. Initialize Components
    try:
        class_names = [c.strip() for c in args.classes.split(",") if c.strip()]
        predictor = Predictor(config)
        predictor.load(load_replay_model(args.outputs), class_names)

        if args.image is not None:
            source_name = Path(args.image).name
            image = load_image(args.image)
        else:
            source_name = Path(args.yuv).name
            frame = load_yuv_frame(args.yuv, args.width, args.height, args.rotation)

    except (FileNotFoundError, ValueError) as e:
        logger.error("Initialization failed: %s", e)
        return 1

    # 3. Predict
    start_time = time.perf_counter()
    try:
        if args.image is not None:
            detections = predictor.predict_image(image)
        else:
            detections = predictor.predict_stream_image(frame)
    except D2goBridgeError as e:
        logger.error("Prediction failed: %s", e)
        return 1
    elapsed = time.perf_counter() - start_time

    for det in detections:
        logger.info(
            "%s %.3f [%.1f, %.1f, %.1f, %.1f]",
            det.class_name, det.confidence,
            det.rect.left, det.rect.top, det.rect.right, det.rect.bottom,
        )

    # 4. Outputs
    modes = set(m.strip() for m in config.output.mode.split(","))
    save_path = Path(config.output.save_path)
    if not save_path.is_absolute():
        save_path = get_project_root() / save_path

    try:
        mask_paths = {}
        if "save_masks" in modes:
            mask_paths[source_name] = save_masks(detections, str(save_path), Path(source_name).stem)
        if "save_json" in modes:
            save_json({source_name: detections}, str(save_path / "detections.json"), mask_paths)
    except OSError as e:
        logger.error("Failed to write outputs: %s", e)
        return 1

    logger.info(
        "Processing finished. %d detections in %.1f ms.",
        len(detections), elapsed * 1000.0,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
