"""
Predictor, the public API of the inference bridge.

Public contract:
    Predictor.load(model, class_names) -> None
    Predictor.predict_image(image: PixelBuffer) -> list[Detection]
    Predictor.predict_stream_image(frame: YuvFrame) -> list[Detection]

A Predictor is the caller-owned context holding the current model and
class-name list. One lock guards loading and prediction, so a reload never
interleaves with an in-flight call on the same Predictor.

Non-goals:
    - No file reading, camera access, or asset copying.
    - No model execution details; the model is any callable returning
      named tensors.
"""

import logging
import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np

from d2go_bridge.assembler import assemble
from d2go_bridge.color_converter import convert
from d2go_bridge.config import AppConfig, load_config
from d2go_bridge.detection import Detection
from d2go_bridge.frame import PixelBuffer, YuvFrame
from d2go_bridge.model_loader import InferenceModel
from d2go_bridge.preprocessor import preprocess
from d2go_bridge.tensor_decoder import RawInferenceOutput, decode

logger = logging.getLogger(__name__)


class Predictor:
    """Runs the full bridge pipeline against a loaded model.

    Usage:
        predictor = Predictor()                          # Safe defaults
        predictor.load(model, ["person", "bicycle"])
        detections = predictor.predict_image(pixels)
        detections = predictor.predict_stream_image(frame)

    Every prediction runs to completion (convert, preprocess, model call,
    decode, assemble) before returning.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        """Initialize an empty predictor.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).
            rng: Generator for mask overlay colors. Defaults to one seeded
                 from config.mask.color_seed.
        """
        if config is None:
            config = load_config()

        self._config = config
        self._rng = rng if rng is not None else np.random.default_rng(config.mask.color_seed)
        self._lock = threading.Lock()
        self._model: Optional[InferenceModel] = None
        self._class_names: Tuple[str, ...] = ()

    def load(self, model: InferenceModel, class_names: Sequence[str]) -> None:
        """Install a model and its class names, replacing any previous pair.

        Args:
            model: Callable taking a (3, H, W) float32 tensor and returning
                   named output tensors.
            class_names: Names for class ids 1..len(class_names).
        """
        with self._lock:
            self._model = model
            self._class_names = tuple(class_names)

        logger.info(
            "Model loaded (classes=%d, input_size=%s)",
            len(self._class_names), self._config.model.input_size,
        )

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def class_names(self) -> Tuple[str, ...]:
        return self._class_names

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    def predict_image(
        self,
        image: PixelBuffer,
        min_score: Optional[float] = None,
    ) -> List[Detection]:
        """Detect objects in a decoded static image.

        Args:
            image: RGBA image at its original resolution.
            min_score: Score threshold; defaults to config.detection.min_score.

        Returns:
            Detections in original-image coordinates, in model output order.

        Raises:
            RuntimeError: If no model has been loaded.
            TensorShapeMismatch: If the model output is inconsistent.
            LabelIndexOutOfRange: If a kept label has no class name.
        """
        return self._predict(image, min_score)

    def predict_stream_image(
        self,
        frame: YuvFrame,
        min_score: Optional[float] = None,
    ) -> List[Detection]:
        """Detect objects in a camera frame.

        The frame is converted to RGBA and rotated first, so boxes come back
        in the rotated (display) orientation.

        Raises:
            MalformedFrame: If the camera planes are inconsistent.
            RuntimeError: If no model has been loaded.
        """
        pixels = convert(frame)
        return self._predict(pixels, min_score)

    def _predict(self, pixels: PixelBuffer, min_score: Optional[float]) -> List[Detection]:
        if min_score is None:
            min_score = self._config.detection.min_score

        model_cfg = self._config.model
        input_width, input_height = model_cfg.input_size

        with self._lock:
            if self._model is None:
                raise RuntimeError(
                    "No model loaded. Call Predictor.load() before predicting."
                )

            tensor = preprocess(pixels, model_cfg)
            outputs = self._model(tensor)
            instances = decode(RawInferenceOutput.from_mapping(outputs))

            detections = assemble(
                instances,
                self._class_names,
                min_score=min_score,
                width_scale=pixels.width / input_width,
                height_scale=pixels.height / input_height,
                original_width=pixels.width,
                original_height=pixels.height,
                rng=self._rng,
                bitmap_variant=self._config.mask.bitmap_variant,
            )

        logger.debug(
            "Predicted %d detections on %dx%d image",
            len(detections), pixels.width, pixels.height,
        )
        return detections
