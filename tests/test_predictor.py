"""
Tests for the Predictor.
"""

import numpy as np
import pytest

from d2go_bridge.config import AppConfig, MaskConfig
from d2go_bridge.errors import LabelIndexOutOfRange, MalformedFrame
from d2go_bridge.frame import PixelBuffer, Plane, YuvFrame
from d2go_bridge.model_loader import ReplayModel
from d2go_bridge.predictor import Predictor


def _tensors(boxes, scores, labels, **extra):
    tensors = {
        "boxes": np.asarray(boxes, dtype=np.float32),
        "scores": np.asarray(scores, dtype=np.float32),
        "labels": np.asarray(labels, dtype=np.int64),
    }
    tensors.update(extra)
    return tensors


def _image(width, height):
    return PixelBuffer(np.zeros((height, width, 4), dtype=np.uint8))


def _frame(width, height, rotation=0):
    chroma = bytes([128] * (width * height // 4))
    return YuvFrame(
        width=width,
        height=height,
        y=Plane(bytes([100] * (width * height))),
        u=Plane(chroma),
        v=Plane(chroma),
        rotation=rotation,
    )


def test_predict_before_load():
    """Predicting without a model is a usage error."""
    predictor = Predictor(AppConfig())
    assert not predictor.is_loaded

    with pytest.raises(RuntimeError, match="No model loaded"):
        predictor.predict_image(_image(4, 4))


def test_load_installs_model_and_class_names():
    """load() replaces the class names and keeps the given config."""
    config = AppConfig(mask=MaskConfig(color_seed=3))
    predictor = Predictor(config)

    predictor.load(ReplayModel(_tensors([], [], [])), ["cat", "dog"])
    predictor.load(ReplayModel(_tensors([], [], [])), ["person"])

    assert predictor.is_loaded
    assert predictor.class_names == ("person",)
    assert predictor.config is config


def test_predict_image_scales_to_original():
    """Boxes map from the 320x320 model input back to a 640x480 image."""
    predictor = Predictor(AppConfig())
    predictor.load(ReplayModel(_tensors([10, 10, 20, 20], [0.9], [1])), ["cat"])

    detections = predictor.predict_image(_image(640, 480))

    assert len(detections) == 1
    rect = detections[0].rect
    assert (rect.left, rect.top, rect.right, rect.bottom) == (20.0, 15.0, 40.0, 30.0)
    assert detections[0].class_name == "cat"


def test_model_receives_normalized_input_tensor():
    """The model is called with a (3, H, W) tensor at the configured input size."""
    seen = []

    def model(tensor):
        seen.append(tensor)
        return _tensors(np.zeros(0), [], [])

    predictor = Predictor(AppConfig())
    predictor.load(model, ["cat"])

    assert predictor.predict_image(_image(100, 50)) == []
    assert seen[0].shape == (3, 320, 320)
    assert seen[0].dtype == np.float32


def test_min_score_override():
    """An explicit min_score wins over the configured one."""
    predictor = Predictor(AppConfig())
    predictor.load(ReplayModel(_tensors([0, 0, 1, 1], [0.6], [1])), ["cat"])

    assert len(predictor.predict_image(_image(320, 320))) == 1
    assert predictor.predict_image(_image(320, 320), min_score=0.7) == []


def test_predict_stream_image_uses_rotated_dimensions():
    """A 90-degree frame is scaled with its rotated width and height."""
    predictor = Predictor(AppConfig())
    predictor.load(ReplayModel(_tensors([320, 320, 320, 320], [0.9], [1])), ["cat"])

    detections = predictor.predict_stream_image(_frame(8, 4, rotation=90))

    rect = detections[0].rect
    assert rect.left == pytest.approx(4.0)
    assert rect.top == pytest.approx(8.0)


def test_predict_stream_image_malformed_frame():
    """Inconsistent camera planes fail before the model is called."""
    model = ReplayModel(_tensors([0, 0, 1, 1], [0.9], [1]))
    predictor = Predictor(AppConfig())
    predictor.load(model, ["cat"])
    frame = YuvFrame(width=4, height=4, y=Plane(bytes(3)), u=Plane(bytes(4)), v=Plane(bytes(4)))

    with pytest.raises(MalformedFrame):
        predictor.predict_stream_image(frame)
    assert model.calls == 0


def test_masks_and_keypoints_end_to_end():
    """Masks come back as bitmaps and keypoints scale by original / 320."""
    keypoints = np.zeros(51, dtype=np.float32)
    keypoints[0::3] = 160.0
    keypoints[1::3] = 32.0
    tensors = _tensors(
        [0, 0, 10, 10], [0.9], [1],
        masks=np.ones(784, dtype=np.float32),
        keypoints=keypoints,
    )
    config = AppConfig(mask=MaskConfig(bitmap_variant="legacy", color_seed=1))
    predictor = Predictor(config)
    predictor.load(ReplayModel(tensors), ["person"])

    det = predictor.predict_image(_image(640, 480))[0]

    assert len(det.mask) == 14 + 40 + 28 * 28 * 4
    assert det.keypoints[0] == (320.0, 48.0)


def test_reload_replaces_classes():
    """load() swaps both the model and its class list."""
    predictor = Predictor(AppConfig())
    predictor.load(ReplayModel(_tensors([0, 0, 1, 1], [0.9], [2])), ["cat"])

    with pytest.raises(LabelIndexOutOfRange):
        predictor.predict_image(_image(320, 320))

    predictor.load(ReplayModel(_tensors([0, 0, 1, 1], [0.9], [2])), ["cat", "dog"])

    assert predictor.class_names == ("cat", "dog")
    assert predictor.predict_image(_image(320, 320))[0].class_name == "dog"


def test_failed_call_does_not_poison_predictor():
    """A subsequent valid call succeeds after a failure."""
    predictor = Predictor(AppConfig())
    predictor.load(ReplayModel(_tensors([0, 0, 1], [0.9], [1])), ["cat"])

    with pytest.raises(ValueError):
        predictor.predict_image(_image(320, 320))

    predictor.load(ReplayModel(_tensors([0, 0, 1, 1], [0.9], [1])), ["cat"])
    assert len(predictor.predict_image(_image(320, 320))) == 1
