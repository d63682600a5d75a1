"""
Model handles for the inference bridge.

Responsibility:
    Define what the bridge expects from a model (a callable mapping an input
    tensor to named output tensors) and provide ReplayModel, a stand-in that
    returns tensors recorded in a .npz archive.

Non-goals:
    - No loading of real TorchScript/D2Go models; the runtime that executes
      them is an external collaborator.
    - No automatic downloading.

Failure behavior:
    - Missing archives raise FileNotFoundError with the exact missing path.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Mapping

import numpy as np

from d2go_bridge.config import get_project_root

logger = logging.getLogger(__name__)

# Input tensor (3, H, W) float32 -> {"boxes": ..., "scores": ..., "labels": ..., ...}
InferenceModel = Callable[[np.ndarray], Mapping[str, np.ndarray]]


class ReplayModel:
    """A model that answers every call with the same recorded tensors."""

    def __init__(self, tensors: Mapping[str, np.ndarray]) -> None:
        self._tensors: Dict[str, np.ndarray] = {
            name: np.asarray(value) for name, value in tensors.items()
        }
        self.calls = 0

    def __call__(self, input_tensor: np.ndarray) -> Dict[str, np.ndarray]:
        self.calls += 1
        logger.debug(
            "Replaying %s for input of shape %s",
            sorted(self._tensors), input_tensor.shape,
        )
        return dict(self._tensors)

    @property
    def tensor_names(self):
        return sorted(self._tensors)


def load_replay_model(path: str) -> ReplayModel:
    """Load recorded output tensors from a .npz archive.

    Args:
        path: Archive path, resolved against the project root when relative.

    Returns:
        A ReplayModel serving the archive's arrays by name.

    Raises:
        FileNotFoundError: If the archive does not exist.
    """
    archive = Path(path)
    if not archive.is_absolute():
        archive = get_project_root() / archive

    if not archive.is_file():
        raise FileNotFoundError(
            f"Recorded model outputs not found.\n"
            f"  Expected: {archive}\n"
            f"  Save the tensors with numpy.savez(path, boxes=..., scores=..., labels=...)."
        )

    logger.info("Loading recorded outputs: %s", archive)
    with np.load(archive) as data:
        tensors = {name: data[name] for name in data.files}

    model = ReplayModel(tensors)
    logger.info("Replay model ready (tensors=%s).", model.tensor_names)
    return model
