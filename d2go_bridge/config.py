"""
Configuration management for the inference bridge.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The bridge MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No decoding logic, I/O, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

from d2go_bridge.bitmap_codec import INFO_HEADER_SIZES

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: d2go_bridge/config.py → repo root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Model input configuration.

    Attributes:
        input_size: (width, height) the model was exported for.
        mean: Per-channel RGB mean subtracted after scaling to [0, 1].
        std: Per-channel RGB standard deviation divided out after the mean.
    """

    input_size: Tuple[int, int] = (320, 320)
    mean: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    std: Tuple[float, float, float] = (1.0, 1.0, 1.0)


@dataclass(frozen=True)
class DetectionConfig:
    """Detection thresholds.

    Attributes:
        min_score: Minimum score to keep an instance (inclusive).
    """

    min_score: float = 0.5


@dataclass(frozen=True)
class MaskConfig:
    """Mask overlay rendering.

    Attributes:
        bitmap_variant: 'v4' (108-byte header, RGBA bit masks) or 'legacy'
                        (40-byte header).
        color_seed: Seed for per-instance overlay colors. None draws fresh
                    colors on every run.
    """

    bitmap_variant: str = "v4"
    color_seed: Optional[int] = None


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s), comma-separated: 'save_json', 'save_masks'.
        save_path: Directory where output artifacts are written.
    """

    mode: str = "save_json"
    save_path: str = "output/"


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    mask: MaskConfig = field(default_factory=MaskConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_OUTPUT_MODES = {"save_json", "save_masks"}


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if len(config.model.mean) != 3 or len(config.model.std) != 3:
        raise ValueError(
            f"model.mean and model.std need 3 values each, "
            f"got {config.model.mean} and {config.model.std}."
        )

    if any(s <= 0 for s in config.model.std):
        raise ValueError(
            f"model.std values must be positive, got {config.model.std}."
        )

    if not (0.0 <= config.detection.min_score <= 1.0):
        raise ValueError(
            f"detection.min_score must be in [0.0, 1.0], "
            f"got {config.detection.min_score}."
        )

    if config.mask.bitmap_variant not in INFO_HEADER_SIZES:
        raise ValueError(
            f"Invalid mask.bitmap_variant: '{config.mask.bitmap_variant}'. "
            f"Must be one of {sorted(INFO_HEADER_SIZES)}."
        )

    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )


def validate(config: AppConfig) -> AppConfig:
    """Validate a config built or modified outside load_config()."""
    _validate(config)
    return config


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",")]
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean" in raw:
        kwargs["mean"] = _parse_tuple(raw["mean"], 3, float)
    if "std" in raw:
        kwargs["std"] = _parse_tuple(raw["std"], 3, float)
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "min_score" in raw:
        kwargs["min_score"] = float(raw["min_score"])
    return DetectionConfig(**kwargs)


def _build_mask_config(raw: dict) -> MaskConfig:
    """Build MaskConfig from a raw YAML dict."""
    kwargs = {}
    if "bitmap_variant" in raw:
        kwargs["bitmap_variant"] = str(raw["bitmap_variant"]).lower()
    if "color_seed" in raw:
        val = raw["color_seed"]
        kwargs["color_seed"] = int(val) if val is not None else None
    return MaskConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "D2GO_BRIDGE_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        D2GO_BRIDGE_DETECTION_MIN_SCORE=0.7
        D2GO_BRIDGE_MODEL_INPUT_SIZE=640,480
    """
    env_map = {
        f"{_ENV_PREFIX}MODEL_INPUT_SIZE": ("model", "input_size"),
        f"{_ENV_PREFIX}DETECTION_MIN_SCORE": ("detection", "min_score"),
        f"{_ENV_PREFIX}MASK_BITMAP_VARIANT": ("mask", "bitmap_variant"),
        f"{_ENV_PREFIX}MASK_COLOR_SEED": ("mask", "color_seed"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the bridge runs entirely on defaults.

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        mask=_build_mask_config(raw.get("mask", {})),
        output=_build_output_config(raw.get("output", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config
