"""Centralized constants and configuration loader.

This module provides access to configuration values and sensible defaults
for the model files, face chip geometry, descriptor jitter and
classification used throughout the service. Values are loaded from
config/config.yaml when available, otherwise defaults are used.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Path to the default configuration file
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "config.yaml"


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. Uses default if None.

    Returns:
        Configuration dictionary.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    try:
        if path.exists():
            with open(path, "r") as f:
                return yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load config from {path}: {e}")

    return {}


def _get_nested(config: Dict, *keys: str, default: Any = None) -> Any:
    """Get nested config value with default fallback."""
    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
        else:
            return default
        if value is None:
            return default
    return value


# ============================================================
# Model Constants
# ============================================================

@dataclass
class ModelConfig:
    """Model artifact names and pooling."""
    # File names inside the model directory
    shape_predictor_file: str = "shape_predictor_68_face_landmarks.dat"
    face_recognition_model_file: str = "dlib_face_recognition_resnet_model_v1.dat"
    # HOG detector upsampling passes
    detector_upsample: int = 0
    # Number of independently locked instances per model type
    detector_pool_size: int = 1
    network_pool_size: int = 1

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ModelConfig":
        """Create from config dictionary."""
        m = _get_nested(config, "models") or {}

        return cls(
            shape_predictor_file=m.get("shape_predictor_file", "shape_predictor_68_face_landmarks.dat"),
            face_recognition_model_file=m.get(
                "face_recognition_model_file", "dlib_face_recognition_resnet_model_v1.dat"
            ),
            detector_upsample=m.get("detector_upsample", 0),
            detector_pool_size=max(1, int(m.get("detector_pool_size", 1))),
            network_pool_size=max(1, int(m.get("network_pool_size", 1))),
        )


# ============================================================
# Face Chip Constants
# ============================================================

@dataclass
class ChipConfig:
    """Aligned face chip geometry."""
    # Output chip is size x size pixels
    size: int = 150
    # Margin around the face as fraction of its size
    padding: float = 0.25

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ChipConfig":
        """Create from config dictionary."""
        c = _get_nested(config, "chip") or {}

        return cls(
            size=c.get("size", 150),
            padding=c.get("padding", 0.25),
        )


# ============================================================
# Descriptor Jitter Constants
# ============================================================

@dataclass
class JitterConfig:
    """Random perturbation applied to chips before embedding."""
    max_rotation_degrees: float = 3.0
    # Random zoom: object height as fraction of the crop box
    min_object_height: float = 0.97
    max_object_height: float = 0.99999
    # Random shift as fraction of the object size
    translate_amount: float = 0.02
    mirror_probability: float = 0.5
    # Pixels trimmed from each chip border before measuring the object
    border_shrink: int = 3
    seed: Optional[int] = None

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "JitterConfig":
        """Create from config dictionary."""
        j = _get_nested(config, "jitter") or {}

        return cls(
            max_rotation_degrees=j.get("max_rotation_degrees", 3.0),
            min_object_height=j.get("min_object_height", 0.97),
            max_object_height=j.get("max_object_height", 0.99999),
            translate_amount=j.get("translate_amount", 0.02),
            mirror_probability=j.get("mirror_probability", 0.5),
            border_shrink=j.get("border_shrink", 3),
            seed=j.get("seed"),
        )


# ============================================================
# Classification Constants
# ============================================================

@dataclass
class ClassifierConfig:
    """Nearest-match acceptance policy."""
    # Maximum Euclidean distance for a match; negative disables the cutoff
    tolerance: float = 0.6

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ClassifierConfig":
        """Create from config dictionary."""
        c = _get_nested(config, "classifier") or {}

        return cls(tolerance=c.get("tolerance", 0.6))


@dataclass
class FaceRecConfig:
    """All service settings in one bundle."""
    models: ModelConfig = field(default_factory=ModelConfig)
    chip: ChipConfig = field(default_factory=ChipConfig)
    jitter: JitterConfig = field(default_factory=JitterConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "FaceRecConfig":
        """Create from config dictionary."""
        return cls(
            models=ModelConfig.from_config(config),
            chip=ChipConfig.from_config(config),
            jitter=JitterConfig.from_config(config),
            classifier=ClassifierConfig.from_config(config),
        )


# ============================================================
# Global Config Instance (lazy loaded)
# ============================================================

class Config:
    """Global configuration singleton."""

    _instance: Optional["Config"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls) -> "Config":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load()
        return cls._instance

    def _load(self) -> None:
        """Load configuration from file."""
        self._config = load_config()
        self._facerec: Optional[FaceRecConfig] = None

    def reload(self, config_path: Optional[Path] = None) -> None:
        """Reload configuration from file."""
        self._config = load_config(config_path)
        self._facerec = None

    @property
    def facerec(self) -> FaceRecConfig:
        """Get the full service config."""
        if self._facerec is None:
            self._facerec = FaceRecConfig.from_config(self._config)
        return self._facerec

    def get(self, *keys: str, default: Any = None) -> Any:
        """Get a config value by key path."""
        return _get_nested(self._config, *keys, default=default)


def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()


# Convenience accessors
def get_facerec_config() -> FaceRecConfig:
    """Get the full service configuration."""
    return get_config().facerec


def get_model_config() -> ModelConfig:
    """Get model configuration."""
    return get_config().facerec.models


def get_chip_config() -> ChipConfig:
    """Get face chip configuration."""
    return get_config().facerec.chip


def get_jitter_config() -> JitterConfig:
    """Get descriptor jitter configuration."""
    return get_config().facerec.jitter


def get_classifier_config() -> ClassifierConfig:
    """Get classifier configuration."""
    return get_config().facerec.classifier
