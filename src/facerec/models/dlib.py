"""Dlib model backends: HOG detector, 68-point predictor, ResNet embeddings."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from ..constants import ModelConfig
from ..errors import SerializationError
from ..types import LandmarkSet, Rectangle
from .base import (
    BaseChipExtractor,
    BaseEmbeddingBackend,
    BaseFaceDetector,
    BaseShapePredictor,
    ModelSet,
)

logger = logging.getLogger(__name__)


def _import_dlib():
    try:
        import dlib
    except ImportError:
        raise ImportError(
            "dlib is required. Install with: pip install dlib"
        )
    return dlib


def _to_dlib_rect(dlib, rect: Rectangle):
    return dlib.rectangle(rect.left, rect.top, rect.right, rect.bottom)


def _require_file(path: Path) -> str:
    if not path.is_file():
        raise SerializationError(f"Unable to open {path} for reading.")
    return str(path)


class DlibFaceDetector(BaseFaceDetector):
    """Face detector using dlib's HOG frontal face model.

    The detector object is stateful while running and must not be invoked
    from two threads at once; callers lease it through a ModelPool.
    """

    def __init__(self, upsample_num_times: int = 0):
        """Initialize dlib face detector."""
        self._dlib = _import_dlib()
        self.upsample_num_times = upsample_num_times
        self.detector = self._dlib.get_frontal_face_detector()
        logger.info("Initialized dlib HOG face detector")

    def detect(self, image: np.ndarray) -> List[Rectangle]:
        """Detect faces using dlib."""
        detections = self.detector(image, self.upsample_num_times)
        return [
            Rectangle(int(d.left()), int(d.top()), int(d.right()), int(d.bottom()))
            for d in detections
        ]


class DlibShapePredictor(BaseShapePredictor):
    """68-point landmark predictor."""

    def __init__(self, model_path: Union[str, Path]):
        self._dlib = _import_dlib()
        path = _require_file(Path(model_path))
        try:
            self._predictor = self._dlib.shape_predictor(path)
        except RuntimeError as e:
            raise SerializationError(str(e)) from e
        logger.info(f"Loaded shape predictor from {path}")

    def predict(self, image: np.ndarray, rect: Rectangle) -> LandmarkSet:
        shape = self._predictor(image, _to_dlib_rect(self._dlib, rect))
        return LandmarkSet(
            tuple((shape.part(i).x, shape.part(i).y) for i in range(shape.num_parts))
        )


class DlibChipExtractor(BaseChipExtractor):
    """Aligned chip extraction with dlib.get_face_chip."""

    def __init__(self):
        self._dlib = _import_dlib()

    def extract(
        self,
        image: np.ndarray,
        rect: Rectangle,
        landmarks: LandmarkSet,
        size: int,
        padding: float,
    ) -> np.ndarray:
        dlib = self._dlib
        parts = dlib.points()
        for x, y in landmarks.points:
            parts.append(dlib.point(x, y))
        shape = dlib.full_object_detection(_to_dlib_rect(dlib, rect), parts)
        chip = dlib.get_face_chip(image, shape, size=size, padding=padding)
        return np.asarray(chip, dtype=np.uint8)


class DlibEmbeddingBackend(BaseEmbeddingBackend):
    """Face embedding using dlib's face recognition ResNet (128D)."""

    def __init__(self, model_path: Union[str, Path]):
        """Initialize dlib embedding backend.

        Args:
            model_path: Path to dlib_face_recognition_resnet_model_v1.dat
        """
        self._dlib = _import_dlib()
        path = _require_file(Path(model_path))
        try:
            self._face_rec = self._dlib.face_recognition_model_v1(path)
        except RuntimeError as e:
            raise SerializationError(str(e)) from e
        logger.info(f"Loaded dlib face recognition model from {path}")

    @property
    def name(self) -> str:
        return "dlib"

    def compute(self, chip: np.ndarray) -> np.ndarray:
        """Extract 128D embedding of an aligned 150x150 chip."""
        embedding = self._face_rec.compute_face_descriptor(np.ascontiguousarray(chip))
        return np.array(embedding, dtype=np.float32)


def load_dlib_models(
    model_dir: Union[str, Path],
    config: Optional[ModelConfig] = None,
) -> ModelSet:
    """Load all dlib collaborators from a model directory.

    Args:
        model_dir: Directory with the shape predictor and ResNet model files
        config: Model settings (file names, pool sizes)

    Returns:
        ModelSet ready for a FaceRecService

    Raises:
        SerializationError: A model file is missing or cannot be read
    """
    config = config or ModelConfig()
    model_dir = Path(model_dir)
    predictor_path = model_dir / config.shape_predictor_file
    network_path = model_dir / config.face_recognition_model_file

    # Fail on missing artifacts before paying for any model load
    _require_file(predictor_path)
    _require_file(network_path)

    models = ModelSet(
        detectors=[
            DlibFaceDetector(config.detector_upsample)
            for _ in range(config.detector_pool_size)
        ],
        predictor=DlibShapePredictor(predictor_path),
        chip_extractor=DlibChipExtractor(),
        networks=[
            DlibEmbeddingBackend(network_path)
            for _ in range(config.network_pool_size)
        ],
    )
    logger.info(
        f"Loaded dlib models from {model_dir} "
        f"(detectors={config.detector_pool_size}, networks={config.network_pool_size})"
    )
    return models
