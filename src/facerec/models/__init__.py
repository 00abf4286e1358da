"""Model collaborators.

Available backends:
- dlib: HOG face detector, 68-point shape predictor, ResNet 128D embeddings
"""

from .base import (
    BaseChipExtractor,
    BaseEmbeddingBackend,
    BaseFaceDetector,
    BaseShapePredictor,
    ModelSet,
)
from .dlib import (
    DlibChipExtractor,
    DlibEmbeddingBackend,
    DlibFaceDetector,
    DlibShapePredictor,
    load_dlib_models,
)

__all__ = [
    "BaseChipExtractor",
    "BaseEmbeddingBackend",
    "BaseFaceDetector",
    "BaseShapePredictor",
    "ModelSet",
    "DlibChipExtractor",
    "DlibEmbeddingBackend",
    "DlibFaceDetector",
    "DlibShapePredictor",
    "load_dlib_models",
]
