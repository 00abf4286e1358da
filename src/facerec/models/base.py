"""Interfaces of the model collaborators used by the pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

import numpy as np

from ..types import DESCRIPTOR_LEN, LandmarkSet, Rectangle


class BaseFaceDetector(ABC):
    """Abstract base class for face detectors."""

    @abstractmethod
    def detect(self, image: np.ndarray) -> List[Rectangle]:
        """Detect faces in an image.

        Args:
            image: RGB image as numpy array

        Returns:
            Rectangles in any order
        """
        pass


class BaseShapePredictor(ABC):
    """Abstract base class for landmark predictors."""

    @abstractmethod
    def predict(self, image: np.ndarray, rect: Rectangle) -> LandmarkSet:
        """Locate the 68 landmarks of the face inside ``rect``."""
        pass


class BaseChipExtractor(ABC):
    """Abstract base class for aligned face chip extraction."""

    @abstractmethod
    def extract(
        self,
        image: np.ndarray,
        rect: Rectangle,
        landmarks: LandmarkSet,
        size: int,
        padding: float,
    ) -> np.ndarray:
        """Return a size x size RGB chip aligned on the landmarks."""
        pass


class BaseEmbeddingBackend(ABC):
    """Abstract base class for face embedding extraction."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of the embedding backend."""
        pass

    @property
    def embedding_dim(self) -> int:
        """Return the dimensionality of the embedding vector."""
        return DESCRIPTOR_LEN

    @abstractmethod
    def compute(self, chip: np.ndarray) -> np.ndarray:
        """Compute the raw embedding of one aligned face chip.

        Args:
            chip: RGB face chip

        Returns:
            Embedding vector as numpy array
        """
        pass


@dataclass
class ModelSet:
    """Loaded collaborators for one service instance.

    Detectors and networks are lists so that several independently locked
    copies can be pooled.
    """

    detectors: List[BaseFaceDetector]
    predictor: BaseShapePredictor
    chip_extractor: BaseChipExtractor
    networks: List[BaseEmbeddingBackend]

    def __post_init__(self):
        if not self.detectors:
            raise ValueError("At least one face detector is required")
        if not self.networks:
            raise ValueError("At least one embedding network is required")
