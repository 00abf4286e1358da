"""Face recognition service.

One FaceRecService instance owns its models, locks and samples. Nothing
is process-global, so independent instances can live side by side.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import numpy as np

from .classifier import Classifier, Match
from .constants import FaceRecConfig, ModelConfig
from .governor import ResourceGovernor
from .jitter import DescriptorAugmenter, DescriptorStabilizer
from .models.base import ModelSet
from .pipeline import RecognitionPipeline
from .samples import SampleSet, SampleStore
from .types import RecognitionResult, Sample

logger = logging.getLogger(__name__)

ModelLoader = Callable[[Union[str, Path], ModelConfig], ModelSet]


class FaceRecService:
    """Thread-safe recognize/classify service over one set of models.

    Provides:
    - recognize: faces, landmarks and descriptors of a decoded image
    - set_samples: atomic replacement of the known samples
    - classify: nearest known category of a descriptor
    """

    def __init__(
        self,
        models: ModelSet,
        config: Optional[FaceRecConfig] = None,
        augmenter: Optional[DescriptorAugmenter] = None,
    ):
        """Initialize face recognition service.

        Args:
            models: Loaded model collaborators
            config: Service settings; defaults are used if None
            augmenter: Chip augmenter; built from the jitter config if None
        """
        self.config = config or FaceRecConfig()
        self.models = models

        self.governor = ResourceGovernor(models.detectors, models.networks)
        self.store = SampleStore(self.governor.samples_lock)
        self.classifier = Classifier(self.store, tolerance=self.config.classifier.tolerance)

        stabilizer = DescriptorStabilizer(
            self.governor.networks,
            augmenter or DescriptorAugmenter(self.config.jitter),
        )
        self.pipeline = RecognitionPipeline(
            self.governor,
            models.predictor,
            models.chip_extractor,
            stabilizer,
            self.config.chip,
        )

        logger.info(
            f"FaceRecService initialized: tolerance={self.config.classifier.tolerance}, "
            f"chip={self.config.chip.size}px"
        )

    @classmethod
    def from_model_dir(
        cls,
        model_dir: Union[str, Path],
        config: Optional[FaceRecConfig] = None,
        loader: Optional[ModelLoader] = None,
    ) -> "FaceRecService":
        """Load models from a directory and build a service.

        Args:
            model_dir: Directory with the model artifacts
            config: Service settings
            loader: Model loader; the dlib loader by default
        """
        config = config or FaceRecConfig()
        if loader is None:
            from .models.dlib import load_dlib_models
            loader = load_dlib_models
        return cls(loader(model_dir, config.models), config)

    def recognize(self, image: np.ndarray, max_faces: int = 0, jitter: int = 0) -> RecognitionResult:
        """Recognize all faces in a decoded RGB image."""
        return self.pipeline.recognize(image, max_faces, jitter)

    def set_samples(self, samples: Iterable[Sample]) -> SampleSet:
        """Replace the known samples."""
        return self.store.replace(samples)

    def set_sample_arrays(self, descriptors, categories) -> SampleSet:
        """Replace the known samples from index-aligned arrays."""
        return self.store.replace_arrays(descriptors, categories)

    def classify(self, descriptor, tolerance: Optional[float] = None) -> int:
        """Return the matching category or NO_MATCH."""
        return self.classifier.classify(descriptor, tolerance)

    def match(self, descriptor, tolerance: Optional[float] = None) -> Optional[Match]:
        """Return match details for a descriptor, or None."""
        return self.classifier.match(descriptor, tolerance)

    def close(self):
        """Drop model and sample references."""
        self.store.clear()
        self.models = None
        self.pipeline = None
        self.governor = None
        logger.info("FaceRecService closed")
