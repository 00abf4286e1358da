"""Face recognition pipeline.

detect -> sort -> landmarks -> aligned chip -> stabilized descriptor

Only the detector and the embedding network are shared between calls;
they are leased from the resource governor for exactly the duration of
their own work. Landmark prediction and chip extraction run on call-local
state without locking.
"""

import logging
from typing import Optional

import numpy as np

from .constants import ChipConfig
from .governor import ResourceGovernor
from .jitter import DescriptorStabilizer
from .models.base import BaseChipExtractor, BaseShapePredictor
from .types import RecognitionResult

logger = logging.getLogger(__name__)


class RecognitionPipeline:
    """Runs one image through detection, alignment and embedding."""

    def __init__(
        self,
        governor: ResourceGovernor,
        predictor: BaseShapePredictor,
        chip_extractor: BaseChipExtractor,
        stabilizer: DescriptorStabilizer,
        chip_config: Optional[ChipConfig] = None,
    ):
        self.governor = governor
        self.predictor = predictor
        self.chip_extractor = chip_extractor
        self.stabilizer = stabilizer
        self.chip_config = chip_config or ChipConfig()

    def recognize(self, image: np.ndarray, max_faces: int = 0, jitter: int = 0) -> RecognitionResult:
        """Find every face in an image and describe it.

        Args:
            image: Decoded RGB image (H x W x 3, uint8)
            max_faces: Return an empty result when more faces than this are
                found; 0 disables the limit
            jitter: Jittered copies averaged per descriptor

        Returns:
            RecognitionResult with faces in rectangle order. Empty when no
            face was found or the face limit was exceeded.
        """
        if not isinstance(image, np.ndarray) or image.ndim != 3 or image.shape[2] != 3:
            raise ValueError("image must be a decoded H x W x 3 array")
        if image.dtype != np.uint8:
            raise ValueError(f"image must be uint8, got {image.dtype}")
        if jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {jitter}")

        with self.governor.detector() as detector:
            rects = detector.detect(image)

        # Short circuit: nothing to do, or too many faces to process
        if not rects or (max_faces > 0 and len(rects) > max_faces):
            logger.debug(f"Skipping face processing: {len(rects)} face(s), max_faces={max_faces}")
            return RecognitionResult.empty()

        rects = sorted(rects)

        shapes = []
        chips = []
        for rect in rects:
            shape = self.predictor.predict(image, rect)
            shapes.append(shape)
            chips.append(
                self.chip_extractor.extract(
                    image, rect, shape, self.chip_config.size, self.chip_config.padding
                )
            )

        descriptors = [self.stabilizer.stabilize(chip, jitter) for chip in chips]

        logger.debug(f"Recognized {len(rects)} face(s) with jitter={jitter}")
        return RecognitionResult(
            rectangles=tuple(rects),
            landmarks=tuple(shapes),
            descriptors=tuple(descriptors),
        )
