"""High-level face recognizer.

Wraps the flat-buffer boundary and returns Face objects. All methods are
safe to call from several threads at once.

Example:
    with Recognizer("models") as rec:
        faces = rec.recognize_file("group.jpg", jitter=5)
        rec.set_samples([f.vector for f in faces], list(range(len(faces))))
        category = rec.classify(faces[0].vector)
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from . import boundary
from .constants import FaceRecConfig
from .errors import ClosedError, ErrorCode, make_error
from .service import ModelLoader
from .types import (
    DESCRIPTOR_LEN,
    FEATURE_LEN,
    RECT_LEN,
    Face,
    LandmarkSet,
    Rectangle,
)

logger = logging.getLogger(__name__)


class Recognizer:
    """Creates face vectors for images and classifies them into categories."""

    def __init__(
        self,
        model_dir: Union[str, Path],
        loader: Optional[ModelLoader] = None,
        config: Optional[FaceRecConfig] = None,
    ):
        """Load the models.

        Args:
            model_dir: Directory with shape_predictor_68_face_landmarks.dat
                and dlib_face_recognition_resnet_model_v1.dat
            loader: Alternative model loader
            config: Service settings

        Raises:
            SerializationError: A model file is missing or corrupt
            UnknownError: Any other initialization failure
        """
        handle = boundary.facerec_init(model_dir, loader=loader, config=config)
        if handle.err_str is not None:
            raise make_error(handle.err_str, handle.err_code)
        self._handle = handle
        self.closed = False

    def __enter__(self) -> "Recognizer":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.closed:
            self.close()

    def _check_open(self):
        if self.closed:
            raise ClosedError("Recognizer has been closed")

    def _recognize(self, img_data: bytes, max_faces: int, jitter: int) -> List[Face]:
        self._check_open()
        if not img_data:
            raise make_error("Empty image", ErrorCode.IMAGE_LOAD_ERROR)

        ret = boundary.facerec_recognize(self._handle, img_data, max_faces, jitter)
        if ret.err_str is not None:
            raise make_error(ret.err_str, ret.err_code)

        faces = []
        for i in range(ret.num_faces):
            r = ret.rectangles[i * RECT_LEN:(i + 1) * RECT_LEN]
            landmarks = LandmarkSet.from_flat(ret.features[i * FEATURE_LEN:(i + 1) * FEATURE_LEN])
            vector = ret.descriptors[i * DESCRIPTOR_LEN:(i + 1) * DESCRIPTOR_LEN]
            faces.append(Face(
                rectangle=Rectangle(int(r[0]), int(r[1]), int(r[2]), int(r[3])),
                features=list(landmarks.points),
                vector=vector.astype(np.float64),
            ))
        return faces

    @staticmethod
    def _read_file(path: Union[str, Path]) -> bytes:
        with open(path, "rb") as f:
            return f.read()

    def recognize(self, img_data: bytes, jitter: int = 0, max_faces: int = 0) -> List[Face]:
        """Return all faces of an encoded image, sorted left to right.

        Returns an empty list when there are no faces, or when ``max_faces``
        is positive and more faces than that were found.
        """
        return self._recognize(img_data, max_faces, jitter)

    def recognize_single(self, img_data: bytes, jitter: int = 0) -> Optional[Face]:
        """Return the face of an image containing exactly one face, else None."""
        faces = self._recognize(img_data, 1, jitter)
        if len(faces) != 1:
            return None
        return faces[0]

    def recognize_file(self, path: Union[str, Path], jitter: int = 0) -> List[Face]:
        """Like recognize, reading the image from ``path``."""
        self._check_open()
        return self.recognize(self._read_file(path), jitter)

    def recognize_single_file(self, path: Union[str, Path], jitter: int = 0) -> Optional[Face]:
        """Like recognize_single, reading the image from ``path``."""
        self._check_open()
        return self.recognize_single(self._read_file(path), jitter)

    def set_samples(self, samples: Sequence[np.ndarray], cats: Sequence[int]) -> None:
        """Set the known vectors and their categories.

        An empty list clears all samples.
        """
        self._check_open()
        if len(samples) != len(cats):
            raise ValueError(f"Got {len(samples)} samples but {len(cats)} categories")
        if len(samples):
            flat = np.concatenate(
                [np.asarray(s, dtype=np.float32).reshape(-1) for s in samples]
            )
        else:
            flat = np.zeros(0, dtype=np.float32)
        boundary.facerec_set_samples(
            self._handle, flat, np.asarray(cats, dtype=np.int32), len(samples)
        )

    def classify(self, vector: np.ndarray) -> int:
        """Return the category id for a vector, negative if nothing matches."""
        self._check_open()
        return boundary.facerec_classify(self._handle, np.asarray(vector, dtype=np.float32))

    def classify_threshold(self, vector: np.ndarray, tolerance: float) -> int:
        """Like classify with an explicit distance tolerance."""
        self._check_open()
        return boundary.facerec_classify_threshold(
            self._handle, np.asarray(vector, dtype=np.float32), tolerance
        )

    def close(self) -> None:
        """Free the models. The recognizer cannot be used afterwards."""
        self._check_open()
        boundary.facerec_free(self._handle)
        self.closed = True
        logger.debug("Recognizer closed")
