"""Flat-buffer boundary around FaceRecService.

These functions mirror a plain C interface: a handle created by
facerec_init, result records with an error code and message instead of
raised exceptions, and contiguous per-face buffers:

- rectangles: 4 int64 per face (left, top, right, bottom)
- features: 136 int64 per face (68 x/y pairs in landmark order)
- descriptors: 128 float32 per face

A failed call never carries result buffers.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from .constants import FaceRecConfig
from .errors import ClosedError, ErrorCode, FaceRecError, ImageLoadError
from .service import FaceRecService, ModelLoader
from .types import DESCRIPTOR_LEN, FEATURE_LEN, NO_MATCH, RECT_LEN

logger = logging.getLogger(__name__)


@dataclass
class FaceRecHandle:
    """Recognizer handle; ``service`` is None after a failed init or free."""

    service: Optional[FaceRecService] = None
    err_str: Optional[str] = None
    err_code: ErrorCode = ErrorCode.NONE


@dataclass
class FaceRet:
    """Result of one facerec_recognize call."""

    num_faces: int = 0
    rectangles: Optional[np.ndarray] = None
    features: Optional[np.ndarray] = None
    descriptors: Optional[np.ndarray] = None
    err_str: Optional[str] = None
    err_code: ErrorCode = ErrorCode.NONE

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> "FaceRet":
        return cls(err_str=message, err_code=code)


def _error_code(exc: Exception) -> ErrorCode:
    if isinstance(exc, FaceRecError) and exc.code is not None:
        return exc.code
    return ErrorCode.UNKNOWN_ERROR


def decode_image(img_data: bytes) -> np.ndarray:
    """Decode compressed image bytes into an RGB array.

    Raises:
        ImageLoadError: Empty or undecodable data
    """
    if not img_data:
        raise ImageLoadError("Empty image")
    buf = np.frombuffer(img_data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageLoadError(
            f"decode error: unsupported or corrupt image data ({len(img_data)} bytes)"
        )
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def _live_service(handle: Optional[FaceRecHandle]) -> FaceRecService:
    if handle is None or handle.service is None:
        raise ClosedError("Recognizer has been closed")
    return handle.service


def facerec_init(
    model_dir: Union[str, Path],
    loader: Optional[ModelLoader] = None,
    config: Optional[FaceRecConfig] = None,
) -> FaceRecHandle:
    """Create a recognizer handle from a model directory.

    Errors are reported on the handle, not raised.
    """
    handle = FaceRecHandle()
    try:
        handle.service = FaceRecService.from_model_dir(model_dir, config=config, loader=loader)
    except Exception as e:
        handle.err_str = str(e)
        handle.err_code = _error_code(e)
        logger.error(f"Failed to initialize recognizer from {model_dir}: {e}")
    return handle


def facerec_recognize(
    handle: Optional[FaceRecHandle],
    img_data: bytes,
    max_faces: int,
    jitter: int,
) -> FaceRet:
    """Decode an image and recognize its faces into flat buffers."""
    try:
        service = _live_service(handle)
        image = decode_image(img_data)
        result = service.recognize(image, max_faces, jitter)
    except ImageLoadError as e:
        return FaceRet.failure(ErrorCode.IMAGE_LOAD_ERROR, str(e))
    except Exception as e:
        logger.error(f"Recognition failed: {e}")
        return FaceRet.failure(ErrorCode.UNKNOWN_ERROR, str(e))

    num_faces = len(result)
    rectangles = np.zeros(num_faces * RECT_LEN, dtype=np.int64)
    features = np.zeros(num_faces * FEATURE_LEN, dtype=np.int64)
    descriptors = np.zeros(num_faces * DESCRIPTOR_LEN, dtype=np.float32)

    for i in range(num_faces):
        rectangles[i * RECT_LEN:(i + 1) * RECT_LEN] = result.rectangles[i].as_tuple()
        features[i * FEATURE_LEN:(i + 1) * FEATURE_LEN] = result.landmarks[i].flatten()
        descriptors[i * DESCRIPTOR_LEN:(i + 1) * DESCRIPTOR_LEN] = result.descriptors[i]

    return FaceRet(
        num_faces=num_faces,
        rectangles=rectangles,
        features=features,
        descriptors=descriptors,
    )


def facerec_set_samples(
    handle: Optional[FaceRecHandle],
    samples: np.ndarray,
    cats: np.ndarray,
    count: int,
) -> None:
    """Replace the samples from ``count`` descriptors and category ids."""
    service = _live_service(handle)
    flat = np.asarray(samples, dtype=np.float32).reshape(-1)[: count * DESCRIPTOR_LEN]
    categories = np.asarray(cats, dtype=np.int32).reshape(-1)[:count]
    service.set_sample_arrays(flat.reshape(count, DESCRIPTOR_LEN), categories)


def facerec_classify(handle: Optional[FaceRecHandle], sample: np.ndarray) -> int:
    """Return the category of ``sample`` or -1 for no match."""
    return _live_service(handle).classify(sample)


def facerec_classify_threshold(
    handle: Optional[FaceRecHandle],
    sample: np.ndarray,
    tolerance: float,
) -> int:
    """Like facerec_classify with an explicit distance tolerance."""
    return _live_service(handle).classify(sample, tolerance)


def facerec_free(handle: Optional[FaceRecHandle]) -> None:
    """Release the handle's resources. Safe to call more than once."""
    if handle is None or handle.service is None:
        return
    handle.service.close()
    handle.service = None


__all__ = [
    "FaceRecHandle",
    "FaceRet",
    "NO_MATCH",
    "decode_image",
    "facerec_init",
    "facerec_recognize",
    "facerec_set_samples",
    "facerec_classify",
    "facerec_classify_threshold",
    "facerec_free",
]
