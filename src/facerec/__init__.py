"""facerec - face recognition inference service.

This package locates faces in an image, extracts 68-point landmarks and a
128D descriptor per face, and classifies descriptors against a
replaceable set of known samples:
- pipeline.py: detection, alignment and stabilized embedding
- jitter.py: jittered descriptor averaging
- samples.py / classifier.py: sample store and nearest-match classifier
- governor.py: locking of the shared models and samples
- boundary.py / recognizer.py: flat-buffer boundary and high-level API
"""

__version__ = "0.1.0"

from .errors import (
    ClosedError,
    ErrorCode,
    FaceRecError,
    ImageLoadError,
    SerializationError,
    UnknownError,
)
from .types import (
    DESCRIPTOR_LEN,
    NO_MATCH,
    NUM_LANDMARKS,
    Face,
    LandmarkSet,
    RecognitionResult,
    Rectangle,
    Sample,
)
from .constants import FaceRecConfig
from .governor import ModelPool, ReadWriteLock, ResourceGovernor
from .jitter import DescriptorAugmenter, DescriptorStabilizer
from .samples import SampleSet, SampleStore, load_samples, save_samples
from .classifier import Classifier, Match
from .pipeline import RecognitionPipeline
from .service import FaceRecService
from .recognizer import Recognizer

__all__ = [
    # Errors
    "ClosedError", "ErrorCode", "FaceRecError", "ImageLoadError",
    "SerializationError", "UnknownError",
    # Types
    "DESCRIPTOR_LEN", "NO_MATCH", "NUM_LANDMARKS", "Face", "LandmarkSet",
    "RecognitionResult", "Rectangle", "Sample",
    # Core
    "FaceRecConfig", "ModelPool", "ReadWriteLock", "ResourceGovernor",
    "DescriptorAugmenter", "DescriptorStabilizer",
    "SampleSet", "SampleStore", "load_samples", "save_samples",
    "Classifier", "Match", "RecognitionPipeline", "FaceRecService",
    # API
    "Recognizer",
]
