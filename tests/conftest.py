"""Pytest configuration and fixtures."""

import sys
import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from facerec.models.base import (  # noqa: E402
    BaseChipExtractor,
    BaseEmbeddingBackend,
    BaseFaceDetector,
    BaseShapePredictor,
    ModelSet,
)
from facerec.types import DESCRIPTOR_LEN, NUM_LANDMARKS, LandmarkSet, Rectangle  # noqa: E402


class _ConcurrencyProbe:
    """Counts calls and the peak number of simultaneous calls."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def enter(self):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        if self.delay:
            time.sleep(self.delay)

    def exit(self):
        with self._lock:
            self.active -= 1


class FakeDetector(BaseFaceDetector):
    """Returns a preset list of rectangles."""

    def __init__(self, rects=None, delay: float = 0.0):
        self.rects = list(rects or [])
        self.error = None
        self.probe = _ConcurrencyProbe(delay)

    @property
    def calls(self) -> int:
        return self.probe.calls

    def detect(self, image):
        self.probe.enter()
        try:
            if self.error is not None:
                raise self.error
            return list(self.rects)
        finally:
            self.probe.exit()


class FakeShapePredictor(BaseShapePredictor):
    """Every landmark of a face sits on its rectangle's top-left corner."""

    def __init__(self):
        self.calls = 0

    def predict(self, image, rect):
        self.calls += 1
        return LandmarkSet(tuple((rect.left, rect.top) for _ in range(NUM_LANDMARKS)))


class FakeChipExtractor(BaseChipExtractor):
    """Chip filled with the rectangle's left coordinate."""

    def __init__(self):
        self.calls = 0

    def extract(self, image, rect, landmarks, size, padding):
        self.calls += 1
        return np.full((size, size, 3), rect.left % 256, dtype=np.uint8)


class FakeNetwork(BaseEmbeddingBackend):
    """Embeds a chip as its mean intensity repeated 128 times."""

    def __init__(self, delay: float = 0.0):
        self.probe = _ConcurrencyProbe(delay)

    @property
    def name(self) -> str:
        return "fake"

    @property
    def calls(self) -> int:
        return self.probe.calls

    def compute(self, chip):
        self.probe.enter()
        try:
            return np.full(DESCRIPTOR_LEN, chip.mean() / 255.0, dtype=np.float32)
        finally:
            self.probe.exit()


class SequenceNetwork(BaseEmbeddingBackend):
    """Returns preset vectors in order, ignoring the chip."""

    def __init__(self, vectors):
        self.vectors = [np.asarray(v, dtype=np.float32) for v in vectors]
        self.calls = 0

    @property
    def name(self) -> str:
        return "sequence"

    def compute(self, chip):
        vec = self.vectors[self.calls % len(self.vectors)]
        self.calls += 1
        return vec


@pytest.fixture
def fake_models():
    """Fresh set of fake collaborators."""
    return ModelSet(
        detectors=[FakeDetector()],
        predictor=FakeShapePredictor(),
        chip_extractor=FakeChipExtractor(),
        networks=[FakeNetwork()],
    )


@pytest.fixture
def fake_loader(fake_models):
    """Model loader returning ``fake_models`` for any directory."""
    def loader(model_dir, config):
        return fake_models
    return loader


@pytest.fixture
def fake_network_factory():
    """Build networks returning preset vectors."""
    return SequenceNetwork


@pytest.fixture
def make_rects():
    """Build rectangles from (left, top, right, bottom) tuples."""
    def _make(*coords):
        return [Rectangle(*c) for c in coords]
    return _make


@pytest.fixture
def sample_image():
    """Create a sample RGB test image."""
    rng = np.random.default_rng(0)
    return rng.integers(0, 255, (120, 160, 3), dtype=np.uint8)


@pytest.fixture
def png_bytes(sample_image):
    """The sample image encoded as PNG."""
    ok, buf = cv2.imencode(".png", sample_image)
    assert ok
    return buf.tobytes()


@pytest.fixture
def random_descriptor():
    """Factory for reproducible random descriptors."""
    rng = np.random.default_rng(42)

    def _make():
        return rng.normal(size=DESCRIPTOR_LEN).astype(np.float32)
    return _make
