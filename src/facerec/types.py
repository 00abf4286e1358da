"""Data types shared by the pipeline, classifier and boundary."""

from dataclasses import dataclass, field
from typing import Iterable, List, Tuple

import numpy as np

# Fixed sizes of the dlib 68-point predictor and ResNet embedding network
NUM_LANDMARKS = 68
DESCRIPTOR_LEN = 128
RECT_LEN = 4
FEATURE_LEN = 2 * NUM_LANDMARKS

# Category returned by the classifier when nothing matches
NO_MATCH = -1

Point = Tuple[int, int]


@dataclass(frozen=True, order=True)
class Rectangle:
    """Face bounding box in image pixel space.

    Ordering is lexicographic on (left, top, right, bottom), which is the
    order faces are reported in.
    """

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left + 1

    @property
    def height(self) -> int:
        return self.bottom - self.top + 1

    @property
    def center(self) -> Point:
        """Return center point of the rectangle."""
        return ((self.left + self.right) // 2, (self.top + self.bottom) // 2)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


@dataclass(frozen=True)
class LandmarkSet:
    """The 68 landmark points of one face, in landmark-index order."""

    points: Tuple[Point, ...]

    def __post_init__(self):
        if len(self.points) != NUM_LANDMARKS:
            raise ValueError(
                f"Expected {NUM_LANDMARKS} landmarks, got {len(self.points)}"
            )
        object.__setattr__(
            self, "points", tuple((int(x), int(y)) for x, y in self.points)
        )

    @classmethod
    def from_flat(cls, values: Iterable[int]) -> "LandmarkSet":
        """Build from a flat x0, y0, x1, y1, ... sequence."""
        flat = [int(v) for v in values]
        return cls(tuple(zip(flat[0::2], flat[1::2])))

    def flatten(self) -> List[int]:
        out: List[int] = []
        for x, y in self.points:
            out.extend((x, y))
        return out

    def __len__(self) -> int:
        return len(self.points)

    def __getitem__(self, index: int) -> Point:
        return self.points[index]


@dataclass(frozen=True)
class Sample:
    """A known-identity descriptor and its caller-defined category."""

    descriptor: np.ndarray
    category: int


@dataclass(frozen=True)
class RecognitionResult:
    """Index-aligned per-face outputs of one recognize call."""

    rectangles: Tuple[Rectangle, ...] = ()
    landmarks: Tuple[LandmarkSet, ...] = ()
    descriptors: Tuple[np.ndarray, ...] = ()

    def __post_init__(self):
        if not (len(self.rectangles) == len(self.landmarks) == len(self.descriptors)):
            raise ValueError("Recognition result sequences must have equal length")

    @classmethod
    def empty(cls) -> "RecognitionResult":
        return cls()

    def __len__(self) -> int:
        return len(self.rectangles)


@dataclass
class Face:
    """A recognized face: bounding box, landmarks and 128D vector."""

    rectangle: Rectangle
    features: List[Point] = field(default_factory=list)
    vector: np.ndarray = field(
        default_factory=lambda: np.zeros(DESCRIPTOR_LEN, dtype=np.float64)
    )

    def euclidean(self, other: "Face") -> float:
        """Euclidean distance between the two face vectors.

        A distance of 0.6 or less most likely means the same person.
        """
        diff = np.asarray(self.vector, dtype=np.float64) - np.asarray(other.vector, dtype=np.float64)
        return float(np.sqrt(np.sum(diff * diff)))

    def probability(self, other: "Face") -> float:
        """Probability that both faces belong to the same person.

        A value of 0.85 or more most likely means the same person.
        """
        return 1.0 - self.euclidean(other) / 4.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "rectangle": list(self.rectangle.as_tuple()),
            "features": [list(p) for p in self.features],
            "vector": [float(v) for v in self.vector],
        }
