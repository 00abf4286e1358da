"""Nearest-sample classification of face descriptors."""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .samples import SampleSet, SampleStore
from .types import DESCRIPTOR_LEN, NO_MATCH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    """Closest sample for a query descriptor."""

    category: int
    distance: float
    index: int
    generation: int


def euclidean_distances(descriptors: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Distance from ``query`` to every row of ``descriptors``."""
    diff = np.asarray(descriptors, dtype=np.float64) - np.asarray(query, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=1))


def _as_query(descriptor) -> np.ndarray:
    query = np.asarray(descriptor, dtype=np.float32).reshape(-1)
    if query.shape[0] != DESCRIPTOR_LEN:
        raise ValueError(f"Descriptor must have {DESCRIPTOR_LEN} values, got {query.shape[0]}")
    if not np.all(np.isfinite(query)):
        raise ValueError("Descriptor must not contain NaN or infinite values")
    return query


def nearest(snapshot: SampleSet, descriptor) -> Optional[Match]:
    """Find the closest sample of one snapshot.

    Exact ties go to the lowest sample index.

    Returns:
        Match, or None for an empty snapshot
    """
    if len(snapshot) == 0:
        return None
    query = _as_query(descriptor)
    distances = euclidean_distances(snapshot.descriptors, query)
    # argmin returns the first occurrence of the minimum
    index = int(np.argmin(distances))
    return Match(
        category=int(snapshot.categories[index]),
        distance=float(distances[index]),
        index=index,
        generation=snapshot.generation,
    )


class Classifier:
    """Classifies descriptors against the current sample store generation."""

    def __init__(self, store: SampleStore, tolerance: float = 0.6):
        """Initialize classifier.

        Args:
            store: Sample store to read snapshots from
            tolerance: Maximum Euclidean distance accepted as a match;
                negative values accept the nearest sample at any distance
        """
        self.store = store
        self.tolerance = tolerance

    def match(self, descriptor, tolerance: Optional[float] = None) -> Optional[Match]:
        """Return the accepted closest sample, or None for no match."""
        snapshot = self.store.snapshot()
        found = nearest(snapshot, descriptor)
        if found is None:
            return None

        limit = self.tolerance if tolerance is None else tolerance
        if limit >= 0 and found.distance > limit:
            logger.debug(
                f"Nearest sample {found.index} at {found.distance:.4f} exceeds tolerance {limit}"
            )
            return None
        return found

    def classify(self, descriptor, tolerance: Optional[float] = None) -> int:
        """Return the category of the closest sample or NO_MATCH."""
        found = self.match(descriptor, tolerance)
        return NO_MATCH if found is None else found.category
