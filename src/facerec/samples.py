"""Known-identity sample store with copy-on-write replacement."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import numpy as np

from .governor import ReadWriteLock
from .types import DESCRIPTOR_LEN, Sample

logger = logging.getLogger(__name__)

_INT32_MIN = np.iinfo(np.int32).min
_INT32_MAX = np.iinfo(np.int32).max


@dataclass(frozen=True)
class SampleSet:
    """One immutable generation of samples.

    ``descriptors[i]`` belongs to ``categories[i]``. Both arrays are
    read-only; a new generation is built for every update.
    """

    descriptors: np.ndarray
    categories: np.ndarray
    generation: int = 0

    @classmethod
    def empty(cls, generation: int = 0) -> "SampleSet":
        return cls.build(
            np.zeros((0, DESCRIPTOR_LEN), dtype=np.float32),
            np.zeros((0,), dtype=np.int32),
            generation,
        )

    @classmethod
    def build(cls, descriptors, categories, generation: int = 0) -> "SampleSet":
        """Validate and freeze copies of the given arrays."""
        descs = np.array(descriptors, dtype=np.float32, copy=True)
        if descs.size == 0:
            descs = descs.reshape(0, DESCRIPTOR_LEN)
        if descs.ndim == 1:
            if descs.size % DESCRIPTOR_LEN:
                raise ValueError(
                    f"Flat descriptor buffer of {descs.size} floats is not a multiple of {DESCRIPTOR_LEN}"
                )
            descs = descs.reshape(-1, DESCRIPTOR_LEN)
        if descs.ndim != 2 or descs.shape[1] != DESCRIPTOR_LEN:
            raise ValueError(f"Descriptors must have shape (N, {DESCRIPTOR_LEN}), got {descs.shape}")
        if not np.all(np.isfinite(descs)):
            raise ValueError("Descriptors must not contain NaN or infinite values")

        cats = np.asarray(categories, dtype=np.int64).reshape(-1)
        if cats.shape[0] != descs.shape[0]:
            raise ValueError(
                f"Got {descs.shape[0]} descriptors but {cats.shape[0]} categories"
            )
        if cats.size and (cats.min() < _INT32_MIN or cats.max() > _INT32_MAX):
            raise ValueError("Categories must fit in a signed 32-bit integer")
        cats = cats.astype(np.int32)

        descs.setflags(write=False)
        cats.setflags(write=False)
        return cls(descriptors=descs, categories=cats, generation=generation)

    def __len__(self) -> int:
        return int(self.categories.shape[0])

    def __iter__(self):
        for desc, cat in zip(self.descriptors, self.categories):
            yield Sample(descriptor=desc, category=int(cat))


class SampleStore:
    """Holds the current SampleSet and swaps it atomically.

    Writers build the new generation off to the side and publish it with a
    single reference swap under the exclusive lock. Readers take the
    shared lock only long enough to grab the current reference.
    """

    def __init__(self, lock: Optional[ReadWriteLock] = None):
        self._lock = lock or ReadWriteLock()
        self._current = SampleSet.empty()

    def snapshot(self) -> SampleSet:
        """Return the generation currently in effect."""
        with self._lock.read_locked():
            return self._current

    def replace(self, samples: Iterable[Sample]) -> SampleSet:
        """Replace the whole store with ``samples``."""
        samples = list(samples)
        descriptors = [np.asarray(s.descriptor, dtype=np.float32).reshape(-1) for s in samples]
        categories = [s.category for s in samples]
        if not descriptors:
            descriptors = np.zeros((0, DESCRIPTOR_LEN), dtype=np.float32)
        return self.replace_arrays(descriptors, categories)

    def replace_arrays(self, descriptors, categories) -> SampleSet:
        """Replace the whole store from index-aligned arrays.

        Args:
            descriptors: (N, 128) array or flat buffer of N * 128 floats
            categories: N integer category ids

        Returns:
            The newly published SampleSet
        """
        staged = SampleSet.build(descriptors, categories)
        with self._lock.write_locked():
            published = SampleSet(
                descriptors=staged.descriptors,
                categories=staged.categories,
                generation=self._current.generation + 1,
            )
            self._current = published
        logger.info(f"Sample store replaced: {len(published)} samples (generation {published.generation})")
        return published

    def clear(self) -> SampleSet:
        """Replace the store with an empty generation."""
        return self.replace_arrays(np.zeros((0, DESCRIPTOR_LEN), dtype=np.float32), [])

    def __len__(self) -> int:
        return len(self.snapshot())


def save_samples(
    path: Union[str, Path],
    descriptors: np.ndarray,
    categories: np.ndarray,
) -> Path:
    """Export samples to NPZ format.

    Args:
        path: Output file path
        descriptors: (N, 128) descriptors
        categories: N category ids

    Returns:
        Path of the written file
    """
    staged = SampleSet.build(descriptors, categories)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        np.savez_compressed(f, descriptors=staged.descriptors, categories=staged.categories)
    logger.info(f"Saved {len(staged)} samples to {path}")
    return path


def load_samples(path: Union[str, Path]) -> Tuple[np.ndarray, np.ndarray]:
    """Import samples from NPZ format.

    Args:
        path: File written by save_samples

    Returns:
        Tuple of (descriptors, categories)
    """
    with np.load(Path(path)) as data:
        staged = SampleSet.build(data["descriptors"], data["categories"])
    logger.info(f"Loaded {len(staged)} samples from {path}")
    return np.array(staged.descriptors), np.array(staged.categories)
