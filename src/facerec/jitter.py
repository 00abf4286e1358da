"""Descriptor stabilization by jittering face chips.

A single pass of the embedding network is sensitive to small pose and crop
differences. Evaluating several slightly zoomed, rotated, shifted and
mirrored copies of the chip and averaging the vectors gives a steadier
descriptor at a cost proportional to the number of copies.
"""

import logging
import threading
from typing import List, Optional

import cv2
import numpy as np

from .constants import JitterConfig
from .governor import ModelPool
from .types import DESCRIPTOR_LEN

logger = logging.getLogger(__name__)


class DescriptorAugmenter:
    """Produces randomly perturbed copies of a face chip.

    Each thread draws from its own generator, so concurrent calls never
    contend on random number generation. With a seed, every thread's
    generator is spawned from the same SeedSequence.
    """

    def __init__(self, config: Optional[JitterConfig] = None):
        self.config = config or JitterConfig()
        self._seed_seq = np.random.SeedSequence(self.config.seed)
        self._spawn_lock = threading.Lock()
        self._local = threading.local()

    @property
    def rng(self) -> np.random.Generator:
        """Generator owned by the calling thread."""
        rng = getattr(self._local, "rng", None)
        if rng is None:
            with self._spawn_lock:
                child = self._seed_seq.spawn(1)[0]
            rng = np.random.default_rng(child)
            self._local.rng = rng
        return rng

    def jitter(self, chip: np.ndarray, count: int) -> List[np.ndarray]:
        """Return ``count`` independently perturbed copies of ``chip``."""
        rng = self.rng
        return [self.jitter_image(chip, rng) for _ in range(count)]

    def jitter_image(self, chip: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Apply one random similarity transform and optional mirror.

        Args:
            chip: RGB face chip (rows x cols x 3)
            rng: Random generator to draw the perturbation from

        Returns:
            Perturbed chip with the same shape as the input
        """
        cfg = self.config
        rows, cols = chip.shape[:2]

        # Object box is the chip shrunk by a small border
        left = top = cfg.border_shrink
        right = cols - 1 - cfg.border_shrink
        bottom = rows - 1 - cfg.border_shrink
        obj_w = max(right - left + 1, 1)
        obj_h = max(bottom - top + 1, 1)
        obj_size = max(obj_w, obj_h)

        shift = rng.uniform(-cfg.translate_amount, cfg.translate_amount, size=2) * obj_size
        scale_perturb = rng.uniform(cfg.min_object_height, cfg.max_object_height)
        box_size = obj_h / scale_perturb
        angle = rng.uniform(-cfg.max_rotation_degrees, cfg.max_rotation_degrees)

        cx = (left + right) / 2.0 + shift[0]
        cy = (top + bottom) / 2.0 + shift[1]

        # Map the rotated crop box centered on (cx, cy) onto the output chip
        matrix = cv2.getRotationMatrix2D((cx, cy), angle, cols / box_size)
        matrix[0, 2] += (cols - 1) / 2.0 - cx
        matrix[1, 2] += (rows - 1) / 2.0 - cy
        out = cv2.warpAffine(
            chip, matrix, (cols, rows),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
        )

        if rng.random() < cfg.mirror_probability:
            out = cv2.flip(out, 1)
        return np.ascontiguousarray(out)


class DescriptorStabilizer:
    """Turns a face chip into a descriptor averaged over jittered copies."""

    def __init__(self, networks: ModelPool, augmenter: Optional[DescriptorAugmenter] = None):
        self.networks = networks
        self.augmenter = augmenter or DescriptorAugmenter()

    def stabilize(self, chip: np.ndarray, jitter: int) -> np.ndarray:
        """Compute the descriptor of one chip.

        Args:
            chip: Aligned RGB face chip
            jitter: Number of jittered copies to average; 0 means a single
                pass over the unmodified chip

        Returns:
            128D float32 descriptor
        """
        if jitter < 0:
            raise ValueError(f"jitter must be >= 0, got {jitter}")

        variants = [chip] if jitter == 0 else self.augmenter.jitter(chip, jitter)

        # One lease covers all variants of this face only
        with self.networks.lease() as network:
            vectors = [self._check(network.compute(v)) for v in variants]

        return np.mean(np.stack(vectors), axis=0).astype(np.float32)

    @staticmethod
    def _check(vector: np.ndarray) -> np.ndarray:
        vec = np.asarray(vector, dtype=np.float64).reshape(-1)
        if vec.shape[0] != DESCRIPTOR_LEN:
            raise ValueError(
                f"Embedding network returned {vec.shape[0]} values, expected {DESCRIPTOR_LEN}"
            )
        return vec
