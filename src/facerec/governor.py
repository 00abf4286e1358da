"""Locking discipline for the shared model objects and the sample store.

The detector and the embedding network are expensive objects that must not
be invoked from two threads at once. Each model type lives in its own
ModelPool so detection for one call can overlap embedding for another.
A pool with a single instance behaves as a plain mutex; larger pools hold
duplicate instances, each leased to one caller at a time.

The sample store is guarded by a ReadWriteLock: any number of classify
calls read in parallel while a replace holds the lock exclusively.
"""

import logging
import queue
import threading
from contextlib import contextmanager
from typing import Generator, Generic, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ModelPool(Generic[T]):
    """Fixed-size pool of model instances handed out one caller at a time."""

    def __init__(self, instances: Sequence[T], name: str = "model"):
        if not instances:
            raise ValueError(f"{name} pool needs at least one instance")
        self.name = name
        self._size = len(instances)
        self._idle: "queue.Queue[T]" = queue.Queue()
        for instance in instances:
            self._idle.put(instance)

    @property
    def size(self) -> int:
        return self._size

    @property
    def available(self) -> int:
        """Number of instances not currently leased."""
        return self._idle.qsize()

    @contextmanager
    def lease(self) -> Generator[T, None, None]:
        """Check out one instance, blocking until one is free."""
        instance = self._idle.get()
        try:
            yield instance
        finally:
            self._idle.put(instance)


class ReadWriteLock:
    """Reader-preferring shared/exclusive lock.

    Readers only wait while a writer holds the lock. A writer waits until
    no reader or writer is active.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read_locked(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Generator[None, None, None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()

    @property
    def readers(self) -> int:
        """Number of active readers (diagnostic only)."""
        with self._cond:
            return self._readers


class ResourceGovernor:
    """Owns every lock shared across concurrent recognize/classify calls."""

    def __init__(
        self,
        detectors: Sequence,
        networks: Sequence,
        samples_lock: Optional[ReadWriteLock] = None,
    ):
        self.detectors = ModelPool(detectors, name="detector")
        self.networks = ModelPool(networks, name="network")
        self.samples_lock = samples_lock or ReadWriteLock()
        logger.debug(
            f"Resource governor ready: {self.detectors.size} detector(s), "
            f"{self.networks.size} network(s)"
        )

    def detector(self):
        """Lease a face detector."""
        return self.detectors.lease()

    def network(self):
        """Lease an embedding network."""
        return self.networks.lease()
