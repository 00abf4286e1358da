"""Tests for the sample store."""

import threading

import numpy as np
import pytest


def _generation_arrays(value: int, count: int = 3):
    """Descriptors and categories all tagged with ``value``."""
    descriptors = np.full((count, 128), float(value), dtype=np.float32)
    categories = np.full((count,), value, dtype=np.int32)
    return descriptors, categories


class TestSampleSet:
    """Test cases for SampleSet."""

    def test_empty(self):
        """Test the empty set."""
        from facerec import SampleSet

        empty = SampleSet.empty()
        assert len(empty) == 0
        assert empty.descriptors.shape == (0, 128)
        assert list(empty) == []

    def test_flat_buffer_accepted(self):
        """Test a flat N * 128 buffer is reshaped."""
        from facerec import SampleSet

        sample_set = SampleSet.build(np.zeros(256, dtype=np.float32), [4, 5])
        assert sample_set.descriptors.shape == (2, 128)
        assert [s.category for s in sample_set] == [4, 5]

    def test_arrays_are_read_only_copies(self):
        """Test the stored arrays cannot be mutated through either side."""
        from facerec import SampleSet

        source = np.zeros((1, 128), dtype=np.float32)
        sample_set = SampleSet.build(source, [1])
        source[0, 0] = 9.0

        assert sample_set.descriptors[0, 0] == 0.0
        with pytest.raises(ValueError):
            sample_set.descriptors[0, 0] = 1.0

    def test_validation(self):
        """Test malformed input is rejected."""
        from facerec import SampleSet

        with pytest.raises(ValueError):
            SampleSet.build(np.zeros((2, 128)), [1])
        with pytest.raises(ValueError):
            SampleSet.build(np.zeros((2, 64)), [1, 2])
        with pytest.raises(ValueError):
            SampleSet.build(np.zeros(130), [1])
        with pytest.raises(ValueError):
            SampleSet.build(np.zeros((1, 128)), [2 ** 31])

    def test_large_opaque_categories(self):
        """Test categories need not be small or contiguous."""
        from facerec import SampleSet

        sample_set = SampleSet.build(np.zeros((2, 128)), [2 ** 31 - 1, -5])
        assert [s.category for s in sample_set] == [2 ** 31 - 1, -5]


class TestSampleStore:
    """Test cases for SampleStore."""

    def test_starts_empty(self):
        """Test a new store is empty at generation zero."""
        from facerec import SampleStore

        store = SampleStore()
        assert len(store) == 0
        assert store.snapshot().generation == 0

    def test_replace_publishes_new_generation(self):
        """Test each replace bumps the generation and swaps contents."""
        from facerec import Sample, SampleStore

        store = SampleStore()
        first = store.snapshot()
        published = store.replace([Sample(np.ones(128), 7), Sample(np.zeros(128), 9)])

        assert published.generation == 1
        assert store.snapshot() is published
        assert [s.category for s in store.snapshot()] == [7, 9]
        # Old snapshot is untouched
        assert len(first) == 0

        store.clear()
        assert len(store) == 0
        assert store.snapshot().generation == 2

    def test_failed_replace_keeps_current(self):
        """Test invalid input leaves the published generation in place."""
        from facerec import SampleStore

        store = SampleStore()
        store.replace_arrays(*_generation_arrays(1))
        with pytest.raises(ValueError):
            store.replace_arrays(np.zeros((2, 128)), [1, 2, 3])

        assert store.snapshot().generation == 1
        assert len(store) == 3

    def test_non_finite_descriptor_rejected(self):
        """Test NaN and infinite descriptors never reach the store."""
        from facerec import Classifier, Sample, SampleStore

        store = SampleStore()
        store.replace([Sample(np.zeros(128), 7)])

        with pytest.raises(ValueError):
            store.replace([Sample(np.full(128, np.nan), 99), Sample(np.zeros(128), 7)])
        bad = np.zeros(128)
        bad[5] = np.inf
        with pytest.raises(ValueError):
            store.replace_arrays(bad, [99])

        assert store.snapshot().generation == 1
        assert Classifier(store).classify(np.zeros(128)) == 7

    def test_concurrent_replace_never_tears(self):
        """Test readers racing a writer always see one whole generation."""
        from facerec import Classifier, SampleStore

        store = SampleStore()
        classifier = Classifier(store, tolerance=-1)
        store.replace_arrays(*_generation_arrays(1))
        stop = threading.Event()
        failures = []

        def writer():
            for value in range(2, 200):
                store.replace_arrays(*_generation_arrays(value, count=1 + value % 4))
            stop.set()

        def reader():
            query = np.zeros(128, dtype=np.float32)
            while not stop.is_set():
                snap = store.snapshot()
                tag = snap.generation
                if not (np.all(snap.descriptors == tag) and np.all(snap.categories == tag)):
                    failures.append(("snapshot", tag))
                match = classifier.match(query)
                if match.category != match.generation:
                    failures.append(("match", match))

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        w = threading.Thread(target=writer)
        w.start()
        w.join()
        for t in readers:
            t.join()

        assert failures == []
        assert store.snapshot().generation == 199


class TestSampleFiles:
    """Test cases for sample persistence."""

    def test_save_and_load(self, tmp_path):
        """Test samples survive a save/load cycle."""
        from facerec import load_samples, save_samples

        descriptors = np.random.default_rng(0).normal(size=(3, 128)).astype(np.float32)
        categories = np.array([7, 9, 7], dtype=np.int32)

        path = save_samples(tmp_path / "known" / "samples.npz", descriptors, categories)
        assert path.exists()

        loaded_desc, loaded_cats = load_samples(path)
        np.testing.assert_array_equal(loaded_desc, descriptors)
        np.testing.assert_array_equal(loaded_cats, categories)
        # Loaded arrays are writable copies
        loaded_desc[0, 0] = 1.0
