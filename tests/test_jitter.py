"""Tests for chip jittering and descriptor stabilization."""

import threading

import numpy as np
import pytest


@pytest.fixture
def chip():
    """A 150x150 RGB chip with some structure."""
    rng = np.random.default_rng(7)
    return rng.integers(0, 255, (150, 150, 3), dtype=np.uint8)


class _FixedAugmenter:
    """Returns ``count`` copies of the chip without perturbation."""

    def __init__(self):
        self.counts = []

    def jitter(self, chip, count):
        self.counts.append(count)
        return [chip.copy() for _ in range(count)]


class TestDescriptorAugmenter:
    """Test cases for DescriptorAugmenter."""

    def test_returns_requested_count(self, chip):
        """Test jitter produces exactly the requested number of variants."""
        from facerec import DescriptorAugmenter

        variants = DescriptorAugmenter().jitter(chip, 5)
        assert len(variants) == 5
        for v in variants:
            assert v.shape == chip.shape
            assert v.dtype == np.uint8

    def test_zero_count(self, chip):
        """Test zero variants is an empty list."""
        from facerec import DescriptorAugmenter

        assert DescriptorAugmenter().jitter(chip, 0) == []

    def test_variants_differ_from_chip(self, chip):
        """Test variants are actually perturbed."""
        from facerec import DescriptorAugmenter

        variants = DescriptorAugmenter().jitter(chip, 3)
        assert any(not np.array_equal(v, chip) for v in variants)

    def test_seeded_augmenters_agree(self, chip):
        """Test two augmenters with the same seed produce the same variants."""
        from facerec import DescriptorAugmenter
        from facerec.constants import JitterConfig

        a = DescriptorAugmenter(JitterConfig(seed=123)).jitter(chip, 4)
        b = DescriptorAugmenter(JitterConfig(seed=123)).jitter(chip, 4)
        for va, vb in zip(a, b):
            assert np.array_equal(va, vb)

    def test_generator_is_per_thread(self):
        """Test each thread gets its own random generator."""
        from facerec import DescriptorAugmenter

        augmenter = DescriptorAugmenter()
        main_rng = augmenter.rng
        assert augmenter.rng is main_rng

        seen = []
        t = threading.Thread(target=lambda: seen.append(augmenter.rng))
        t.start()
        t.join()

        assert seen[0] is not main_rng

    def test_mirror_always(self):
        """Test mirror probability 1 flips a chip with no other change."""
        from facerec import DescriptorAugmenter
        from facerec.constants import JitterConfig

        config = JitterConfig(
            max_rotation_degrees=0.0,
            translate_amount=0.0,
            mirror_probability=1.0,
            seed=1,
        )
        chip = np.zeros((150, 150, 3), dtype=np.uint8)
        chip[:, :40] = 255

        variant = DescriptorAugmenter(config).jitter(chip, 1)[0]
        # Bright band moved from the left edge to the right edge
        assert variant[75, 145:].mean() > 200
        assert variant[75, 10:30].mean() < 50


class TestDescriptorStabilizer:
    """Test cases for DescriptorStabilizer."""

    def test_mean_of_variants(self, chip, fake_network_factory):
        """Test the descriptor is the elementwise mean of the variant vectors."""
        from facerec import DescriptorStabilizer, ModelPool

        vectors = [np.full(128, v, dtype=np.float32) for v in (1.0, 2.0, 6.0)]
        vectors[1][0] = 8.0
        network = fake_network_factory(vectors)
        augmenter = _FixedAugmenter()
        stabilizer = DescriptorStabilizer(ModelPool([network]), augmenter)

        descriptor = stabilizer.stabilize(chip, 3)

        expected = np.mean(np.stack(vectors).astype(np.float64), axis=0)
        assert descriptor.dtype == np.float32
        assert descriptor.shape == (128,)
        np.testing.assert_allclose(descriptor, expected, rtol=1e-6)
        assert network.calls == 3
        assert augmenter.counts == [3]

    def test_single_variant_is_exact(self, chip, fake_network_factory):
        """Test one jitter returns the variant's vector unchanged."""
        from facerec import DescriptorStabilizer, ModelPool

        vector = np.random.default_rng(3).normal(size=128).astype(np.float32)
        stabilizer = DescriptorStabilizer(
            ModelPool([fake_network_factory([vector])]), _FixedAugmenter()
        )

        assert np.array_equal(stabilizer.stabilize(chip, 1), vector)

    def test_zero_jitter_uses_raw_chip(self, chip, fake_network_factory):
        """Test jitter 0 is one evaluation of the unaugmented chip."""
        from facerec import DescriptorStabilizer, ModelPool

        vector = np.arange(128, dtype=np.float32)
        network = fake_network_factory([vector])
        augmenter = _FixedAugmenter()
        stabilizer = DescriptorStabilizer(ModelPool([network]), augmenter)

        assert np.array_equal(stabilizer.stabilize(chip, 0), vector)
        assert network.calls == 1
        assert augmenter.counts == []

    def test_negative_jitter_rejected(self, chip, fake_network_factory):
        """Test negative jitter is an invalid argument."""
        from facerec import DescriptorStabilizer, ModelPool

        stabilizer = DescriptorStabilizer(ModelPool([fake_network_factory([np.zeros(128)])]))
        with pytest.raises(ValueError):
            stabilizer.stabilize(chip, -1)

    def test_wrong_embedding_length_rejected(self, chip, fake_network_factory):
        """Test a network returning the wrong size is reported."""
        from facerec import DescriptorStabilizer, ModelPool

        stabilizer = DescriptorStabilizer(ModelPool([fake_network_factory([np.zeros(64)])]))
        with pytest.raises(ValueError):
            stabilizer.stabilize(chip, 0)

    def test_real_augmenter_with_network(self, chip, fake_models):
        """Test stabilization end to end with the random augmenter."""
        from facerec import DescriptorStabilizer, ModelPool

        network = fake_models.networks[0]
        stabilizer = DescriptorStabilizer(ModelPool([network]))

        descriptor = stabilizer.stabilize(chip, 4)
        assert descriptor.shape == (128,)
        assert np.all(np.isfinite(descriptor))
        assert network.calls == 4
