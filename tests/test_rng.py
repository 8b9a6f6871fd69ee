"""Unit tests for the per-stream random number generator.

Tests cover:
- Seeding from a global seed (determinism, distinct seeds, no zero states)
- Range and rough uniformity of next_float
- Independence of streams from one another
- Argument validation
"""

import numpy as np
import pytest
import taichi as ti


def _draw(stream_count, draws):
    from pathtracer.core.rng import next_float

    out = ti.field(dtype=ti.f32, shape=(stream_count, draws))

    @ti.kernel
    def test_kernel():
        for s in range(stream_count):
            for k in range(draws):
                out[s, k] = next_float(s)

    test_kernel()
    return out.to_numpy()


class TestSeeding:
    """Tests for seed_streams."""

    def test_same_seed_same_states(self):
        from pathtracer.core.rng import get_stream_states, seed_streams

        seed_streams(5, 100)
        a = get_stream_states(100)
        seed_streams(5, 100)
        b = get_stream_states(100)
        np.testing.assert_array_equal(a, b)

    def test_different_seeds_differ(self):
        from pathtracer.core.rng import get_stream_states, seed_streams

        seed_streams(1, 100)
        a = get_stream_states(100)
        seed_streams(2, 100)
        b = get_stream_states(100)
        assert not np.array_equal(a, b)

    def test_states_are_nonzero(self):
        from pathtracer.core.rng import get_stream_states, seed_streams

        seed_streams(0, 4096)
        assert np.all(get_stream_states(4096) != 0)

    def test_negative_seed_rejected(self):
        from pathtracer.core.rng import seed_streams

        with pytest.raises(ValueError):
            seed_streams(-1, 10)

    def test_count_out_of_range_rejected(self):
        from pathtracer.core.rng import MAX_STREAMS, seed_streams

        with pytest.raises(ValueError):
            seed_streams(0, MAX_STREAMS + 1)
        with pytest.raises(ValueError):
            seed_streams(0, -1)


class TestDraws:
    """Tests for next_float."""

    def test_values_in_unit_interval(self):
        from pathtracer.core.rng import seed_streams

        seed_streams(42, 16)
        values = _draw(16, 256)
        assert values.min() >= 0.0
        assert values.max() < 1.0

    def test_mean_close_to_half(self):
        from pathtracer.core.rng import seed_streams

        seed_streams(42, 64)
        values = _draw(64, 512)
        assert abs(values.mean() - 0.5) < 0.01

    def test_draws_reproducible_after_reseed(self):
        from pathtracer.core.rng import seed_streams

        seed_streams(9, 8)
        a = _draw(8, 32)
        seed_streams(9, 8)
        b = _draw(8, 32)
        np.testing.assert_array_equal(a, b)

    def test_streams_are_independent(self):
        """Drawing from other streams does not change a stream's sequence."""
        from pathtracer.core.rng import next_float, seed_streams

        seed_streams(3, 4)
        all_streams = _draw(4, 16)

        seed_streams(3, 4)
        only_two = ti.field(dtype=ti.f32, shape=16)

        @ti.kernel
        def test_kernel():
            for _ in range(1):
                for k in range(16):
                    only_two[k] = next_float(2)

        test_kernel()
        np.testing.assert_array_equal(only_two.to_numpy(), all_streams[2])

    def test_streams_produce_different_sequences(self):
        from pathtracer.core.rng import seed_streams

        seed_streams(3, 4)
        values = _draw(4, 16)
        assert not np.array_equal(values[0], values[1])
