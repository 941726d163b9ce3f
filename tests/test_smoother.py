import numpy as np
import pytest

from depth_relief.smoother import TemporalSmoother


class TestTemporalSmoother:
    def test_cold_start_returns_incoming(self):
        s = TemporalSmoother(0.6)
        incoming = np.array([0.1, 0.9], dtype=np.float32)
        out = s.smooth(incoming)
        np.testing.assert_array_equal(out, incoming)
        assert out is not incoming

    def test_example(self):
        s = TemporalSmoother(0.6)
        s.smooth(np.array([0.0, 1.0]))
        out = s.smooth(np.array([1.0, 0.0]))
        np.testing.assert_allclose(out, [0.6, 0.4], rtol=1e-6)

    def test_blend_law(self):
        rng = np.random.default_rng(1)
        d1 = rng.random(64).astype(np.float32)
        d2 = rng.random(64).astype(np.float32)
        s = TemporalSmoother(0.6)
        s.smooth(d1)
        out = s.smooth(d2)
        np.testing.assert_allclose(out, 0.6 * d2 + 0.4 * d1, rtol=1e-5, atol=1e-6)

    def test_length_change_resets(self):
        s = TemporalSmoother(0.6)
        s.smooth(np.zeros(4))
        incoming = np.array([0.3, 0.7, 1.0], dtype=np.float32)
        out = s.smooth(incoming)
        np.testing.assert_array_equal(out, incoming)
        np.testing.assert_array_equal(s.state, incoming)

    def test_state_persists_across_calls(self):
        s = TemporalSmoother(0.5)
        s.smooth(np.array([0.0]))
        s.smooth(np.array([1.0]))
        out = s.smooth(np.array([1.0]))
        np.testing.assert_allclose(out, [0.75])

    def test_incoming_is_not_mutated(self):
        s = TemporalSmoother(0.6)
        s.smooth(np.array([0.0, 0.0], dtype=np.float32))
        incoming = np.array([1.0, 1.0], dtype=np.float32)
        s.smooth(incoming)
        assert incoming.tolist() == [1.0, 1.0]

    def test_reset(self):
        s = TemporalSmoother()
        s.smooth(np.ones(2))
        s.reset()
        assert s.state is None

    def test_alpha_bounds(self):
        with pytest.raises(ValueError):
            TemporalSmoother(1.5)
