"""
Tests for degrade/dsp/compressor: static curve, smoothing, state across batches.
Run from project root: python -m pytest tests/test_compressor.py -v
"""
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest
import torch
from degrade.dsp.compressor import Compressor, CompressorState, gain_reduction_db, time_coefficient

SR = 44100


def _compressor(**overrides) -> Compressor:
    params = dict(
        sample_rate=SR,
        threshold_db=-30.0,
        ratio=8.0,
        knee_db=0.0,
        attack_seconds=0.001,
        release_seconds=0.1,
    )
    params.update(overrides)
    return Compressor(**params)


class TestGainCurve:
    def test_below_threshold_no_reduction(self):
        assert gain_reduction_db(-40.0, -30.0, 8.0, 0.0) == 0.0

    def test_above_threshold_hard_knee(self):
        # 10 dB over at 4:1 -> output 2.5 dB over -> -7.5 dB reduction
        assert gain_reduction_db(-20.0, -30.0, 4.0, 0.0) == pytest.approx(-7.5)

    def test_soft_knee_is_continuous_at_edges(self):
        threshold, ratio, knee = -30.0, 4.0, 10.0
        upper = threshold + knee / 2
        lower = threshold - knee / 2
        assert gain_reduction_db(upper, threshold, ratio, knee) == pytest.approx((1 / ratio - 1) * knee / 2)
        assert gain_reduction_db(lower, threshold, ratio, knee) == pytest.approx(0.0)

    def test_soft_knee_reduces_at_threshold(self):
        assert gain_reduction_db(-30.0, -30.0, 4.0, 10.0) < 0.0

    def test_time_coefficient(self):
        assert time_coefficient(0.0, SR) == 0.0
        assert 0.0 < time_coefficient(0.003, SR) < time_coefficient(0.1, SR) < 1.0


class TestCompressor:
    def test_quiet_signal_unchanged(self):
        comp = _compressor(threshold_db=-10.0)
        x = torch.full((1, 2000), 0.01)
        out, state = comp.process(x, CompressorState.initial(1))
        assert torch.equal(out, x)
        assert state.gain_db == (0.0,)

    def test_loud_signal_is_reduced_after_attack(self):
        comp = _compressor()
        x = torch.full((1, 4410), 0.9)
        out, state = comp.process(x, CompressorState.initial(1))
        assert float(out[0, 0]) > 0.5, "first sample should barely be touched"
        assert float(out[0, -1]) < 0.1, "settled output should be heavily reduced"
        assert state.gain_db[0] < -20.0

    def test_release_recovers_gain(self):
        comp = _compressor(release_seconds=0.01)
        loud = torch.full((1, 4410), 0.9)
        _, state = comp.process(loud, CompressorState.initial(1))
        quiet = torch.full((1, 44100), 0.001)
        _, state = comp.process(quiet, state)
        assert state.gain_db[0] > -0.01

    def test_batches_match_single_pass(self):
        """Threading state across batch boundaries must not change the output."""
        torch.manual_seed(0)
        x = torch.randn(2, 10000) * 0.5
        comp = _compressor(knee_db=6.0)
        whole, whole_state = comp.process(x, CompressorState.initial(2))

        state = CompressorState.initial(2)
        parts = []
        for start in range(0, 10000, 3000):
            part, state = comp.process(x[:, start:start + 3000], state)
            parts.append(part)
        assert torch.equal(torch.cat(parts, dim=1), whole)
        assert state == whole_state

    def test_channels_are_independent(self):
        comp = _compressor()
        x = torch.stack([torch.full((4410,), 0.9), torch.full((4410,), 0.001)])
        out, state = comp.process(x, CompressorState.initial(2))
        assert torch.equal(out[1], x[1])
        assert state.gain_db[1] == 0.0
        assert state.gain_db[0] < 0.0

    def test_ratio_one_bypasses(self):
        comp = _compressor(ratio=1.0)
        x = torch.full((1, 100), 0.9)
        out, state = comp.process(x, CompressorState.initial(1))
        assert torch.equal(out, x)
        assert state.gain_db == (0.0,)

    def test_state_shape_mismatch_rejected(self):
        comp = _compressor()
        with pytest.raises(ValueError):
            comp.process(torch.zeros(2, 10), CompressorState.initial(1))

    def test_input_not_mutated(self):
        comp = _compressor()
        x = torch.full((1, 1000), 0.9)
        before = x.clone()
        comp.process(x, CompressorState.initial(1))
        assert torch.equal(x, before)
