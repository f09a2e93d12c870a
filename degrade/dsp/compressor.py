"""
Feed-forward soft-knee compressor.

The gain computer works on instantaneous magnitude in dB (no RMS window).
Gain reduction is smoothed with one-pole attack/release coefficients, and the
smoothed gain per channel is the only state carried between batches. It is
held in an immutable CompressorState that each batch call takes and returns.
"""
from dataclasses import dataclass
from typing import Tuple
import math

import torch

SILENCE_DB = -200.0


@dataclass(frozen=True)
class CompressorState:
    """Smoothed gain (dB, <= 0) per channel."""
    gain_db: Tuple[float, ...]

    @classmethod
    def initial(cls, channels: int) -> "CompressorState":
        return cls(gain_db=(0.0,) * channels)


def time_coefficient(seconds: float, sample_rate: int) -> float:
    """One-pole smoothing coefficient for a time constant."""
    if seconds <= 0:
        return 0.0
    return math.exp(-1.0 / (seconds * sample_rate))


def gain_reduction_db(level_db: float, threshold_db: float, ratio: float, knee_db: float) -> float:
    """
    Static curve: dB of gain change (<= 0) for an input level.
    Below the knee -> 0; inside the knee -> quadratic blend; above -> (1/ratio - 1) * overshoot.
    """
    over = level_db - threshold_db
    slope = 1.0 / ratio - 1.0
    if knee_db > 0 and 2.0 * abs(over) <= knee_db:
        return slope * (over + knee_db / 2.0) ** 2 / (2.0 * knee_db)
    if over > 0:
        return slope * over
    return 0.0


class Compressor:
    def __init__(
        self,
        sample_rate: int,
        threshold_db: float,
        ratio: float,
        knee_db: float,
        attack_seconds: float,
        release_seconds: float,
    ):
        self.sample_rate = sample_rate
        self.threshold_db = threshold_db
        self.ratio = ratio
        self.knee_db = knee_db
        self.attack_coeff = time_coefficient(attack_seconds, sample_rate)
        self.release_coeff = time_coefficient(release_seconds, sample_rate)

    @classmethod
    def from_settings(cls, settings, sample_rate: int) -> "Compressor":
        return cls(
            sample_rate=sample_rate,
            threshold_db=settings.threshold_db,
            ratio=settings.compression_ratio,
            knee_db=settings.knee_db,
            attack_seconds=settings.attack_seconds,
            release_seconds=settings.release_seconds,
        )

    @property
    def bypassed(self) -> bool:
        return self.ratio <= 1.0

    def process_channel(self, samples: torch.Tensor, gain_db: float) -> Tuple[torch.Tensor, float]:
        """Compress one channel block starting from gain_db; return (output, final gain_db)."""
        if self.bypassed or samples.numel() == 0:
            return samples.clone(), gain_db

        threshold, ratio, knee = self.threshold_db, self.ratio, self.knee_db
        attack, release = self.attack_coeff, self.release_coeff
        g = gain_db
        out = []
        for x in samples.tolist():
            mag = abs(x)
            level = 20.0 * math.log10(mag) if mag > 1e-10 else SILENCE_DB
            target = gain_reduction_db(level, threshold, ratio, knee)
            # Attack while reduction deepens, release while it recovers
            coeff = attack if target < g else release
            g = coeff * g + (1.0 - coeff) * target
            out.append(x * 10.0 ** (g / 20.0))
        return torch.tensor(out, dtype=samples.dtype), g

    def process(self, block: torch.Tensor, state: CompressorState) -> Tuple[torch.Tensor, CompressorState]:
        """
        Compress a (channels, frames) block. Channels are independent (unlinked).
        Returns the new block and the state to hand to the next batch.
        """
        if block.shape[0] != len(state.gain_db):
            raise ValueError(f"state has {len(state.gain_db)} channels, block has {block.shape[0]}")
        channels = []
        gains = []
        for ch in range(block.shape[0]):
            out, g = self.process_channel(block[ch], state.gain_db[ch])
            channels.append(out)
            gains.append(g)
        return torch.stack(channels), CompressorState(gain_db=tuple(gains))
