"""
Uniform level quantizer. No dithering: the stepping noise is the effect.
"""
import torch


def level_count(bits: int) -> int:
    return 2 ** max(1, int(bits))


def quantize_levels(x: torch.Tensor, levels: int) -> torch.Tensor:
    """
    Snap each sample to the nearest of `levels` evenly spaced values spanning [-1, 1].
    Ties round toward positive. Already-quantized values are fixed points.
    """
    if levels < 2:
        raise ValueError(f"need at least 2 levels, got {levels}")
    steps = levels - 1
    index = torch.floor((x + 1.0) / 2.0 * steps + 0.5)
    index = torch.clamp(index, 0, steps)
    return -1.0 + 2.0 * index / steps


def quantize_bits(x: torch.Tensor, bits: int) -> torch.Tensor:
    """Quantize to 2^bits levels."""
    return quantize_levels(x, level_count(bits))
