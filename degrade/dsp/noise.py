"""
Additive artifacts: uniform noise floor and impulsive crackle.
Both take an explicit generator so a run's randomness is its own.
"""
from typing import Optional

import torch


def add_noise(x: torch.Tensor, amplitude: float, generator: Optional[torch.Generator] = None) -> torch.Tensor:
    """x + U[-0.5, 0.5] * amplitude."""
    if amplitude <= 0:
        return x
    noise = torch.rand(x.shape, generator=generator) - 0.5
    return x + noise.to(x.dtype) * amplitude


def inject_crackle(
    x: torch.Tensor,
    probability: float,
    generator: Optional[torch.Generator] = None,
) -> torch.Tensor:
    """Replace each sample with U[-1, 1] independently with the given probability."""
    if probability <= 0:
        return x
    hits = torch.rand(x.shape, generator=generator) < probability
    values = torch.rand(x.shape, generator=generator) * 2.0 - 1.0
    return torch.where(hits, values.to(x.dtype), x)
