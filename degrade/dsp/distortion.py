"""
Waveshaper transfer functions. All are memoryless; only glitch draws random numbers,
and it draws them from the generator the caller passes in.
"""
import math
from typing import Optional

import torch

from degrade.dsp.quantize import quantize_bits
from degrade.params.schema import DistortionType

RADIO_CEILING = 0.7
DEFAULT_GLITCH_RATE = 0.002


def digital(x: torch.Tensor, drive: float) -> torch.Tensor:
    """Hard symmetric saturation."""
    return torch.tanh(x * drive)


def analog(x: torch.Tensor, drive: float) -> torch.Tensor:
    """Softer sine saturation."""
    return torch.sin(x * drive * (math.pi / 2.0))


def bitcrush(x: torch.Tensor, drive: float) -> torch.Tensor:
    """Coarse quantization as a distortion: 2^max(1, 16 - drive) levels."""
    bits = max(1, int(round(16.0 - drive)))
    return quantize_bits(torch.clamp(x, -1.0, 1.0), bits)


def radio(x: torch.Tensor, drive: float) -> torch.Tensor:
    """Sine nonlinearity squeezed into a narrow, limited-headroom range."""
    shaped = RADIO_CEILING * torch.sin(x * drive)
    return torch.clamp(shaped, -RADIO_CEILING, RADIO_CEILING)


def glitch(
    x: torch.Tensor,
    drive: float,
    generator: Optional[torch.Generator] = None,
    rate: float = DEFAULT_GLITCH_RATE,
) -> torch.Tensor:
    """Replace samples with U[-1, 1] at probability min(1, drive * rate); pass the rest through."""
    probability = min(1.0, max(0.0, drive * rate))
    hits = torch.rand(x.shape, generator=generator) < probability
    values = torch.rand(x.shape, generator=generator) * 2.0 - 1.0
    return torch.where(hits, values.to(x.dtype), x)


_SHAPERS = {
    DistortionType.DIGITAL: digital,
    DistortionType.ANALOG: analog,
    DistortionType.BITCRUSH: bitcrush,
    DistortionType.RADIO: radio,
}


def apply_distortion(
    x: torch.Tensor,
    distortion_type: DistortionType,
    drive: float,
    generator: Optional[torch.Generator] = None,
    glitch_rate: float = DEFAULT_GLITCH_RATE,
) -> torch.Tensor:
    distortion_type = DistortionType.parse(distortion_type)
    if distortion_type is DistortionType.GLITCH:
        return glitch(x, drive, generator=generator, rate=glitch_rate)
    return _SHAPERS[distortion_type](x, drive)
