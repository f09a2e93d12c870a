from dataclasses import dataclass
from typing import Optional

import torch

from degrade.core.errors import InvalidInput
from degrade.dsp.compressor import CompressorState
from degrade.params.schema import QualitySettings


@dataclass
class AudioBuffer:
    """
    A fully decoded signal: samples is float32 (channels, frames), nominally in [-1, 1].
    Buffers are treated as read-only once built; stages always return new tensors.
    """
    samples: torch.Tensor
    sample_rate: int

    def __post_init__(self):
        if not isinstance(self.samples, torch.Tensor):
            self.samples = torch.as_tensor(self.samples)
        if self.samples.dim() == 1:
            self.samples = self.samples.unsqueeze(0)
        if self.samples.dim() != 2:
            raise InvalidInput(f"samples must be (channels, frames), got shape {tuple(self.samples.shape)}")
        if self.samples.shape[0] < 1:
            raise InvalidInput("audio must have at least one channel")
        if isinstance(self.sample_rate, bool) or int(self.sample_rate) != self.sample_rate or self.sample_rate <= 0:
            raise InvalidInput(f"sample_rate must be a positive integer, got {self.sample_rate}")
        self.sample_rate = int(self.sample_rate)
        self.samples = self.samples.to(torch.float32)
        if not bool(torch.isfinite(self.samples).all()):
            # Same mapping as the decoder: NaN -> 0, +-inf -> +-1
            self.samples = torch.nan_to_num(self.samples, nan=0.0, posinf=1.0, neginf=-1.0)

    @property
    def channel_count(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        return self.frame_count / self.sample_rate


@dataclass
class ProcessingRun:
    """
    State of one processing invocation. Owned by a single call; never shared.
    progress is the completed fraction (0..1) of the signal chain.
    """
    input: AudioBuffer
    settings: QualitySettings
    generator: torch.Generator
    compressor_state: Optional[CompressorState] = None
    batch_index: int = 0
    progress: float = 0.0
    output: Optional[AudioBuffer] = None
    seed: Optional[int] = None

    @classmethod
    def start(
        cls,
        buffer: AudioBuffer,
        settings: QualitySettings,
        seed: Optional[int] = None,
        generator: Optional[torch.Generator] = None,
    ) -> "ProcessingRun":
        """Fresh run: new random source and a compressor at unity gain."""
        if generator is None:
            generator = torch.Generator()
            if seed is None:
                seed = generator.seed()
            else:
                generator.manual_seed(seed)
        return cls(
            input=buffer,
            settings=settings,
            generator=generator,
            compressor_state=CompressorState.initial(buffer.channel_count),
            seed=seed,
        )
