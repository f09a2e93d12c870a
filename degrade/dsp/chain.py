"""
Signal chain engine. Order per sample:
    pre-gain -> compressor -> waveshaper -> level quantizer -> resampler
    -> noise -> crackle -> output gain -> clamp [-1, 1]

Work is split into fixed-size batches only so progress can be reported between
them; batch size never changes the output. The compressor is the only stage with
memory, and its state is threaded from batch to batch through the ProcessingRun.
"""
from typing import Iterator, Optional
import logging

import torch

from degrade.config import DEFAULT_CONFIG, EngineConfig
from degrade.core.types import AudioBuffer, ProcessingRun
from degrade.dsp.compressor import Compressor, CompressorState
from degrade.dsp.distortion import apply_distortion
from degrade.dsp.noise import add_noise, inject_crackle
from degrade.dsp.quantize import quantize_bits
from degrade.dsp.resample import resample, resampled_length
from degrade.params.schema import QualitySettings

logger = logging.getLogger("degrade")


class SignalChain:
    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def _front(
        self,
        block: torch.Tensor,
        settings: QualitySettings,
        compressor: Compressor,
        state: CompressorState,
        generator: torch.Generator,
    ):
        """Stages 1-4 on one batch. Returns (block, compressor state)."""
        # 1. Headroom before compression
        x = block * self.config.pre_gain

        # 2. Dynamics
        x, state = compressor.process(x, state)

        # 3. Waveshaper
        if settings.distortion_amount > 0:
            x = apply_distortion(
                x,
                settings.distortion_type,
                settings.drive,
                generator=generator,
                glitch_rate=self.config.glitch_rate,
            )

        # 4. Level quantization
        if settings.target_bit_depth is not None:
            x = quantize_bits(x, settings.target_bit_depth)

        return x, state

    @staticmethod
    def _back(block: torch.Tensor, settings: QualitySettings, generator: torch.Generator) -> torch.Tensor:
        """Stages 6-8 on one batch."""
        x = block
        if settings.noise_enabled:
            x = add_noise(x, settings.noise_amplitude, generator=generator)
        if settings.crackle_enabled:
            x = inject_crackle(x, settings.crackle_probability, generator=generator)
        x = x * settings.output_gain
        return torch.clamp(x, -1.0, 1.0)

    def steps(self, run: ProcessingRun) -> Iterator[float]:
        """
        Run the chain over run.input, yielding the completed fraction (0..1] after
        every batch. When exhausted, run.output holds the processed buffer.
        """
        settings = run.settings
        source = run.input
        sample_rate = source.sample_rate
        frames = source.frame_count
        batch = self.config.batch_frames

        target_rate = settings.target_sample_rate
        out_rate = target_rate if target_rate is not None else sample_rate
        out_frames = resampled_length(frames, sample_rate, out_rate)
        total = frames + out_frames

        logger.info(
            "Processing %d ch x %d frames @ %d Hz (quality=%s, out_rate=%d)",
            source.channel_count, frames, sample_rate, settings.quality, out_rate,
        )

        if frames == 0:
            run.output = AudioBuffer(samples=source.samples.new_zeros((source.channel_count, 0)), sample_rate=out_rate)
            run.progress = 1.0
            yield run.progress
            return

        compressor = Compressor.from_settings(settings, sample_rate)
        if run.compressor_state is None:
            run.compressor_state = CompressorState.initial(source.channel_count)

        done = 0
        shaped = torch.empty_like(source.samples)
        for start in range(0, frames, batch):
            end = min(start + batch, frames)
            block, run.compressor_state = self._front(
                source.samples[:, start:end], settings, compressor, run.compressor_state, run.generator
            )
            shaped[:, start:end] = block
            run.batch_index += 1
            done += end - start
            run.progress = done / total
            yield run.progress

        # 5. Sample-rate reduction (whole buffer; changes frame count)
        if out_rate != sample_rate:
            shaped = resample(shaped, sample_rate, out_rate)
            logger.debug("Resampled %d -> %d frames", frames, shaped.shape[-1])

        output = torch.empty_like(shaped)
        for start in range(0, shaped.shape[-1], batch):
            end = min(start + batch, shaped.shape[-1])
            output[:, start:end] = self._back(shaped[:, start:end], settings, run.generator)
            run.batch_index += 1
            done += end - start
            run.progress = min(1.0, done / total)
            yield run.progress

        run.output = AudioBuffer(samples=output, sample_rate=out_rate)
        if run.progress < 1.0:
            run.progress = 1.0
            yield run.progress

    def process(
        self,
        buffer: AudioBuffer,
        settings: QualitySettings,
        seed: Optional[int] = None,
        generator: Optional[torch.Generator] = None,
    ) -> AudioBuffer:
        """Run the whole chain synchronously and return the new buffer."""
        run = ProcessingRun.start(buffer, settings, seed=seed, generator=generator)
        for _ in self.steps(run):
            pass
        return run.output
