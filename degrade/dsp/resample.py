"""
Sample-rate reduction via torchaudio's band-limited (sinc) resampler.
"""
import torch
import torchaudio.functional as F


def resample(samples: torch.Tensor, orig_rate: int, new_rate: int) -> torch.Tensor:
    """
    Resample a (channels, frames) tensor. Output frames = ceil(frames * new_rate / orig_rate).
    Same rate or empty input returns a copy.
    """
    if orig_rate == new_rate:
        return samples.clone()
    if samples.shape[-1] == 0:
        return samples.new_zeros(samples.shape[:-1] + (0,))
    return F.resample(samples, orig_rate, new_rate)


def resampled_length(frames: int, orig_rate: int, new_rate: int) -> int:
    """Frame count resample() produces."""
    if orig_rate == new_rate:
        return frames
    return -(-frames * new_rate // orig_rate)
