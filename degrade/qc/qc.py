"""
Quality Control analysis for processed buffers.
Checks the output contract (range, shape) and flags heavy clipping or DC drift.
"""
from typing import Dict, Optional

import numpy as np
import torch

from degrade.core.types import AudioBuffer
from degrade.qc.thresholds import QC_THRESHOLDS


def _dbfs(x: float) -> float:
    """Convert linear amplitude to dBFS."""
    if x <= 0:
        return -np.inf
    return 20.0 * np.log10(abs(x))


def analyze(buffer: AudioBuffer, reference: Optional[AudioBuffer] = None) -> Dict:
    """
    Analyze a processed buffer.

    Args:
        buffer: processed output
        reference: the input it was made from (enables shape checks)

    Returns:
        Dict with status ("PASS" / "WARN" / "FAIL"), metrics, failures, warnings
    """
    thresholds = QC_THRESHOLDS
    samples = buffer.samples.float()
    n = samples.numel()

    failures = []
    warnings = []

    if n == 0:
        metrics = {
            "peak_linear": 0.0, "peak_dbfs": -np.inf, "rms_linear": 0.0, "rms_dbfs": -np.inf,
            "crest_factor": 0.0, "dc_offset": 0.0, "clipped_fraction": 0.0, "out_of_range": 0,
        }
    else:
        peak = float(torch.max(torch.abs(samples)))
        rms = float(torch.sqrt(torch.mean(samples ** 2) + 1e-12))
        dc = float(torch.max(torch.abs(torch.mean(samples, dim=-1))))
        clipped = float(torch.mean((torch.abs(samples) >= 1.0).float()))
        out_of_range = int(torch.sum(torch.abs(samples) > 1.0)) + int(torch.sum(torch.isnan(samples)))
        metrics = {
            "peak_linear": peak,
            "peak_dbfs": _dbfs(peak),
            "rms_linear": rms,
            "rms_dbfs": _dbfs(rms),
            "crest_factor": peak / (rms + 1e-12),
            "dc_offset": dc,
            "clipped_fraction": clipped,
            "out_of_range": out_of_range,
        }

    metrics["channels"] = buffer.channel_count
    metrics["frames"] = buffer.frame_count
    metrics["sample_rate"] = buffer.sample_rate

    if metrics["out_of_range"] > 0:
        failures.append(f"{metrics['out_of_range']} samples outside [-1, 1]")
    if metrics["peak_linear"] > thresholds["peak_linear_max"]:
        failures.append(f"Peak {metrics['peak_linear']:.4f} > {thresholds['peak_linear_max']:.4f}")

    if reference is not None:
        if reference.channel_count != buffer.channel_count:
            failures.append(f"Channel count changed: {reference.channel_count} -> {buffer.channel_count}")
        expected = reference.frame_count * buffer.sample_rate / reference.sample_rate
        if abs(buffer.frame_count - expected) > 1.0:
            failures.append(f"Frame count {buffer.frame_count} != expected {expected:.1f}")

    if metrics["clipped_fraction"] > thresholds["clipped_fraction_max"]:
        warnings.append(
            f"Heavy clipping: {metrics['clipped_fraction']:.2%} of samples at full scale"
        )
    if metrics["dc_offset"] > thresholds["dc_offset_max"]:
        warnings.append(f"DC offset {metrics['dc_offset']:.4f} > {thresholds['dc_offset_max']:.4f}")
    if metrics["rms_dbfs"] < thresholds["silence_dbfs"]:
        warnings.append("Output is silent")

    status = "PASS"
    if failures:
        status = "FAIL"
    elif warnings:
        status = "WARN"

    return {
        "status": status,
        "metrics": metrics,
        "failures": failures,
        "warnings": warnings,
    }
