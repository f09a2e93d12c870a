"""
Quality Control for processed buffers.
"""
from degrade.qc.qc import analyze
from degrade.qc.thresholds import QC_THRESHOLDS

__all__ = ["analyze", "QC_THRESHOLDS"]
