"""
Default QC thresholds for processed output.
"""
QC_THRESHOLDS = {
    "peak_linear_max": 1.0,  # Hard ceiling; anything above is a failure
    "clipped_fraction_max": 0.05,  # Share of samples pinned at +/-1.0
    "dc_offset_max": 0.05,  # |mean| per channel
    "silence_dbfs": -90.0,  # Below this RMS the output is reported as silent
}
