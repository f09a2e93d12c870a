"""
Settings schema and quality resolution.
resolve_settings(level_or_overrides) is the single way callers obtain a QualitySettings.
"""
from degrade.params.schema import PARAM_SCHEMA, DistortionType, QualitySettings
from degrade.params.quality import QUALITY_DESCRIPTIONS, describe_levels, preset_for, resolve_settings

__all__ = [
    "PARAM_SCHEMA",
    "DistortionType",
    "QualitySettings",
    "QUALITY_DESCRIPTIONS",
    "describe_levels",
    "preset_for",
    "resolve_settings",
]
