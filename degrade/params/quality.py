"""
Quality resolution: map a discrete level (1-5) and/or user overrides to a QualitySettings.
Overrides are merged onto the level preset; user keys always win.
"""
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Union

from degrade.core.errors import InvalidParameter
from degrade.params.schema import DistortionType, QualitySettings, SETTING_NAMES

QUALITY_LEVELS = (1, 2, 3, 4, 5)

# Shared by every level (original compressor: 3 ms attack, 100 ms release)
_BASE = {
    "attack_seconds": 0.003,
    "release_seconds": 0.1,
    "output_gain": 1.0,
    "noise_enabled": False,
    "crackle_enabled": False,
    "intensity": 5.0,
}

# Monotonic in destructiveness: ratio up, threshold down, resolution down.
QUALITY_PRESETS: Dict[int, Dict[str, Any]] = {
    1: {"compression_ratio": 4.0, "threshold_db": -10.0, "knee_db": 40.0,
        "target_bit_depth": 12, "target_sample_rate": None,
        "distortion_amount": 0.0, "distortion_type": DistortionType.DIGITAL},
    2: {"compression_ratio": 6.0, "threshold_db": -20.0, "knee_db": 30.0,
        "target_bit_depth": 10, "target_sample_rate": None,
        "distortion_amount": 0.0, "distortion_type": DistortionType.DIGITAL},
    3: {"compression_ratio": 8.0, "threshold_db": -30.0, "knee_db": 20.0,
        "target_bit_depth": 8, "target_sample_rate": None,
        "distortion_amount": 0.0, "distortion_type": DistortionType.DIGITAL},
    4: {"compression_ratio": 10.0, "threshold_db": -40.0, "knee_db": 10.0,
        "target_bit_depth": 6, "target_sample_rate": 11025,
        "distortion_amount": 20.0, "distortion_type": DistortionType.ANALOG},
    5: {"compression_ratio": 12.0, "threshold_db": -50.0, "knee_db": 0.0,
        "target_bit_depth": 4, "target_sample_rate": 8000,
        "distortion_amount": 50.0, "distortion_type": DistortionType.DIGITAL},
}

QUALITY_DESCRIPTIONS: Dict[int, str] = {
    1: "Level 1: 12-bit resolution, gentle compression, no distortion",
    2: "Level 2: 10-bit resolution, moderate compression, no distortion",
    3: "Level 3: 8-bit resolution, heavy compression, no distortion",
    4: "Level 4: 6-bit resolution at 11.025 kHz, light analog distortion",
    5: "Level 5: 4-bit resolution at 8 kHz, strong digital distortion",
}

# Accepted spellings from HTTP/CLI callers -> canonical field names
_ALIASES = {
    "ratio": "compression_ratio",
    "threshold": "threshold_db",
    "knee": "knee_db",
    "attack": "attack_seconds",
    "release": "release_seconds",
    "distortion": "distortion_amount",
    "bit_depth": "target_bit_depth",
    "sample_rate": "target_sample_rate",
    "noise": "noise_enabled",
    "crackle": "crackle_enabled",
    "gain": "output_gain",
}


def validate_level(level: Any) -> int:
    """Return level as int, or raise InvalidParameter if it is not one of 1-5."""
    if isinstance(level, bool) or not isinstance(level, int) or level not in QUALITY_LEVELS:
        raise InvalidParameter(f"Quality level must be an integer 1-5, got {level!r}")
    return level


def preset_for(level: int) -> QualitySettings:
    """The unmodified preset for a level."""
    level = validate_level(level)
    return QualitySettings(quality=level, **_BASE, **QUALITY_PRESETS[level])


def _normalize_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    out = {}
    for key, value in overrides.items():
        name = _ALIASES.get(key, key)
        if name not in SETTING_NAMES:
            raise InvalidParameter(f"Unknown setting {key!r}")
        if name in out:
            raise InvalidParameter(f"Setting {name!r} given more than once")
        out[name] = value
    return out


def resolve_settings(
    request: Union[int, QualitySettings, Mapping[str, Any], None] = None,
    default_level: int = 3,
) -> QualitySettings:
    """
    Resolve a processing request to concrete settings.

    Args:
        request: a level 1-5, a ready QualitySettings (returned as-is), a mapping of
            overrides (optionally carrying "quality" as the base level), or None.
        default_level: base level when none is given.

    Returns:
        Immutable QualitySettings for one run.
    """
    if isinstance(request, QualitySettings):
        return request
    if request is None:
        return preset_for(default_level)
    if isinstance(request, Mapping):
        overrides = _normalize_overrides(request)
        level = overrides.pop("quality", None)
        base = preset_for(default_level if level is None else level)
        return replace(base, **overrides) if overrides else base
    return preset_for(request)


def describe_levels() -> Dict[int, Dict[str, Any]]:
    """Level -> description and resolved settings, for UIs and the CLI."""
    return {
        level: {"description": QUALITY_DESCRIPTIONS[level], "settings": preset_for(level).to_dict()}
        for level in QUALITY_LEVELS
    }
