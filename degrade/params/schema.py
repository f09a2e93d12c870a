"""
Settings schema: the QualitySettings value object plus the parameter ranges
it is validated against. PARAM_SCHEMA is also what the service exposes to UIs.
"""
from dataclasses import asdict, dataclass, fields
from enum import Enum
from typing import Any, Dict, Literal, Optional
import math

from degrade.core.errors import InvalidParameter


class DistortionType(str, Enum):
    DIGITAL = "digital"
    ANALOG = "analog"
    BITCRUSH = "bitcrush"
    RADIO = "radio"
    GLITCH = "glitch"

    @classmethod
    def parse(cls, value: Any) -> "DistortionType":
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower().replace("-", "").replace("_", "")
        for member in cls:
            if member.value == name:
                return member
        valid = ", ".join(m.value for m in cls)
        raise InvalidParameter(f"Unknown distortion type {value!r} (expected one of: {valid})")


ParamType = Literal["float", "int", "bool", "choice"]
ParamGroup = Literal["dynamics", "distortion", "resolution", "artifacts", "output"]

ParamSchemaEntry = Dict[str, Any]


def _make_param(
    param_type: ParamType,
    min_val: Optional[float],
    max_val: Optional[float],
    group: ParamGroup,
    description: str,
) -> ParamSchemaEntry:
    """Helper to create a schema entry."""
    return {
        "type": param_type,
        "min": min_val,
        "max": max_val,
        "group": group,
        "description": description,
    }


PARAM_SCHEMA: Dict[str, ParamSchemaEntry] = {
    "compression_ratio": _make_param("float", 1.0, 100.0, "dynamics", "Compression ratio above the knee"),
    "threshold_db": _make_param("float", -100.0, 0.0, "dynamics", "Compressor threshold (dBFS)"),
    "knee_db": _make_param("float", 0.0, 40.0, "dynamics", "Soft knee width (dB)"),
    "attack_seconds": _make_param("float", 0.0001, 1.0, "dynamics", "Attack time constant (s)"),
    "release_seconds": _make_param("float", 0.001, 5.0, "dynamics", "Release time constant (s)"),
    "distortion_amount": _make_param("float", 0.0, 100.0, "distortion", "Waveshaper amount (0 = bypass)"),
    "distortion_type": _make_param("choice", None, None, "distortion", "One of: " + ", ".join(m.value for m in DistortionType)),
    "target_bit_depth": _make_param("int", 1, 16, "resolution", "Quantize to 2^n levels (unset = bypass)"),
    "target_sample_rate": _make_param("int", 1000, 192000, "resolution", "Resample to this rate (unset = bypass)"),
    "output_gain": _make_param("float", 0.0, 4.0, "output", "Post-chain gain multiplier"),
    "noise_enabled": _make_param("bool", None, None, "artifacts", "Add uniform noise"),
    "crackle_enabled": _make_param("bool", None, None, "artifacts", "Inject impulsive crackle"),
    "intensity": _make_param("float", 1.0, 10.0, "artifacts", "Shared noise/crackle intensity"),
    "noise_scale": _make_param("float", 0.0, 1.0, "artifacts", "Noise amplitude per intensity step"),
    "crackle_rate": _make_param("float", 0.0, 0.1, "artifacts", "Crackle probability per intensity step"),
}


def _check_range(name: str, value: Any) -> None:
    entry = PARAM_SCHEMA[name]
    lo, hi = entry["min"], entry["max"]
    if (lo is not None and value < lo) or (hi is not None and value > hi):
        raise InvalidParameter(f"{name}={value} outside [{lo}, {hi}]")


@dataclass(frozen=True)
class QualitySettings:
    compression_ratio: float = 4.0
    threshold_db: float = -24.0
    knee_db: float = 30.0
    attack_seconds: float = 0.003
    release_seconds: float = 0.1
    distortion_amount: float = 0.0
    distortion_type: DistortionType = DistortionType.DIGITAL
    target_bit_depth: Optional[int] = None
    target_sample_rate: Optional[int] = None
    output_gain: float = 1.0
    noise_enabled: bool = False
    crackle_enabled: bool = False
    intensity: float = 5.0
    noise_scale: float = 0.1
    crackle_rate: float = 0.001
    quality: Optional[int] = None

    def __post_init__(self):
        # Normalize types in place (frozen, so via object.__setattr__)
        object.__setattr__(self, "distortion_type", DistortionType.parse(self.distortion_type))
        for name in ("target_bit_depth", "target_sample_rate"):
            value = getattr(self, name)
            if value is None:
                continue
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not math.isfinite(value)
                or float(value) != int(value)
            ):
                raise InvalidParameter(f"{name} must be an integer, got {value!r}")
            object.__setattr__(self, name, int(value))
        for name in ("noise_enabled", "crackle_enabled"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise InvalidParameter(f"{name} must be a boolean, got {value!r}")

        for f in fields(self):
            if f.name in ("distortion_type", "noise_enabled", "crackle_enabled", "quality"):
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidParameter(f"{f.name} must be numeric, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParameter(f"{f.name} must be finite, got {value}")
            _check_range(f.name, value)

    @property
    def drive(self) -> float:
        """Waveshaper drive coefficient derived from distortion_amount."""
        return 1.0 + self.distortion_amount / 10.0

    @property
    def noise_amplitude(self) -> float:
        return self.noise_scale * self.intensity

    @property
    def crackle_probability(self) -> float:
        return min(1.0, self.crackle_rate * self.intensity)

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["distortion_type"] = self.distortion_type.value
        return out


SETTING_NAMES = frozenset(f.name for f in fields(QualitySettings))
