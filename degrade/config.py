"""
Engine configuration. Values come from environment variables so the HTTP
service and the CLI share one source; every field has a working default.
"""
from dataclasses import dataclass, fields
from typing import Mapping, Optional
import logging
import os

from degrade.core.errors import InvalidParameter

logger = logging.getLogger("degrade")

ENV = os.environ.get("ENV", "development").lower()
DEV = ENV in ("development", "dev", "test")

ENV_PREFIX = "DEGRADE_"


@dataclass(frozen=True)
class EngineConfig:
    max_input_bytes: int = 100 * 1024 * 1024
    batch_frames: int = 4096
    pre_gain: float = 0.85
    glitch_rate: float = 0.002
    default_quality: int = 3

    def __post_init__(self):
        if self.max_input_bytes <= 0:
            raise InvalidParameter(f"max_input_bytes must be positive, got {self.max_input_bytes}")
        if self.batch_frames <= 0:
            raise InvalidParameter(f"batch_frames must be positive, got {self.batch_frames}")
        if not 0.0 < self.pre_gain <= 1.0:
            raise InvalidParameter(f"pre_gain must be in (0, 1], got {self.pre_gain}")
        if not 0.0 <= self.glitch_rate <= 1.0:
            raise InvalidParameter(f"glitch_rate must be in [0, 1], got {self.glitch_rate}")
        if self.default_quality not in (1, 2, 3, 4, 5):
            raise InvalidParameter(f"default_quality must be 1-5, got {self.default_quality}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from DEGRADE_* variables, e.g. DEGRADE_BATCH_FRAMES=8192.
        Unset variables keep their defaults.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            cast = int if f.type in (int, "int") else float
            try:
                values[f.name] = cast(raw)
            except ValueError:
                raise InvalidParameter(f"{ENV_PREFIX}{f.name.upper()}={raw!r} is not a valid {cast.__name__}")
        config = cls(**values)
        if values and DEV:
            logger.debug("Engine config overrides from environment: %s", values)
        return config


DEFAULT_CONFIG = EngineConfig()
