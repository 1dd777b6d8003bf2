"""
Engine configuration.

The worst-case buffers are heuristics, so they are injectable rather than
hard-coded: every estimator/planner takes an EngineConfig at construction.
Defaults come from the module constants; EngineConfig.from_env() lets a
deployment override them without code changes.
"""

import math
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from sustplan.shared.errors import ValidationError


# ── Default buffers (Assumptions) ─────────────────────────────────────
OVERRUN_BUFFER = 1.15         # scheduling / retry slack on runtime
PRICING_BUFFER = 1.20         # pricing uncertainty on the worst provider rate
CO2_SAFETY_MARGIN = 0.10      # added on top of the highest plausible intensity
WIDE_VARIANCE_RATIO = 1.5     # max/min eligible rate above this → LOW confidence
SCORE_PRECISION = 9           # decimals kept when comparing candidate scores

ENV_PREFIX = "SUSTPLAN_"


@dataclass(frozen=True)
class EngineConfig:
    overrun_buffer: float = OVERRUN_BUFFER
    pricing_buffer: float = PRICING_BUFFER
    co2_safety_margin: float = CO2_SAFETY_MARGIN
    wide_variance_ratio: float = WIDE_VARIANCE_RATIO
    score_precision: int = SCORE_PRECISION

    def __post_init__(self):
        # Anything below these floors would stop the estimates being upper bounds.
        for name in ("overrun_buffer", "pricing_buffer", "wide_variance_ratio"):
            value = getattr(self, name)
            if not _is_number(value) or value < 1.0:
                raise ValidationError(f"{name} must be a number >= 1.0, got {value!r}")
        if not _is_number(self.co2_safety_margin) or self.co2_safety_margin < 0:
            raise ValidationError(
                f"co2_safety_margin must be a number >= 0, got {self.co2_safety_margin!r}")
        if not isinstance(self.score_precision, int) or self.score_precision < 0:
            raise ValidationError(
                f"score_precision must be a non-negative int, got {self.score_precision!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a config from SUSTPLAN_* environment variables.

        Recognized: SUSTPLAN_OVERRUN_BUFFER, SUSTPLAN_PRICING_BUFFER,
        SUSTPLAN_CO2_SAFETY_MARGIN, SUSTPLAN_WIDE_VARIANCE_RATIO.
        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        overrides = {}
        for name in ("overrun_buffer", "pricing_buffer", "co2_safety_margin", "wide_variance_ratio"):
            key = ENV_PREFIX + name.upper()
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                continue
            try:
                overrides[name] = float(raw)
            except ValueError:
                raise ValidationError(f"{key} must be a number, got {raw!r}") from None
        return cls(**overrides)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


DEFAULT_CONFIG = EngineConfig()
