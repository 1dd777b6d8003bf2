"""
Profile Resolver
================
Turns an optimization profile into the canonical form the planner scores with:
a weight vector over (co2, cost, time, power) that sums to 1, plus hard caps.

  LITE  → fixed preset weights
  FULL  → user weights divided by their sum (all-zero falls back to BALANCED)

Hard caps pass through untouched; a missing cap means "no cap".
"""

import math
from dataclasses import dataclass, field
from typing import Optional

from sustplan.shared.errors import ValidationError
from sustplan.shared.models import (
    FullProfile, HardConstraints, Job, LiteProfile, OptimizationProfile, Preset,
)


METRICS = ("co2", "cost", "time", "power")

PRESET_WEIGHTS = {
    Preset.GREENEST: {"co2": 0.70, "cost": 0.15, "time": 0.15, "power": 0.0},
    Preset.CHEAPEST: {"co2": 0.15, "cost": 0.70, "time": 0.15, "power": 0.0},
    Preset.FASTEST:  {"co2": 0.15, "cost": 0.15, "time": 0.70, "power": 0.0},
    Preset.BALANCED: {"co2": 0.34, "cost": 0.33, "time": 0.33, "power": 0.0},
}

MAX_WEIGHT = 100


@dataclass(frozen=True)
class ResolvedProfile:
    weights: dict
    hard: HardConstraints = field(default_factory=HardConstraints)
    allowed_providers: Optional[tuple] = None
    label: str = ""


def effective_profile(job: Job, project_profile: OptimizationProfile) -> OptimizationProfile:
    """The job's own profile when it opted out of project settings, else the project's."""
    if not job.inherit_project_settings and job.override_profile is not None:
        return job.override_profile
    return project_profile


class ProfileResolver:

    def resolve(self, profile: OptimizationProfile) -> ResolvedProfile:
        if isinstance(profile, LiteProfile):
            return ResolvedProfile(
                weights=dict(PRESET_WEIGHTS[profile.preset]),
                label=f"LITE {profile.preset.value}",
            )
        elif isinstance(profile, FullProfile):
            return self._resolve_full(profile)
        raise ValidationError(f"Unknown optimization profile variant: {type(profile).__name__}")

    def _resolve_full(self, profile: FullProfile) -> ResolvedProfile:
        raw = profile.weights.as_dict()
        for metric, value in raw.items():
            if not _is_number(value) or value < 0 or value > MAX_WEIGHT:
                raise ValidationError(f"Weight '{metric}' must be between 0 and {MAX_WEIGHT}, got {value!r}")
        _check_cap("maxBudgetUsd", profile.hard.max_budget_usd)
        _check_cap("maxCO2Kg", profile.hard.max_co2_kg)

        total = sum(raw.values())
        if total == 0:
            weights = dict(PRESET_WEIGHTS[Preset.BALANCED])
            label = "FULL (all-zero weights → BALANCED)"
        else:
            weights = {m: raw[m] / total for m in METRICS}
            label = "FULL " + " / ".join(f"{m} {raw[m]:g}" for m in METRICS)

        allowed = None
        if profile.allowed_providers is not None:
            allowed = tuple(profile.allowed_providers)
        return ResolvedProfile(weights=weights, hard=profile.hard, allowed_providers=allowed, label=label)


def _check_cap(name: str, value):
    if value is None:
        return
    if not _is_number(value) or value < 0:
        raise ValidationError(f"Hard cap '{name}' must be a non-negative number, got {value!r}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def resolve_profile(profile: OptimizationProfile) -> ResolvedProfile:
    """Convenience wrapper."""
    return ProfileResolver().resolve(profile)
