"""
Simulated Run Actuals (mock)
============================
Stands in for real post-run measurements so reports can show "max vs actual".

Reproducible by construction: the seed is a 32-bit FNV-1a hash of
project id + job scope + compare mode, fed to numpy's default_rng. Same
inputs → same RunResult.

Each actual is a fraction of the job's majorant and is floored to cents, so
an actual can never exceed its estimate:
  cost, CO₂  → 0.55 – 0.85 of max
  power      → 0.85 – 1.00 of max
  time       → 0.70 – 0.95 of max
"""

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from sustplan.shared.models import (
    CompareMode, EstimateResult, Project, ReportingRegime,
)


# ── Fraction ranges (Assumptions) ─────────────────────────────────────
COST_CO2_FRACTION = (0.55, 0.85)
POWER_FRACTION = (0.85, 1.00)
TIME_FRACTION = (0.70, 0.95)

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619


@dataclass
class JobActual:
    job_id: str = ""
    actual_cost_usd: float = 0.0
    actual_co2_kg: float = 0.0
    actual_power_kw: float = 0.0
    actual_time_hours: float = 0.0
    region: str = ""
    provider: str = ""
    time_window_label: str = ""
    rationale_tags: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "actualCostUsd": self.actual_cost_usd,
            "actualCO2Kg": self.actual_co2_kg,
            "actualPowerKw": self.actual_power_kw,
            "actualTimeHours": self.actual_time_hours,
            "region": self.region,
            "provider": self.provider,
            "timeWindowLabel": self.time_window_label,
            "rationaleTags": list(self.rationale_tags),
        }


@dataclass
class RunResult:
    run_id: str = ""
    project_id: str = ""
    seed: int = 0
    compare_mode: CompareMode = CompareMode.AUTO
    regime: ReportingRegime = ReportingRegime.BOTH
    jobs: list = field(default_factory=list)       # list[JobActual]
    skipped: list = field(default_factory=list)    # job ids without estimate or plan

    def totals(self) -> dict:
        """Cost, CO₂ and time accumulate; power is the peak."""
        return {
            "cost": round(sum(j.actual_cost_usd for j in self.jobs), 2),
            "co2": round(sum(j.actual_co2_kg for j in self.jobs), 2),
            "time": round(sum(j.actual_time_hours for j in self.jobs), 2),
            "peakPower": max((j.actual_power_kw for j in self.jobs), default=0.0),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.run_id,
            "projectId": self.project_id,
            "seed": self.seed,
            "compareMode": self.compare_mode.value,
            "regime": self.regime.value,
            "jobs": [j.to_dict() for j in self.jobs],
            "skipped": list(self.skipped),
            "totals": self.totals(),
        }


def hash32(text: str) -> int:
    """32-bit FNV-1a over the string's UTF-16 code units."""
    h = FNV_OFFSET_BASIS
    encoded = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(encoded), 2):
        unit = encoded[i] | (encoded[i + 1] << 8)
        h = ((h ^ unit) * FNV_PRIME) & 0xFFFFFFFF
    return h


def run_seed(project_id: str, job_id: Optional[str], compare_mode: CompareMode) -> int:
    return hash32(project_id + (job_id if job_id is not None else "ALL") + compare_mode.value)


def _floor_cents(value: float) -> float:
    return math.floor(value * 100) / 100


def _draw(rng: np.random.Generator, bounds: tuple) -> float:
    lo, hi = bounds
    return lo + rng.random() * (hi - lo)


def simulate_run(
    project: Project,
    estimates: EstimateResult,
    plan: list,
    compare_mode: CompareMode = CompareMode.AUTO,
    job_id: Optional[str] = None,
    regime: Optional[ReportingRegime] = None,
) -> RunResult:
    """
    Derive stable pseudo-random actuals for every job in scope.

    Jobs without an estimate or with an infeasible plan entry are skipped
    (listed in `skipped`), never given made-up numbers.
    """
    seed = run_seed(project.project_id, job_id, compare_mode)
    rng = np.random.default_rng(seed)
    plan_by_job = {p.job_id: p for p in plan}

    actuals = []
    skipped = []
    for job in project.scoped_jobs(job_id):
        estimate = estimates.per_job.get(job.job_id)
        item = plan_by_job.get(job.job_id)
        if estimate is None or item is None or not item.feasible:
            skipped.append(job.job_id)
            continue

        frac = _draw(rng, COST_CO2_FRACTION)
        actuals.append(JobActual(
            job_id=job.job_id,
            actual_cost_usd=_floor_cents(estimate.max_cost_usd * frac),
            actual_co2_kg=_floor_cents(estimate.max_co2_kg * frac),
            actual_power_kw=_floor_cents(estimate.max_power_kw * _draw(rng, POWER_FRACTION)),
            actual_time_hours=_floor_cents(estimate.max_time_hours * _draw(rng, TIME_FRACTION)),
            region=item.region,
            provider=item.provider,
            time_window_label=item.time_window_label,
            rationale_tags=list(item.rationale_tags),
        ))

    return RunResult(
        run_id=f"run_{seed:08x}",
        project_id=project.project_id,
        seed=seed,
        compare_mode=compare_mode,
        regime=regime if regime is not None else project.reporting_regime,
        jobs=actuals,
        skipped=skipped,
    )


def actuals_to_dataframe(run: RunResult) -> pd.DataFrame:
    rows = []
    for j in run.jobs:
        rows.append({
            "run_id": run.run_id, "job_id": j.job_id,
            "actual_cost_usd": j.actual_cost_usd, "actual_co2_kg": j.actual_co2_kg,
            "actual_power_kw": j.actual_power_kw, "actual_time_hours": j.actual_time_hours,
            "region": j.region, "provider": j.provider, "time_window": j.time_window_label,
        })
    return pd.DataFrame(rows, columns=[
        "run_id", "job_id", "actual_cost_usd", "actual_co2_kg",
        "actual_power_kw", "actual_time_hours", "region", "provider", "time_window",
    ])
