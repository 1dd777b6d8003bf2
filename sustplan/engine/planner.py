"""
Plan Selector
=============
Picks one (region, provider, time window) per job.

The MATH is deterministic:
  - Candidates: exhaustive search over admissible regions × providers available
    there × windows (deferred low-carbon windows only for batchable jobs)
  - Constraints: hard budget / CO₂ caps on each candidate's own worst case,
    plus the job deadline when a plan date is given
  - Scoring: a single metric in GREENEST / CHEAPEST / FASTEST mode; in AUTO a
    weighted sum of min–max normalized co2, cost, time, power
  - Ties: provider name, then region code, then immediate before deferred

A job with no surviving candidate is reported as an InfeasiblePlan entry,
never dropped and never planned into a non-compliant region.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

import numpy as np
import pandas as pd

from sustplan.engine.compliance import ComplianceEvaluator, compliance_tag, effective_policy
from sustplan.engine.estimator import power_ceiling_kw, validate_job
from sustplan.engine.profile import METRICS, ProfileResolver, ResolvedProfile, effective_profile
from sustplan.shared.config import DEFAULT_CONFIG, EngineConfig
from sustplan.shared.errors import InfeasibleBudgetError, InfeasiblePlanError, PlanningError
from sustplan.shared.models import (
    CompareMode, CompliancePolicy, InfeasiblePlan, Job, OptimizationProfile,
    PlanItem, Project,
)
from sustplan.simulator.carbon_intensity import TimeWindow, window_intensity, window_rank, windows_for
from sustplan.simulator.cost_model import PROVIDERS, WORST_PUE, compute_job_cost, providers_in_region


# ── Planner configuration ────────────────────────────────────────────
SINGLE_METRIC_MODES = {
    CompareMode.GREENEST: "co2",
    CompareMode.CHEAPEST: "cost",
    CompareMode.FASTEST: "time",
}

METRIC_TAGS = {
    "co2": "Lowest carbon intensity",
    "cost": "Cheapest eligible provider",
    "time": "Fastest completion",
    "power": "Lowest peak power",
}

TAG_TRADE_OFF = "Best weighted trade-off"
TAG_DEADLINE = "Meets deadline"
TAG_DEADLINE_UNCHECKED = "Deadline not checked (no plan date)"
TAG_SHIFTED = "Batchable — shifted to greener window"
TAG_BUDGET = "Within budget cap"
TAG_CO2_CAP = "Within CO₂ cap"

EPSILON = 1e-9

PlanEntry = Union[PlanItem, InfeasiblePlan]


@dataclass(frozen=True)
class Candidate:
    """One (region, provider, window) option with its own worst-case metrics."""
    region: str
    provider: str
    window: TimeWindow
    cost: float          # USD
    co2: float           # kgCO₂e
    time: float          # hours until completion, window delay included
    power: float         # kW

    def metric(self, name: str) -> float:
        return getattr(self, name)

    def tie_key(self) -> tuple:
        return (self.provider, self.region, window_rank(self.window))


class PlanSelector:
    """Constrained plan selection. Holds configuration only, never results."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        evaluator: Optional[ComplianceEvaluator] = None,
        resolver: Optional[ProfileResolver] = None,
    ):
        self.config = config
        self.evaluator = evaluator or ComplianceEvaluator()
        self.resolver = resolver or ProfileResolver()

    def build_plan(
        self,
        project: Project,
        default_profile: OptimizationProfile,
        default_compliance: CompliancePolicy,
        compare_mode: CompareMode = CompareMode.AUTO,
        job_id: Optional[str] = None,
        as_of: Optional[Union[date, datetime]] = None,
        verbose: bool = False,
    ) -> list[PlanEntry]:
        """
        One entry per job in scope, in project order.

        as_of: plan date; when given, deadlines are enforced and tagged.
        """
        project_policy = project.compliance or default_compliance
        project_profile = project.profile or default_profile
        jobs = project.scoped_jobs(job_id)

        if verbose:
            print(f"  Planning {len(jobs)} job(s) in {compare_mode.value} mode...")

        plan = []
        for job in jobs:
            policy = effective_policy(job, project_policy)
            try:
                resolved = self.resolver.resolve(effective_profile(job, project_profile))
                plan.append(self.plan_job(job, policy, resolved, compare_mode, as_of))
            except PlanningError as e:
                plan.append(InfeasiblePlan(job_id=job.job_id, job_name=job.name, reason=e.code, message=e.message))
                if verbose:
                    print(f"  ✗ {job.name or job.job_id}: infeasible ({e.code})")

        if verbose:
            feasible = sum(1 for p in plan if p.feasible)
            print(f"  Planning complete: {feasible} planned, {len(plan) - feasible} infeasible")
        return plan

    def plan_job(
        self,
        job: Job,
        policy: CompliancePolicy,
        resolved: ResolvedProfile,
        compare_mode: CompareMode = CompareMode.AUTO,
        as_of: Optional[Union[date, datetime]] = None,
    ) -> PlanItem:
        """
        Deterministic scoring + constraint checking for a single job.

        Raises:
            ValidationError, NoAdmissibleRegionError, InfeasiblePlanError, InfeasibleBudgetError
        """
        validate_job(job)
        regions = self.evaluator.require_regions(policy, job)
        label = job.name or job.job_id

        candidates = self.enumerate_candidates(job, regions, resolved)
        if not candidates:
            raise InfeasiblePlanError(
                f"Job '{label}': no eligible provider in admissible regions {', '.join(regions)}",
                job_id=job.job_id,
            )

        deadline_checked = job.deadline is not None and as_of is not None
        if deadline_checked:
            hours_left = _hours_until_end_of(job.deadline, as_of)
            candidates = [c for c in candidates if c.time <= hours_left + EPSILON]
            if not candidates:
                raise InfeasiblePlanError(
                    f"Job '{label}': no window completes before the {job.deadline.isoformat()} deadline",
                    job_id=job.job_id,
                )

        within_caps = [c for c in candidates if _within_caps(c, resolved)]
        if not within_caps:
            raise InfeasibleBudgetError(
                f"Job '{label}': hard caps {_describe_caps(resolved)} exclude all "
                f"{len(candidates)} candidate(s)",
                job_id=job.job_id,
            )

        scores = self.score(within_caps, resolved, compare_mode)
        precision = self.config.score_precision
        best_index = min(
            range(len(within_caps)),
            key=lambda i: (round(float(scores[i]), precision), within_caps[i].tie_key()),
        )
        best = within_caps[best_index]

        return PlanItem(
            job_id=job.job_id,
            job_name=job.name,
            region=best.region,
            provider=best.provider,
            time_window_label=best.window.label,
            rationale_tags=_rationale_tags(best, within_caps, job, policy, resolved, compare_mode, deadline_checked),
        )

    def enumerate_candidates(self, job: Job, regions: list[str], resolved: ResolvedProfile) -> list[Candidate]:
        cfg = self.config
        runtime = job.compute.expected_runtime_hours
        ceiling_kw = power_ceiling_kw(job)
        allowed = list(resolved.allowed_providers) if resolved.allowed_providers is not None else None

        candidates = []
        for region in regions:
            for provider in providers_in_region(region, allowed):
                info = PROVIDERS[provider]
                power_kw = ceiling_kw * info["pue"] / WORST_PUE
                run_hours = runtime * cfg.overrun_buffer * info["time_factor"]
                energy_kwh = power_kw * run_hours
                cost = compute_job_cost(energy_kwh, provider, region, job.compute.gpu_class, cfg.pricing_buffer)
                for window in windows_for(job.batchable_shiftable):
                    co2 = energy_kwh * window_intensity(region, window) / 1000 * (1 + cfg.co2_safety_margin)
                    candidates.append(Candidate(
                        region=region,
                        provider=provider,
                        window=window,
                        cost=cost,
                        co2=co2,
                        time=window.delay_hours + run_hours,
                        power=power_kw,
                    ))
        return candidates

    def score(self, candidates: list[Candidate], resolved: ResolvedProfile, compare_mode: CompareMode) -> np.ndarray:
        """Lower is better."""
        if compare_mode in SINGLE_METRIC_MODES:
            metric = SINGLE_METRIC_MODES[compare_mode]
            return np.array([c.metric(metric) for c in candidates], dtype=float)
        elif compare_mode == CompareMode.AUTO:
            total = np.zeros(len(candidates))
            for metric in METRICS:
                weight = resolved.weights.get(metric, 0.0)
                if weight == 0:
                    continue
                values = np.array([c.metric(metric) for c in candidates], dtype=float)
                total += weight * _min_max(values)
            return total
        raise ValueError(f"Unknown compare mode: {compare_mode!r}")


# ── Pure functions (deterministic, no selector state) ─────────────────

def _min_max(values: np.ndarray) -> np.ndarray:
    """Scale to 0..1 over the candidate set; a flat metric contributes 0."""
    lo, hi = values.min(), values.max()
    if hi - lo < EPSILON:
        return np.zeros_like(values)
    return (values - lo) / (hi - lo)


def _within_caps(c: Candidate, resolved: ResolvedProfile) -> bool:
    hard = resolved.hard
    if hard.max_budget_usd is not None and c.cost > hard.max_budget_usd:
        return False
    if hard.max_co2_kg is not None and c.co2 > hard.max_co2_kg:
        return False
    return True


def _describe_caps(resolved: ResolvedProfile) -> str:
    parts = []
    if resolved.hard.max_budget_usd is not None:
        parts.append(f"maxBudgetUsd={resolved.hard.max_budget_usd:g}")
    if resolved.hard.max_co2_kg is not None:
        parts.append(f"maxCO2Kg={resolved.hard.max_co2_kg:g}")
    return "(" + ", ".join(parts) + ")"


def _hours_until_end_of(deadline: date, as_of: Union[date, datetime]) -> float:
    """Hours from the plan date to the end of the deadline day."""
    if not isinstance(as_of, datetime):
        as_of = datetime.combine(as_of, time())
    end = datetime.combine(deadline + timedelta(days=1), time())
    if as_of.tzinfo is not None:
        end = end.replace(tzinfo=as_of.tzinfo)
    return (end - as_of).total_seconds() / 3600


def _rationale_tags(
    best: Candidate,
    candidates: list[Candidate],
    job: Job,
    policy: CompliancePolicy,
    resolved: ResolvedProfile,
    compare_mode: CompareMode,
    deadline_checked: bool,
) -> list[str]:
    tags = []
    for metric in METRICS:
        values = [c.metric(metric) for c in candidates]
        lo, hi = min(values), max(values)
        if metric == "power" and hi - lo < EPSILON:
            continue    # every candidate draws the same; nothing to claim
        if best.metric(metric) <= lo + EPSILON:
            tags.append(METRIC_TAGS[metric])
    if not tags and compare_mode == CompareMode.AUTO:
        tags.append(TAG_TRADE_OFF)
    if deadline_checked:
        tags.append(TAG_DEADLINE)
    elif job.deadline is not None:
        tags.append(TAG_DEADLINE_UNCHECKED)
    if best.window.deferred:
        tags.append(TAG_SHIFTED)
    tags.append(compliance_tag(policy))
    if resolved.hard.max_budget_usd is not None:
        tags.append(TAG_BUDGET)
    if resolved.hard.max_co2_kg is not None:
        tags.append(TAG_CO2_CAP)
    return tags


# ── Convenience functions ─────────────────────────────────────────────

def build_plan(
    project: Project,
    default_profile: OptimizationProfile,
    default_compliance: CompliancePolicy,
    compare_mode: CompareMode = CompareMode.AUTO,
    config: EngineConfig = DEFAULT_CONFIG,
    job_id: Optional[str] = None,
    as_of: Optional[Union[date, datetime]] = None,
    verbose: bool = False,
) -> list[PlanEntry]:
    """Convenience wrapper: creates a selector and runs it."""
    return PlanSelector(config).build_plan(
        project, default_profile, default_compliance, compare_mode,
        job_id=job_id, as_of=as_of, verbose=verbose,
    )


def plan_to_dataframe(plan: list[PlanEntry]) -> pd.DataFrame:
    rows = []
    for p in plan:
        if p.feasible:
            rows.append({
                "job_id": p.job_id, "job_name": p.job_name, "feasible": True,
                "region": p.region, "provider": p.provider,
                "time_window": p.time_window_label,
                "rationale": "; ".join(p.rationale_tags), "reason": "",
            })
        else:
            rows.append({
                "job_id": p.job_id, "job_name": p.job_name, "feasible": False,
                "region": None, "provider": None, "time_window": None,
                "rationale": p.message, "reason": p.reason,
            })
    return pd.DataFrame(rows, columns=[
        "job_id", "job_name", "feasible", "region", "provider",
        "time_window", "rationale", "reason",
    ])


def summarize_plan(plan: list[PlanEntry]) -> dict:
    if not plan:
        return {"count": 0, "message": "No jobs in scope."}
    by_provider = {}
    by_region = {}
    infeasible = {}
    shifted = 0
    for p in plan:
        if not p.feasible:
            infeasible[p.reason] = infeasible.get(p.reason, 0) + 1
            continue
        by_provider[p.provider] = by_provider.get(p.provider, 0) + 1
        by_region[p.region] = by_region.get(p.region, 0) + 1
        if TAG_SHIFTED in p.rationale_tags:
            shifted += 1
    planned = sum(by_provider.values())
    return {
        "count": len(plan), "planned": planned,
        "infeasible": len(plan) - planned,
        "shifted_to_greener_window": shifted,
        "by_provider": by_provider, "by_region": by_region,
        "infeasible_by_reason": infeasible,
    }
