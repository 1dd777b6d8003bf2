"""
Majorant Estimator
==================
Computes conservative (upper-bound) cost, CO₂, power and time for every job,
and the project totals.

This is STRICTLY DETERMINISTIC — no randomness, no clock, no I/O.
Every output is reproducible given the same inputs.

Formula (per job):
  power_kw   = POWER_CEILING_KW[gpu_class]                    (worst-case PUE)
  energy_kwh = power_kw × runtime_h × overrun_buffer
  cost_usd   = energy_kwh × max(rate over eligible provider/region)
               × gpu_price_multiplier × pricing_buffer
  kgCO₂e     = energy_kwh × max(intensity over admissible regions) / 1000
               × (1 + co2_safety_margin)
  time_h     = runtime_h × overrun_buffer

Aggregation (per project):
  cost, CO₂, time  → SUM over jobs   (they accumulate)
  power            → MAX over jobs   (instantaneous peak, never summed)

What this module is NOT allowed to do:
  - Return a zero estimate for a job it could not bound
  - Let one failing job abort the estimates of its siblings
  - Mutate the project, profile or policy it is given
"""

import math
from typing import Iterable, Optional

import pandas as pd

from sustplan.engine.compliance import (
    ComplianceEvaluator, effective_policy, residency_assumptions,
)
from sustplan.engine.profile import ProfileResolver, effective_profile
from sustplan.shared.config import DEFAULT_CONFIG, EngineConfig
from sustplan.shared.errors import NoAdmissibleRegionError, PlanningError, ValidationError
from sustplan.shared.models import (
    CompliancePolicy, Confidence, EstimateResult, GpuClass, Job, JobError,
    JobEstimate, OptimizationProfile, Project, ProjectEstimate,
)
from sustplan.simulator.carbon_intensity import max_plausible_intensity
from sustplan.simulator.cost_model import (
    GPU_PRICE_MULTIPLIER, compute_job_cost, eligible_offers, provider_rate,
)


# ── Power ceilings (Assumptions) ──────────────────────────────────────
# Facility draw in kW per job node at the worst catalog PUE.
# Monotonic in GPU class; NONE is the CPU-only baseline.
POWER_CEILING_KW = {
    GpuClass.NONE: 0.9,
    GpuClass.T4: 1.4,
    GpuClass.L4: 1.8,
    GpuClass.A10: 2.6,
    GpuClass.A100: 4.8,
    GpuClass.H100: 6.4,
}

# Accelerators whose capacity pricing swings too much to bound tightly
PREMIUM_GPU_CLASSES = {GpuClass.A100, GpuClass.H100}

ROUND_DIGITS = 6


def validate_job(job: Job):
    """Reject jobs whose compute spec cannot be bounded."""
    if job.parse_error:
        raise ValidationError(job.parse_error, job_id=job.job_id)
    runtime = job.compute.expected_runtime_hours
    if (not isinstance(runtime, (int, float)) or isinstance(runtime, bool)
            or not math.isfinite(runtime) or runtime <= 0):
        raise ValidationError(
            f"Job '{job.name or job.job_id}': expectedRuntimeHours must be positive, got {runtime!r}",
            job_id=job.job_id,
        )
    if not job.compute.gpu_required and job.compute.gpu_class != GpuClass.NONE:
        raise ValidationError(
            f"Job '{job.name or job.job_id}': gpuClass must be NONE when no GPU is required",
            job_id=job.job_id,
        )
    if job.compute.gpu_required and job.compute.gpu_class == GpuClass.NONE:
        raise ValidationError(
            f"Job '{job.name or job.job_id}': a GPU-required job must name a GPU class",
            job_id=job.job_id,
        )


def power_ceiling_kw(job: Job) -> float:
    return POWER_CEILING_KW[job.compute.gpu_class]


class MajorantEstimator:
    """Worst-case estimator. Holds configuration only, never results."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        evaluator: Optional[ComplianceEvaluator] = None,
        resolver: Optional[ProfileResolver] = None,
    ):
        self.config = config
        self.evaluator = evaluator or ComplianceEvaluator()
        self.resolver = resolver or ProfileResolver()

    def estimate_job(
        self,
        job: Job,
        policy: CompliancePolicy,
        allowed_providers: Optional[Iterable[str]] = None,
    ) -> JobEstimate:
        """
        Upper bounds for a single job under its effective policy.

        Raises:
            ValidationError: malformed compute spec (e.g. runtime <= 0)
            NoAdmissibleRegionError: no region, or no provider in any region, is admissible
        """
        validate_job(job)
        cfg = self.config
        regions = self.evaluator.require_regions(policy, job)
        allowed = list(allowed_providers) if allowed_providers is not None else None
        offers = eligible_offers(regions, allowed)
        if not offers:
            raise NoAdmissibleRegionError(
                f"Job '{job.name or job.job_id}': no eligible provider in admissible regions "
                f"{', '.join(regions)}",
                job_id=job.job_id,
            )

        runtime = job.compute.expected_runtime_hours
        gpu_class = job.compute.gpu_class
        power_kw = power_ceiling_kw(job)
        energy_kwh = power_kw * runtime * cfg.overrun_buffer

        # Worst provider: highest rate across every eligible (provider, region) offer
        rates = {offer: provider_rate(*offer) for offer in offers}
        worst_provider, worst_region = max(offers, key=lambda o: rates[o])
        cost_usd = compute_job_cost(energy_kwh, worst_provider, worst_region, gpu_class, cfg.pricing_buffer)

        # Dirtiest admissible grid
        dirtiest = max(regions, key=max_plausible_intensity)
        intensity = max_plausible_intensity(dirtiest)
        co2_kg = energy_kwh * intensity / 1000 * (1 + cfg.co2_safety_margin)

        time_hours = runtime * cfg.overrun_buffer
        confidence, confidence_note = self._confidence(job, list(rates.values()))

        hardware = "CPU-only baseline" if gpu_class == GpuClass.NONE else f"{gpu_class.value} GPU node"
        assumptions = [
            f"Peak power ceiling {power_kw:g} kW ({hardware}, least efficient facility)",
            f"Conservative time buffer: {runtime:g} h expected × {cfg.overrun_buffer:g} overrun",
            f"Worst-provider pricing: {worst_provider} in {worst_region} at "
            f"${rates[(worst_provider, worst_region)]:.2f}/kWh × {GPU_PRICE_MULTIPLIER[gpu_class]:g} "
            f"(+{_pct(cfg.pricing_buffer - 1)} pricing buffer)",
            f"Highest plausible grid intensity within allowed regions + buffer: "
            f"{intensity:g} gCO₂/kWh in {dirtiest} (+{_pct(cfg.co2_safety_margin)})",
            confidence_note,
        ]
        assumptions.extend(residency_assumptions(policy, job))

        return JobEstimate(
            max_cost_usd=round(cost_usd, ROUND_DIGITS),
            max_co2_kg=round(co2_kg, ROUND_DIGITS),
            max_power_kw=round(power_kw, ROUND_DIGITS),
            max_time_hours=round(time_hours, ROUND_DIGITS),
            confidence=confidence,
            assumptions=assumptions,
        )

    def _confidence(self, job: Job, rates: list) -> tuple[Confidence, str]:
        """Coarse heuristic: how tightly the ceilings bound the real outcome."""
        if job.deadline is not None and not job.batchable_shiftable:
            return Confidence.HIGH, "Confidence HIGH: hard deadline and fixed window keep the estimate tightly bound"
        if job.batchable_shiftable:
            return Confidence.MED, "Confidence MED: batch window could shift; max assumes unfavorable window"
        if job.compute.gpu_class in PREMIUM_GPU_CLASSES:
            return Confidence.LOW, (f"Confidence LOW: {job.compute.gpu_class.value} capacity pricing "
                                    f"varies widely across providers")
        spread = max(rates) / min(rates)
        if spread > self.config.wide_variance_ratio:
            return Confidence.LOW, f"Confidence LOW: eligible provider rates vary {spread:.2f}× across allowed regions"
        return Confidence.MED, f"Confidence MED: eligible provider rates vary {spread:.2f}× across allowed regions"

    def estimate_project(
        self,
        project: Project,
        default_profile: OptimizationProfile,
        default_compliance: CompliancePolicy,
        job_id: Optional[str] = None,
        verbose: bool = False,
    ) -> EstimateResult:
        """
        Estimate every job in scope and aggregate the totals.

        Jobs that fail are reported in `errors`; totals cover the rest.
        """
        project_policy = project.compliance or default_compliance
        project_profile = project.profile or default_profile
        jobs = project.scoped_jobs(job_id)

        if verbose:
            print(f"  Estimating {len(jobs)} job(s) for project '{project.name}'...")

        per_job = {}
        errors = {}
        for job in jobs:
            policy = effective_policy(job, project_policy)
            try:
                resolved = self.resolver.resolve(effective_profile(job, project_profile))
                estimate = self.estimate_job(job, policy, resolved.allowed_providers)
                estimate.assumptions.append(f"Optimization profile: {resolved.label}")
                per_job[job.job_id] = estimate
            except PlanningError as e:
                errors[job.job_id] = JobError(job_id=job.job_id, job_name=job.name, code=e.code, message=e.message)
                if verbose:
                    print(f"  ✗ {job.name or job.job_id}: {e.code} — {e.message}")

        totals = aggregate_totals(per_job.values(), excluded=len(errors))

        if verbose:
            print(f"  ✓ Worst case: ${totals.max_cost_usd:,.2f}, {totals.max_co2_kg:,.2f} kgCO₂e, "
                  f"peak {totals.max_power_kw:g} kW, {totals.max_time_hours:,.1f} h")

        return EstimateResult(per_job=per_job, totals=totals, errors=errors)


def aggregate_totals(estimates: Iterable[JobEstimate], excluded: int = 0) -> ProjectEstimate:
    """Sum cost/CO₂/time, take the max of power, and the weakest confidence."""
    estimates = list(estimates)
    assumptions = [
        "Project totals = sum of job maxima (cost, CO₂, time)",
        "Peak power = highest single-job peak, not summed",
        "Not probabilistic; deliberately conservative",
    ]
    if excluded:
        assumptions.append(f"Totals exclude {excluded} job(s) that could not be bounded")

    if not estimates:
        # Nothing bounded: zero totals, and LOW if that is because jobs failed.
        return ProjectEstimate(
            confidence=Confidence.LOW if excluded else Confidence.HIGH,
            assumptions=assumptions,
        )

    return ProjectEstimate(
        max_cost_usd=round(sum(e.max_cost_usd for e in estimates), ROUND_DIGITS),
        max_co2_kg=round(sum(e.max_co2_kg for e in estimates), ROUND_DIGITS),
        max_power_kw=max(e.max_power_kw for e in estimates),
        max_time_hours=round(sum(e.max_time_hours for e in estimates), ROUND_DIGITS),
        confidence=min((e.confidence for e in estimates), key=lambda c: c.rank),
        assumptions=assumptions,
    )


def _pct(fraction: float) -> str:
    return f"{fraction * 100:.0f}%"


# ── Convenience functions ─────────────────────────────────────────────

def estimate_job(job: Job, policy: CompliancePolicy, config: EngineConfig = DEFAULT_CONFIG) -> JobEstimate:
    return MajorantEstimator(config).estimate_job(job, policy)


def estimate_project(
    project: Project,
    default_profile: OptimizationProfile,
    default_compliance: CompliancePolicy,
    config: EngineConfig = DEFAULT_CONFIG,
    job_id: Optional[str] = None,
    verbose: bool = False,
) -> EstimateResult:
    return MajorantEstimator(config).estimate_project(
        project, default_profile, default_compliance, job_id=job_id, verbose=verbose,
    )


def estimates_to_dataframe(result: EstimateResult, project: Optional[Project] = None) -> pd.DataFrame:
    """One row per job: ceilings for bounded jobs, error code for the rest."""
    names = {j.job_id: j.name for j in project.jobs} if project is not None else {}
    rows = []
    for job_id, e in result.per_job.items():
        rows.append({
            "job_id": job_id, "job_name": names.get(job_id, ""),
            "max_cost_usd": e.max_cost_usd, "max_co2_kg": e.max_co2_kg,
            "max_power_kw": e.max_power_kw, "max_time_hours": e.max_time_hours,
            "confidence": e.confidence.value, "error": "",
        })
    for job_id, err in result.errors.items():
        rows.append({
            "job_id": job_id, "job_name": err.job_name,
            "max_cost_usd": None, "max_co2_kg": None,
            "max_power_kw": None, "max_time_hours": None,
            "confidence": None, "error": err.code,
        })
    return pd.DataFrame(rows, columns=[
        "job_id", "job_name", "max_cost_usd", "max_co2_kg",
        "max_power_kw", "max_time_hours", "confidence", "error",
    ])


def summarize_estimates(result: EstimateResult) -> dict:
    t = result.totals
    by_confidence = {}
    for e in result.per_job.values():
        by_confidence[e.confidence.value] = by_confidence.get(e.confidence.value, 0) + 1
    return {
        "jobs_bounded": len(result.per_job),
        "jobs_failed": len(result.errors),
        "max_cost_usd": round(t.max_cost_usd, 2),
        "max_co2_kg": round(t.max_co2_kg, 3),
        "peak_power_kw": t.max_power_kw,
        "max_time_hours": round(t.max_time_hours, 2),
        "confidence": t.confidence.value,
        "by_confidence": by_confidence,
        "errors_by_code": _count_codes(result.errors.values()),
    }


def _count_codes(errors) -> dict:
    counts = {}
    for err in errors:
        counts[err.code] = counts.get(err.code, 0) + 1
    return counts
