"""
Planning Orchestrator
=====================
Runs the two engine pipelines for one project and assembles the report:

  Orchestrator
    ├── MajorantEstimator   (worst-case ceilings per job + totals)
    ├── PlanSelector        (region / provider / window per job)
    └── simulate_run        (seeded mock actuals, optional)

Estimation and planning are independent; both resolve policy and profile the
same way, so their results always describe the same constraints.

The orchestrator only computes. Writing the report anywhere is the caller's
job (see run_pipeline.py).
"""

import time
from datetime import date, datetime
from typing import Optional, Union

from sustplan.engine.compliance import admissible_regions, describe_policy
from sustplan.engine.estimator import MajorantEstimator, summarize_estimates
from sustplan.engine.planner import PlanSelector, summarize_plan
from sustplan.shared.config import DEFAULT_CONFIG, EngineConfig
from sustplan.shared.models import (
    CompareMode, CompliancePolicy, OptimizationProfile, Project, ReportingRegime,
)
from sustplan.simulator.actuals import simulate_run
from sustplan.simulator.carbon_intensity import intensity_table


REPORT_LABELS = {
    ReportingRegime.CANADA: "Canada — GHG reporting aligned format",
    ReportingRegime.EU: "EU — CSRD/ESRS aligned format",
    ReportingRegime.BOTH: "Canada + EU — aligned formats",
}

METHODOLOGY = [
    "Deterministic, conservative (majorant) estimates; not probabilistic.",
    "Energy = power (kW) × runtime (h) × overrun buffer.",
    "CO₂ = energy (kWh) × grid intensity (g/kWh) ÷ 1000, plus safety margin.",
    "Costs use mocked per-kWh rates and worst-provider pricing.",
    "Actuals are simulated within a stable fraction of maxima.",
]


class Orchestrator:
    """Runs estimate → plan → simulated run for a project."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG, verbose: bool = True):
        self.config = config
        self.verbose = verbose
        self.estimator = MajorantEstimator(config)
        self.planner = PlanSelector(config)

    def _log(self, msg: str):
        if self.verbose:
            print(f"  [Orchestrator] {msg}")

    def run(
        self,
        project: Project,
        default_profile: OptimizationProfile,
        default_compliance: CompliancePolicy,
        compare_mode: CompareMode = CompareMode.AUTO,
        job_id: Optional[str] = None,
        as_of: Optional[Union[date, datetime]] = None,
        regime: Optional[ReportingRegime] = None,
        simulate: bool = True,
    ) -> dict:
        """
        Returns:
            {"estimates": EstimateResult, "plan": list, "run": RunResult | None,
             "report": dict, "summary": dict}
        """
        start_time = time.time()
        regime = regime if regime is not None else project.reporting_regime

        self._section(f"sust-plan — {project.name or project.project_id}")
        scope = f"job {job_id}" if job_id else f"{len(project.jobs)} job(s)"
        self._log(f"Scope: {scope} | Compare mode: {compare_mode.value} | {REPORT_LABELS[regime]}")

        # ── Worst-case estimates ──────────────────────────────────────
        self._section("Step 1: ESTIMATE — Majorant Estimator")
        t0 = time.time()
        estimates = self.estimator.estimate_project(
            project, default_profile, default_compliance, job_id=job_id, verbose=self.verbose,
        )
        estimate_summary = summarize_estimates(estimates)
        self._log(f"Bounded {estimate_summary['jobs_bounded']} job(s), "
                  f"{estimate_summary['jobs_failed']} failed, in {time.time()-t0:.2f}s")

        # ── Execution plan ────────────────────────────────────────────
        self._section("Step 2: PLAN — Plan Selector")
        t0 = time.time()
        plan = self.planner.build_plan(
            project, default_profile, default_compliance, compare_mode,
            job_id=job_id, as_of=as_of, verbose=self.verbose,
        )
        plan_summary = summarize_plan(plan)
        for item in plan:
            if item.feasible:
                self._log(f"  {item.job_name}: {item.provider} / {item.region} / {item.time_window_label}")
            else:
                self._log(f"  {item.job_name}: INFEASIBLE ({item.reason})")
        self._log(f"Plan built in {time.time()-t0:.2f}s")

        # ── Simulated run ─────────────────────────────────────────────
        run = None
        if simulate:
            self._section("Step 3: RUN — simulated actuals")
            run = simulate_run(project, estimates, plan, compare_mode, job_id=job_id, regime=regime)
            totals = run.totals()
            self._log(f"Run {run.run_id}: ${totals['cost']:,.2f}, {totals['co2']:,.2f} kgCO₂e, "
                      f"peak {totals['peakPower']:g} kW ({len(run.skipped)} skipped)")

        report = build_report(
            project, estimates, plan, run, regime,
            project.compliance or default_compliance, compare_mode,
        )
        summary = {
            "project_id": project.project_id,
            "compare_mode": compare_mode.value,
            "estimates": estimate_summary,
            "plan": plan_summary,
            "run": run.totals() if run is not None else None,
        }

        self._section("COMPLETE")
        self._log(f"Total runtime: {time.time()-start_time:.2f}s")

        return {"estimates": estimates, "plan": plan, "run": run, "report": report, "summary": summary}

    def _section(self, title):
        if self.verbose:
            print(f"\n{'=' * 70}")
            print(f"  {title}")
            print(f"{'=' * 70}")


def build_report(project, estimates, plan, run, regime, policy, compare_mode) -> dict:
    """The exported report document: plain, JSON-serializable values only."""
    return {
        "project": {
            "id": project.project_id,
            "name": project.name,
            "description": project.description,
            "tags": list(project.tags),
            "reportingRegime": project.reporting_regime.value,
        },
        "regime": regime.value,
        "reportLabel": REPORT_LABELS[regime],
        "compareMode": compare_mode.value,
        "compliance": {
            "type": policy.type.value,
            "regions": list(policy.regions),
            "summary": f"{policy.type.value} {describe_policy(policy)}",
            "enforceDataResidency": policy.enforce_data_residency,
            "noCrossBorderTransfer": policy.no_cross_border_transfer,
        },
        "methodology": list(METHODOLOGY),
        "intensityCeilings": intensity_table(admissible_regions(policy)).to_dict(orient="records"),
        "estimates": estimates.to_dict(),
        "plan": [p.to_dict() for p in plan],
        "runResult": run.to_dict() if run is not None else None,
    }
