"""
Error taxonomy for the estimation and planning engine.

Every error is raised for a single job. The project-level loops in the
estimator and planner turn them into per-job entries (JobError /
InfeasiblePlan) so one bad job never aborts its siblings.
"""

from typing import Optional


class PlanningError(Exception):
    """Base class. `code` is the stable tag written into result documents."""
    code = "PLANNING_ERROR"

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id


class ValidationError(PlanningError):
    """Malformed job, profile, policy or config input."""
    code = "VALIDATION"


class NoAdmissibleRegionError(PlanningError):
    """The compliance policy leaves no region (or no provider) to run the job in."""
    code = "NO_ADMISSIBLE_REGION"


class InfeasiblePlanError(PlanningError):
    """No candidate survives compliance, provider and deadline filtering."""
    code = "INFEASIBLE_PLAN"


class InfeasibleBudgetError(InfeasiblePlanError):
    """Hard budget / CO₂ caps exclude every remaining candidate."""
    code = "INFEASIBLE_BUDGET"
