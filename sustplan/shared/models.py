"""
Shared data models for the sust-plan engine.
These are the "nouns" — the structures the UI hands in and the engine hands back.

Inputs (Project, Job, CompliancePolicy, profiles) are never mutated by the engine.
Outputs serialize with to_dict() using the camelCase field names of the
exported report/plan documents; keep those keys stable.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Union


class JobType(Enum):
    TRAINING = "TRAINING"
    BATCH = "BATCH"
    CI = "CI"
    ETL = "ETL"
    INFERENCE = "INFERENCE"
    CUSTOM = "CUSTOM"


class Priority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class GpuClass(Enum):
    """Accelerator class, declared in order of increasing power draw."""
    NONE = "NONE"
    T4 = "T4"
    L4 = "L4"
    A10 = "A10"
    A100 = "A100"
    H100 = "H100"


class PolicyType(Enum):
    WHITELIST = "WHITELIST"
    BLACKLIST = "BLACKLIST"


class Preset(Enum):
    GREENEST = "GREENEST"
    CHEAPEST = "CHEAPEST"
    FASTEST = "FASTEST"
    BALANCED = "BALANCED"


class CompareMode(Enum):
    AUTO = "AUTO"
    GREENEST = "GREENEST"
    CHEAPEST = "CHEAPEST"
    FASTEST = "FASTEST"


class Confidence(Enum):
    LOW = "LOW"
    MED = "MED"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {Confidence.LOW: 0, Confidence.MED: 1, Confidence.HIGH: 2}


class ReportingRegime(Enum):
    CANADA = "CANADA"
    EU = "EU"
    BOTH = "BOTH"


# ── Region catalog ────────────────────────────────────────────────────
# Country-level execution regions the mock catalog knows about.
# "EU" is not a region of its own; policies use it as an aggregate token.

REGIONS = {
    "US": {"name": "United States", "eu_member": False},
    "CA": {"name": "Canada", "eu_member": False},
    "BR": {"name": "Brazil", "eu_member": False},
    "GB": {"name": "United Kingdom", "eu_member": False},
    "NO": {"name": "Norway", "eu_member": False},
    "DE": {"name": "Germany", "eu_member": True},
    "FR": {"name": "France", "eu_member": True},
    "IE": {"name": "Ireland", "eu_member": True},
    "NL": {"name": "Netherlands", "eu_member": True},
    "SE": {"name": "Sweden", "eu_member": True},
    "FI": {"name": "Finland", "eu_member": True},
    "PL": {"name": "Poland", "eu_member": True},
    "ES": {"name": "Spain", "eu_member": True},
    "IT": {"name": "Italy", "eu_member": True},
    "IN": {"name": "India", "eu_member": False},
    "JP": {"name": "Japan", "eu_member": False},
    "SG": {"name": "Singapore", "eu_member": False},
    "AU": {"name": "Australia", "eu_member": False},
}

EU_AGGREGATE = "EU"
EU_MEMBERS = frozenset(code for code, info in REGIONS.items() if info["eu_member"])


# ── Inputs ────────────────────────────────────────────────────────────

@dataclass
class ComputeSpec:
    gpu_required: bool = False
    gpu_class: GpuClass = GpuClass.NONE
    expected_runtime_hours: float = 1.0


@dataclass
class CompliancePolicy:
    """Whitelist or blacklist of regions plus residency/transfer flags."""
    type: PolicyType = PolicyType.WHITELIST
    regions: list = field(default_factory=list)
    allow_job_override: bool = True
    enforce_data_residency: bool = False
    no_cross_border_transfer: bool = False


@dataclass
class Weights:
    """Relative objective weights, each 0–100. Need not sum to 100."""
    co2: float = 0.0
    cost: float = 0.0
    time: float = 0.0
    power: float = 0.0

    def as_dict(self) -> dict:
        return {"co2": self.co2, "cost": self.cost, "time": self.time, "power": self.power}


@dataclass
class HardConstraints:
    max_budget_usd: Optional[float] = None
    max_co2_kg: Optional[float] = None


@dataclass
class LiteProfile:
    preset: Preset = Preset.BALANCED


@dataclass
class FullProfile:
    weights: Weights = field(default_factory=Weights)
    hard: HardConstraints = field(default_factory=HardConstraints)
    allowed_providers: Optional[list] = None    # None = every catalog provider


OptimizationProfile = Union[LiteProfile, FullProfile]


@dataclass
class Job:
    """A single compute workload inside a project."""
    job_id: str = ""
    name: str = ""
    type: JobType = JobType.CUSTOM
    priority: Priority = Priority.MEDIUM
    compute: ComputeSpec = field(default_factory=ComputeSpec)
    deadline: Optional[date] = None
    batchable_shiftable: bool = False
    inherit_compliance: bool = True
    override_compliance: Optional[CompliancePolicy] = None
    inherit_project_settings: bool = True
    override_profile: Optional[OptimizationProfile] = None
    data_region: Optional[str] = None    # only consulted when residency is enforced
    parse_error: Optional[str] = None    # set by the boundary parser for a malformed job
    notes: str = ""


@dataclass
class Project:
    project_id: str = ""
    name: str = ""
    description: str = ""
    tags: list = field(default_factory=list)
    reporting_regime: ReportingRegime = ReportingRegime.BOTH
    profile: Optional[OptimizationProfile] = None
    compliance: Optional[CompliancePolicy] = None
    jobs: list = field(default_factory=list)

    def scoped_jobs(self, job_id: Optional[str] = None) -> list:
        """All jobs, or only the one named by job_id."""
        if job_id is None:
            return list(self.jobs)
        return [j for j in self.jobs if j.job_id == job_id]


# ── Outputs ───────────────────────────────────────────────────────────

@dataclass
class JobEstimate:
    """Conservative upper bounds for one job."""
    max_cost_usd: float = 0.0
    max_co2_kg: float = 0.0
    max_power_kw: float = 0.0
    max_time_hours: float = 0.0
    confidence: Confidence = Confidence.MED
    assumptions: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "maxCostUsd": self.max_cost_usd,
            "maxCO2Kg": self.max_co2_kg,
            "maxPowerKw": self.max_power_kw,
            "maxTimeHours": self.max_time_hours,
            "confidence": self.confidence.value,
            "assumptions": list(self.assumptions),
        }


@dataclass
class ProjectEstimate(JobEstimate):
    """Project-scope totals. Same fields as JobEstimate."""


@dataclass
class JobError:
    """A job that could not be estimated or planned, and why."""
    job_id: str = ""
    job_name: str = ""
    code: str = ""
    message: str = ""

    def to_dict(self) -> dict:
        return {"jobId": self.job_id, "jobName": self.job_name,
                "code": self.code, "message": self.message}


@dataclass
class EstimateResult:
    per_job: dict = field(default_factory=dict)     # job_id -> JobEstimate
    totals: ProjectEstimate = field(default_factory=ProjectEstimate)
    errors: dict = field(default_factory=dict)      # job_id -> JobError

    def to_dict(self) -> dict:
        return {
            "perJob": {job_id: e.to_dict() for job_id, e in self.per_job.items()},
            "totals": self.totals.to_dict(),
            "errors": {job_id: e.to_dict() for job_id, e in self.errors.items()},
        }


@dataclass
class PlanItem:
    """The chosen (region, provider, window) for one job."""
    job_id: str = ""
    job_name: str = ""
    region: str = ""
    provider: str = ""
    time_window_label: str = ""
    rationale_tags: list = field(default_factory=list)

    feasible = True

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "jobName": self.job_name,
            "region": self.region,
            "provider": self.provider,
            "timeWindowLabel": self.time_window_label,
            "rationaleTags": list(self.rationale_tags),
        }


@dataclass
class InfeasiblePlan:
    """No admissible candidate exists for this job."""
    job_id: str = ""
    job_name: str = ""
    reason: str = ""
    message: str = ""

    feasible = False

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "jobName": self.job_name,
            "infeasible": True,
            "reason": self.reason,
            "message": self.message,
        }
