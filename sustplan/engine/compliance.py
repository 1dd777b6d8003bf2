"""
Compliance Evaluator
====================
Decides where a job may legally run.

A policy is a WHITELIST or BLACKLIST of region codes. "EU" is an aggregate
token: it matches every EU member state as well as the literal "EU" code.

The effective policy of a job is resolved once, at the boundary:
  - the job's override, if the job opted out of inheritance AND the project
    policy allows job overrides
  - otherwise the project policy (or the workspace default)

Data residency:
  - enforce_data_residency with a job-declared data_region restricts execution
    to regions matching that data region
  - without a data_region, residency is "same region as compute" and adds no
    filtering beyond the whitelist/blacklist

What this module CANNOT do:
  - Admit a region the policy excludes
  - Read or write anything outside its arguments
"""

from typing import Iterable, Optional

from sustplan.shared.errors import NoAdmissibleRegionError
from sustplan.shared.models import (
    CompliancePolicy, Job, PolicyType, REGIONS, EU_AGGREGATE, EU_MEMBERS,
)


def normalize_code(code: str) -> str:
    return str(code).strip().upper()


def token_matches(token: str, region: str) -> bool:
    """True if a policy token covers `region` (EU expands to its members)."""
    token = normalize_code(token)
    region = normalize_code(region)
    if token == region:
        return True
    return token == EU_AGGREGATE and region in EU_MEMBERS


def effective_policy(job: Job, project_policy: CompliancePolicy) -> CompliancePolicy:
    """The policy that governs `job` under `project_policy`."""
    if (not job.inherit_compliance
            and job.override_compliance is not None
            and project_policy.allow_job_override):
        return job.override_compliance
    return project_policy


class ComplianceEvaluator:
    """Pure region-admissibility predicate over a policy and a region catalog."""

    def __init__(self, catalog: Optional[Iterable[str]] = None):
        self.catalog = sorted(REGIONS) if catalog is None else sorted(normalize_code(c) for c in catalog)

    def is_admissible(self, policy: CompliancePolicy, region: str) -> bool:
        listed = any(token_matches(token, region) for token in policy.regions)
        if policy.type == PolicyType.WHITELIST:
            return listed
        elif policy.type == PolicyType.BLACKLIST:
            return not listed
        raise ValueError(f"Unknown policy type: {policy.type!r}")

    def admissible_regions(self, policy: CompliancePolicy, job: Optional[Job] = None) -> list[str]:
        """
        Catalog regions the policy admits for `job`, sorted.

        When the policy enforces data residency and the job declares a
        data_region, only regions matching it are kept.
        """
        regions = [r for r in self.catalog if self.is_admissible(policy, r)]
        if policy.enforce_data_residency and job is not None and job.data_region:
            regions = [r for r in regions if token_matches(job.data_region, r)]
        return regions

    def require_regions(self, policy: CompliancePolicy, job: Job) -> list[str]:
        """Like admissible_regions, but an empty set is an error."""
        regions = self.admissible_regions(policy, job)
        if not regions:
            raise NoAdmissibleRegionError(
                f"{policy.type.value} policy {describe_policy(policy)} admits no region "
                f"for job '{job.name or job.job_id}'",
                job_id=job.job_id,
            )
        return regions


def describe_policy(policy: CompliancePolicy) -> str:
    regions = ", ".join(normalize_code(r) for r in policy.regions) or "(none)"
    return f"[{regions}]"


def compliance_tag(policy: CompliancePolicy) -> str:
    """Rationale tag naming the rule a planned region satisfies."""
    if policy.type == PolicyType.WHITELIST:
        return "Within whitelisted regions"
    return "Outside blacklisted regions"


def residency_assumptions(policy: CompliancePolicy, job: Job) -> list[str]:
    notes = []
    if policy.enforce_data_residency:
        if job.data_region:
            notes.append(f"Data residency enforced: compute restricted to {normalize_code(job.data_region)}")
        else:
            notes.append("Data residency follows policy regions (no separate data region declared)")
    if policy.no_cross_border_transfer:
        notes.append("No cross-border transfer: inputs assumed co-located with compute")
    return notes


# ── Convenience functions ─────────────────────────────────────────────

_DEFAULT_EVALUATOR = ComplianceEvaluator()


def is_admissible(policy: CompliancePolicy, region: str) -> bool:
    return _DEFAULT_EVALUATOR.is_admissible(policy, region)


def admissible_regions(policy: CompliancePolicy, job: Optional[Job] = None) -> list[str]:
    return _DEFAULT_EVALUATOR.admissible_regions(policy, job)
