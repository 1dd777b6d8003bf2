"""
Boundary parser: application state (camelCase JSON) → engine dataclasses.

The UI keeps projects, defaults and profiles as plain JSON objects. This is
the one place that reads them; everything past here works with typed models.
Malformed input raises ValidationError naming the offending field.
"""

from datetime import date, datetime
from typing import Optional

from sustplan.shared.errors import ValidationError
from sustplan.shared.models import (
    CompliancePolicy, ComputeSpec, FullProfile, GpuClass, HardConstraints, Job,
    JobType, LiteProfile, OptimizationProfile, PolicyType, Preset, Priority,
    Project, ReportingRegime, Weights,
)


def _enum(enum_cls, raw, field_name: str):
    try:
        return enum_cls(str(raw).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"{field_name} must be one of {allowed}, got {raw!r}") from None


def _number(raw, field_name: str, optional: bool = False) -> Optional[float]:
    if raw is None and optional:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValidationError(f"{field_name} must be a number, got {raw!r}")
    return float(raw)


def _flag(data: dict, key: str, default: bool, prefix: str) -> bool:
    raw = data.get(key, default)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ValidationError(f"{prefix}.{key} must be true or false, got {raw!r}")
    return raw


def _date(raw, field_name: str) -> Optional[date]:
    if raw in (None, ""):
        return None
    if isinstance(raw, date):
        return raw
    text = str(raw)
    try:
        # Accept both "2026-10-21" and full ISO timestamps
        if len(text) > 10:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO date, got {raw!r}") from None


def policy_from_dict(data: dict) -> CompliancePolicy:
    if not isinstance(data, dict):
        raise ValidationError(f"compliance must be an object, got {type(data).__name__}")
    regions = data.get("regions", [])
    if not isinstance(regions, (list, tuple)):
        raise ValidationError("compliance.regions must be a list of region codes")
    return CompliancePolicy(
        type=_enum(PolicyType, data.get("type", "WHITELIST"), "compliance.type"),
        regions=[str(r).strip().upper() for r in regions if str(r).strip()],
        allow_job_override=_flag(data, "allowJobOverride", True, "compliance"),
        enforce_data_residency=_flag(data, "enforceDataResidency", False, "compliance"),
        no_cross_border_transfer=_flag(data, "noCrossBorderTransfer", False, "compliance"),
    )


def profile_from_dict(data: dict) -> OptimizationProfile:
    if not isinstance(data, dict):
        raise ValidationError(f"profile must be an object, got {type(data).__name__}")
    mode = str(data.get("mode", "LITE")).strip().upper()
    if mode == "LITE":
        return LiteProfile(preset=_enum(Preset, data.get("preset", "BALANCED"), "profile.preset"))
    elif mode == "FULL":
        weights = data.get("weights") or {}
        hard = data.get("hard") or {}
        provider = data.get("provider") or {}
        allowed = provider.get("allowedProviders")
        return FullProfile(
            weights=Weights(
                co2=_number(weights.get("co2", 0), "profile.weights.co2"),
                cost=_number(weights.get("cost", 0), "profile.weights.cost"),
                time=_number(weights.get("time", 0), "profile.weights.time"),
                power=_number(weights.get("power", 0), "profile.weights.power"),
            ),
            hard=HardConstraints(
                max_budget_usd=_number(hard.get("maxBudgetUsd"), "profile.hard.maxBudgetUsd", optional=True),
                max_co2_kg=_number(hard.get("maxCO2Kg"), "profile.hard.maxCO2Kg", optional=True),
            ),
            allowed_providers=list(allowed) if allowed is not None else None,
        )
    raise ValidationError(f"profile.mode must be LITE or FULL, got {mode!r}")


def job_from_dict(data: dict) -> Job:
    if not isinstance(data, dict):
        raise ValidationError(f"job must be an object, got {type(data).__name__}")
    job_id = data.get("id")
    if not job_id:
        raise ValidationError("job.id is required")
    compute = data.get("compute") or {}
    if not isinstance(compute, dict):
        raise ValidationError(f"job[{job_id}].compute must be an object, got {type(compute).__name__}")
    override_compliance = data.get("overrideCompliance")
    override_profile = data.get("overrideProfile")
    return Job(
        job_id=str(job_id),
        name=str(data.get("name", "")),
        type=_enum(JobType, data.get("type", "CUSTOM"), f"job[{job_id}].type"),
        priority=_enum(Priority, data.get("priority", "MEDIUM"), f"job[{job_id}].priority"),
        compute=ComputeSpec(
            gpu_required=_flag(compute, "gpuRequired", False, f"job[{job_id}].compute"),
            gpu_class=_enum(GpuClass, compute.get("gpuClass", "NONE"), f"job[{job_id}].compute.gpuClass"),
            expected_runtime_hours=_number(
                compute.get("expectedRuntimeHours"), f"job[{job_id}].compute.expectedRuntimeHours"),
        ),
        deadline=_date(data.get("deadlineISO"), f"job[{job_id}].deadlineISO"),
        batchable_shiftable=_flag(data, "batchableShiftable", False, f"job[{job_id}]"),
        inherit_compliance=_flag(data, "inheritCompliance", True, f"job[{job_id}]"),
        override_compliance=policy_from_dict(override_compliance) if override_compliance else None,
        inherit_project_settings=_flag(data, "inheritProjectSettings", True, f"job[{job_id}]"),
        override_profile=profile_from_dict(override_profile) if override_profile else None,
        data_region=data.get("dataRegion") or None,
        notes=str(data.get("notes", "")),
    )


def _job_or_placeholder(data, index: int) -> Job:
    """
    Parse one job of a project. A malformed job becomes a placeholder that
    carries its error, so the engine reports it per job and plans the rest.
    """
    try:
        return job_from_dict(data)
    except ValidationError as e:
        raw = data if isinstance(data, dict) else {}
        return Job(
            job_id=str(raw.get("id") or f"jobs[{index}]"),
            name=str(raw.get("name", "")),
            parse_error=e.message,
        )


def project_from_dict(data: dict) -> Project:
    """
    Project-level fields are strict. Individual malformed jobs are kept as
    placeholders (Job.parse_error) instead of rejecting the whole project.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"project must be an object, got {type(data).__name__}")
    project_id = data.get("id")
    if not project_id:
        raise ValidationError("project.id is required")
    raw_jobs = data.get("jobs", [])
    if not isinstance(raw_jobs, list):
        raise ValidationError("project.jobs must be a list")
    jobs = [_job_or_placeholder(j, index) for index, j in enumerate(raw_jobs)]
    seen = set()
    for job in jobs:
        if job.job_id in seen:
            raise ValidationError(f"Duplicate job id {job.job_id!r} in project {project_id!r}")
        seen.add(job.job_id)
    profile = data.get("profile")
    compliance = data.get("compliance")
    return Project(
        project_id=str(project_id),
        name=str(data.get("name", "")),
        description=str(data.get("description", "")),
        tags=list(data.get("tags", [])),
        reporting_regime=_enum(ReportingRegime, data.get("reportingRegime", "BOTH"), "project.reportingRegime"),
        profile=profile_from_dict(profile) if profile else None,
        compliance=policy_from_dict(compliance) if compliance else None,
        jobs=jobs,
    )


def defaults_from_dict(data: dict) -> tuple[OptimizationProfile, CompliancePolicy]:
    """Workspace defaults: (defaultProfile, defaultCompliance)."""
    if not isinstance(data, dict):
        raise ValidationError(f"defaults must be an object, got {type(data).__name__}")
    for key in ("defaultProfile", "defaultCompliance"):
        if key not in data:
            raise ValidationError(f"defaults.{key} is required")
    return profile_from_dict(data["defaultProfile"]), policy_from_dict(data["defaultCompliance"])
