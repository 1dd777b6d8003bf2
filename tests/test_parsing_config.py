from datetime import date

import pytest

from conftest import TODAY
from sustplan.shared.config import DEFAULT_CONFIG, EngineConfig
from sustplan.shared.errors import PlanningError, ValidationError
from sustplan.shared.models import (
    FullProfile, GpuClass, LiteProfile, PolicyType, Preset, ReportingRegime,
)
from sustplan.shared.parsing import (
    defaults_from_dict, job_from_dict, policy_from_dict, profile_from_dict, project_from_dict,
)
from sustplan.simulator.seed_project import DEFAULTS_STATE, seed_project_state


def _job(**overrides):
    data = {"id": "j1", "name": "Job", "compute": {"expectedRuntimeHours": 2}}
    data.update(overrides)
    return data


def test_seed_state_parses(seed_project):
    assert seed_project.project_id == "proj_seed_001"
    assert [j.job_id for j in seed_project.jobs] == ["job_001", "job_002", "job_003", "job_004"]
    training = seed_project.jobs[1]
    assert training.compute.gpu_class == GpuClass.A100
    assert training.deadline == date(2026, 10, 21)
    assert isinstance(seed_project.profile, FullProfile)
    assert seed_project.profile.hard.max_budget_usd == 2500
    assert seed_project.profile.allowed_providers == ["AWS", "GCP", "Azure", "OVHcloud"]
    assert seed_project.reporting_regime == ReportingRegime.BOTH


def test_defaults_parse():
    profile, policy = defaults_from_dict(DEFAULTS_STATE)
    assert profile == LiteProfile(Preset.BALANCED)
    assert policy.type == PolicyType.WHITELIST
    assert policy.regions == ["EU", "CA"]
    assert policy.enforce_data_residency and policy.no_cross_border_transfer


def test_defaults_require_both_keys():
    with pytest.raises(ValidationError):
        defaults_from_dict({"defaultProfile": {"mode": "LITE"}})


def test_enum_values_are_case_insensitive():
    job = job_from_dict(_job(type="training", priority="high"))
    assert job.type.value == "TRAINING"
    assert job.priority.value == "HIGH"


def test_unknown_enum_value_is_rejected():
    with pytest.raises(ValidationError, match="gpuClass"):
        job_from_dict(_job(compute={"gpuClass": "V100", "expectedRuntimeHours": 1}))


def test_missing_ids_and_runtime_are_rejected():
    with pytest.raises(ValidationError):
        job_from_dict({"name": "anonymous"})
    with pytest.raises(ValidationError):
        job_from_dict({"id": "j", "compute": {}})
    with pytest.raises(ValidationError):
        project_from_dict({"name": "no id"})


def test_duplicate_job_ids_are_rejected():
    state = seed_project_state(TODAY)
    state["jobs"].append(dict(state["jobs"][0]))
    with pytest.raises(ValidationError, match="Duplicate"):
        project_from_dict(state)


def test_deadline_accepts_dates_and_timestamps():
    assert job_from_dict(_job(deadlineISO="2026-10-21")).deadline == date(2026, 10, 21)
    assert job_from_dict(_job(deadlineISO="2026-10-21T17:30:00.000Z")).deadline == date(2026, 10, 21)
    assert job_from_dict(_job()).deadline is None
    with pytest.raises(ValidationError):
        job_from_dict(_job(deadlineISO="next tuesday"))


def test_job_overrides_parse():
    job = job_from_dict(_job(
        inheritCompliance=False,
        overrideCompliance={"type": "blacklist", "regions": ["us"]},
        inheritProjectSettings=False,
        overrideProfile={"mode": "LITE", "preset": "FASTEST"},
        dataRegion="DE",
    ))
    assert job.override_compliance.type == PolicyType.BLACKLIST
    assert job.override_compliance.regions == ["US"]
    assert job.override_profile == LiteProfile(Preset.FASTEST)
    assert job.data_region == "DE"


def test_profile_parsing():
    full = profile_from_dict({"mode": "FULL", "weights": {"co2": 80}, "hard": {"maxCO2Kg": 12}})
    assert full.weights.co2 == 80 and full.weights.cost == 0
    assert full.hard.max_co2_kg == 12 and full.hard.max_budget_usd is None
    assert full.allowed_providers is None
    with pytest.raises(ValidationError):
        profile_from_dict({"mode": "EXPERT"})
    with pytest.raises(ValidationError):
        profile_from_dict({"mode": "FULL", "weights": {"co2": "lots"}})


def test_policy_regions_must_be_a_list():
    with pytest.raises(ValidationError):
        policy_from_dict({"type": "WHITELIST", "regions": "EU"})


def test_validation_error_is_a_planning_error():
    assert issubclass(ValidationError, PlanningError)
    assert ValidationError("x").code == "VALIDATION"


def test_default_config_values():
    assert DEFAULT_CONFIG.overrun_buffer == 1.15
    assert DEFAULT_CONFIG.pricing_buffer == 1.20
    assert DEFAULT_CONFIG.co2_safety_margin == 0.10
    assert DEFAULT_CONFIG.wide_variance_ratio == 1.5


@pytest.mark.parametrize("kwargs", [
    {"overrun_buffer": 0.9},
    {"pricing_buffer": float("nan")},
    {"co2_safety_margin": -0.1},
    {"score_precision": -1},
])
def test_config_rejects_values_that_break_the_bounds(kwargs):
    with pytest.raises(ValidationError):
        EngineConfig(**kwargs)


def test_config_from_env():
    config = EngineConfig.from_env({
        "SUSTPLAN_OVERRUN_BUFFER": "1.3",
        "SUSTPLAN_CO2_SAFETY_MARGIN": "0.2",
        "SUSTPLAN_PRICING_BUFFER": "",
        "UNRELATED": "x",
    })
    assert config.overrun_buffer == 1.3
    assert config.co2_safety_margin == 0.2
    assert config.pricing_buffer == DEFAULT_CONFIG.pricing_buffer


def test_config_from_env_rejects_garbage():
    with pytest.raises(ValidationError, match="SUSTPLAN_PRICING_BUFFER"):
        EngineConfig.from_env({"SUSTPLAN_PRICING_BUFFER": "cheap"})
    with pytest.raises(ValidationError):
        EngineConfig.from_env({"SUSTPLAN_OVERRUN_BUFFER": "0.5"})


def _project_state(*jobs):
    return {"id": "proj_mixed", "name": "Mixed", "jobs": list(jobs)}


def test_malformed_job_becomes_a_placeholder():
    project = project_from_dict(_project_state(
        _job(id="ok"),
        _job(id="bad", name="Bad", compute={"gpuClass": "V100", "expectedRuntimeHours": 1}),
        {"name": "no id", "compute": {"expectedRuntimeHours": 1}},
    ))
    assert [j.job_id for j in project.jobs] == ["ok", "bad", "jobs[2]"]
    ok, bad, anonymous = project.jobs
    assert ok.parse_error is None
    assert "gpuClass" in bad.parse_error
    assert bad.name == "Bad"
    assert "job.id" in anonymous.parse_error


def test_project_level_fields_stay_strict():
    with pytest.raises(ValidationError):
        project_from_dict({"id": "p", "jobs": {"id": "j"}})
    with pytest.raises(ValidationError):
        project_from_dict({"id": "p", "compliance": {"regions": ["EU"], "allowJobOverride": "no"}})


@pytest.mark.parametrize("raw", ["false", "true", 0, 1])
def test_flags_must_be_booleans(raw):
    with pytest.raises(ValidationError, match="allowJobOverride"):
        policy_from_dict({"type": "WHITELIST", "regions": ["EU"], "allowJobOverride": raw})
    with pytest.raises(ValidationError, match="batchableShiftable"):
        job_from_dict(_job(batchableShiftable=raw))
    with pytest.raises(ValidationError, match="gpuRequired"):
        job_from_dict(_job(compute={"gpuRequired": raw, "expectedRuntimeHours": 1}))


def test_flags_keep_their_defaults_when_absent():
    policy = policy_from_dict({"type": "WHITELIST", "regions": ["EU"], "allowJobOverride": None})
    assert policy.allow_job_override is True
    assert policy_from_dict({"regions": []}).enforce_data_residency is False
    assert job_from_dict(_job(batchableShiftable=False)).batchable_shiftable is False


def test_compute_must_be_an_object():
    with pytest.raises(ValidationError, match="compute"):
        job_from_dict(_job(compute="big"))
