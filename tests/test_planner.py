import copy
from datetime import timedelta

import pytest

from conftest import TODAY, blacklist, make_job, make_project, whitelist
from sustplan.engine.compliance import admissible_regions
from sustplan.engine.estimator import MajorantEstimator
from sustplan.engine.planner import (
    TAG_DEADLINE, TAG_DEADLINE_UNCHECKED, TAG_SHIFTED, PlanSelector, build_plan, plan_to_dataframe,
    summarize_plan,
)
from sustplan.engine.profile import resolve_profile
from sustplan.shared.models import (
    EU_MEMBERS, CompareMode, FullProfile, GpuClass, HardConstraints, LiteProfile, Preset, Weights,
)
from sustplan.shared.parsing import project_from_dict


def _candidates(job, policy, profile):
    resolved = resolve_profile(profile)
    return PlanSelector().enumerate_candidates(job, admissible_regions(policy, job), resolved)


def _chosen(item, candidates):
    return next(c for c in candidates
                if (c.region, c.provider, c.window.label) == (item.region, item.provider, item.time_window_label))


@pytest.mark.parametrize("mode", list(CompareMode))
def test_whitelist_never_plans_outside_eu_or_ca(seed_project, seed_defaults, mode):
    profile, policy = seed_defaults
    plan = build_plan(seed_project, profile, policy, mode, as_of=TODAY)
    assert len(plan) == len(seed_project.jobs)
    for item in plan:
        assert item.feasible
        assert item.region != "US"
        assert item.region in EU_MEMBERS | {"CA"}


def test_whitelisted_ca_is_admissible(balanced):
    policy = whitelist("EU", "CA")
    plan = build_plan(make_project([make_job()], policy), balanced, policy)
    assert "CA" in admissible_regions(policy)
    assert plan[0].feasible
    only_ca = whitelist("CA")
    assert build_plan(make_project([make_job()], only_ca), balanced, only_ca)[0].region == "CA"


@pytest.mark.parametrize("mode", list(CompareMode))
def test_blacklisted_region_never_appears(balanced, mode):
    policy = blacklist("US")
    jobs = [make_job("cpu"), make_job("gpu", gpu=GpuClass.H100, runtime=5),
            make_job("shift", batchable_shiftable=True)]
    for item in build_plan(make_project(jobs, policy), balanced, policy, mode):
        assert item.region != "US"


def test_greenest_picks_lowest_co2_even_when_not_cheapest(eu_ca_policy, balanced):
    job = make_job(runtime=3)
    candidates = _candidates(job, eu_ca_policy, balanced)
    project = make_project([job], eu_ca_policy)

    greenest = build_plan(project, balanced, eu_ca_policy, CompareMode.GREENEST)[0]
    cheapest = build_plan(project, balanced, eu_ca_policy, CompareMode.CHEAPEST)[0]

    assert _chosen(greenest, candidates).co2 == min(c.co2 for c in candidates)
    assert _chosen(cheapest, candidates).cost == min(c.cost for c in candidates)
    assert (greenest.provider, greenest.region) == ("AWS", "SE")
    assert (cheapest.provider, cheapest.region) == ("OVHcloud", "PL")
    assert _chosen(greenest, candidates).cost > _chosen(cheapest, candidates).cost
    assert "Lowest carbon intensity" in greenest.rationale_tags
    assert "Cheapest eligible provider" in cheapest.rationale_tags


def test_fastest_prefers_fastest_provider_and_immediate_window(eu_ca_policy, balanced):
    job = make_job(batchable_shiftable=True)
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy, CompareMode.FASTEST)[0]
    # GCP is fastest everywhere it runs; regions tie, so the lowest code wins
    assert (item.provider, item.region, item.time_window_label) == ("GCP", "CA", "Immediate window")
    assert "Fastest completion" in item.rationale_tags


def test_region_tie_breaks_on_code():
    policy = whitelist("ES", "CA")
    gcp_only = FullProfile(weights=Weights(cost=1), allowed_providers=["GCP"])
    item = build_plan(make_project([make_job()], policy, gcp_only), gcp_only, policy, CompareMode.CHEAPEST)[0]
    assert (item.provider, item.region) == ("GCP", "CA")


def test_window_tie_prefers_immediate(eu_ca_policy, balanced):
    # Cost does not depend on the window
    job = make_job(batchable_shiftable=True)
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy, CompareMode.CHEAPEST)[0]
    assert item.time_window_label == "Immediate window"
    assert TAG_SHIFTED not in item.rationale_tags


def test_non_batchable_jobs_only_get_the_immediate_window(eu_ca_policy, balanced):
    job = make_job(batchable_shiftable=False)
    assert {c.window.label for c in _candidates(job, eu_ca_policy, balanced)} == {"Immediate window"}
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy, CompareMode.GREENEST)[0]
    assert item.time_window_label == "Immediate window"


def test_batchable_greenest_shifts_to_greener_window(eu_ca_policy, balanced):
    job = make_job(batchable_shiftable=True)
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy, CompareMode.GREENEST)[0]
    assert item.time_window_label == "Overnight off-peak window (+24h)"
    assert TAG_SHIFTED in item.rationale_tags
    assert TAG_DEADLINE not in item.rationale_tags


def test_deadline_excludes_windows_that_finish_late(eu_ca_policy, balanced):
    job = make_job(batchable_shiftable=True, deadline=TODAY)
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy,
                      CompareMode.GREENEST, as_of=TODAY)[0]
    assert item.time_window_label == "Next low-carbon window (+12h)"
    assert TAG_DEADLINE in item.rationale_tags
    assert TAG_SHIFTED in item.rationale_tags


def test_unreachable_deadline_is_infeasible(eu_ca_policy, balanced):
    jobs = [make_job("long", runtime=30, deadline=TODAY), make_job("late", deadline=TODAY - timedelta(days=1)),
            make_job("ok")]
    plan = build_plan(make_project(jobs, eu_ca_policy), balanced, eu_ca_policy, as_of=TODAY)
    assert [p.feasible for p in plan] == [False, False, True]
    assert plan[0].reason == "INFEASIBLE_PLAN"
    assert plan[1].reason == "INFEASIBLE_PLAN"


def test_hard_caps_that_exclude_everything_are_reported(eu_ca_policy):
    broke = FullProfile(weights=Weights(cost=1), hard=HardConstraints(max_budget_usd=0.01))
    no_co2 = FullProfile(weights=Weights(co2=1), hard=HardConstraints(max_co2_kg=0))
    for profile in (broke, no_co2):
        plan = build_plan(make_project([make_job()], eu_ca_policy, profile), profile, eu_ca_policy)
        assert not plan[0].feasible
        assert plan[0].reason == "INFEASIBLE_BUDGET"
        assert plan[0].to_dict()["infeasible"] is True


def test_budget_cap_filters_candidates_on_their_own_cost(eu_ca_policy, balanced):
    job = make_job(runtime=3)
    candidates = _candidates(job, eu_ca_policy, balanced)
    greenest = min(candidates, key=lambda c: c.co2)
    cap = greenest.cost * 0.999
    capped = FullProfile(weights=Weights(co2=1), hard=HardConstraints(max_budget_usd=cap))

    item = build_plan(make_project([job], eu_ca_policy, capped), capped, eu_ca_policy, CompareMode.GREENEST)[0]
    chosen = _chosen(item, candidates)
    assert chosen.cost <= cap
    assert chosen != greenest
    assert chosen.co2 == min(c.co2 for c in candidates if c.cost <= cap)
    assert "Within budget cap" in item.rationale_tags


def test_infeasible_job_does_not_abort_siblings(balanced):
    project_policy = whitelist("EU", "CA", allow_job_override=True)
    jobs = [
        make_job("nowhere", inherit_compliance=False, override_compliance=whitelist()),
        make_job("zero", runtime=0),
        make_job("fine"),
    ]
    plan = build_plan(make_project(jobs, project_policy), balanced, project_policy)
    assert [p.job_id for p in plan] == ["nowhere", "zero", "fine"]
    assert plan[0].reason == "NO_ADMISSIBLE_REGION"
    assert plan[1].reason == "VALIDATION"
    assert plan[2].feasible


def test_candidates_never_exceed_the_job_ceilings(seed_project, seed_defaults):
    _, policy = seed_defaults
    profile = seed_project.profile
    estimator = MajorantEstimator()
    for job in seed_project.jobs:
        estimate = estimator.estimate_job(job, policy, profile.allowed_providers)
        for c in _candidates(job, policy, profile):
            assert c.cost <= estimate.max_cost_usd + 1e-6
            assert c.co2 <= estimate.max_co2_kg + 1e-6
            assert c.power <= estimate.max_power_kw + 1e-6
            assert c.time - c.window.delay_hours <= estimate.max_time_hours + 1e-6


def test_auto_scores_are_normalized(seed_project):
    job = seed_project.jobs[0]
    resolved = resolve_profile(seed_project.profile)
    candidates = _candidates(job, seed_project.compliance, seed_project.profile)
    scores = PlanSelector().score(candidates, resolved, CompareMode.AUTO)
    assert scores.min() >= 0
    assert scores.max() <= 1 + 1e-9


def test_auto_mode_tags(seed_project, seed_defaults):
    profile, policy = seed_defaults
    plan = build_plan(seed_project, profile, policy, CompareMode.AUTO, as_of=TODAY)
    training = next(p for p in plan if p.job_id == "job_002")
    assert TAG_DEADLINE in training.rationale_tags
    assert "Within whitelisted regions" in training.rationale_tags
    assert "Within budget cap" in training.rationale_tags
    for item in plan:
        assert item.rationale_tags


def test_plan_is_deterministic_and_pure(seed_project, seed_defaults):
    profile, policy = seed_defaults
    before = copy.deepcopy(seed_project)
    first = [p.to_dict() for p in build_plan(seed_project, profile, policy, as_of=TODAY)]
    second = [p.to_dict() for p in build_plan(seed_project, profile, policy, as_of=TODAY)]
    assert first == second
    assert seed_project == before


def test_single_job_scope(seed_project, seed_defaults):
    profile, policy = seed_defaults
    plan = build_plan(seed_project, profile, policy, job_id="job_003")
    assert [p.job_id for p in plan] == ["job_003"]


def test_job_profile_override_is_honored(eu_ca_policy, balanced):
    fastest = LiteProfile(Preset.FASTEST)
    job = make_job(batchable_shiftable=True, inherit_project_settings=False, override_profile=fastest)
    item = build_plan(make_project([job], eu_ca_policy, LiteProfile(Preset.GREENEST)), balanced, eu_ca_policy)[0]
    assert item.time_window_label == "Immediate window"


def test_plan_dataframe_and_summary(balanced):
    policy = whitelist("EU", "CA", allow_job_override=True)
    jobs = [make_job("a", batchable_shiftable=True),
            make_job("b", inherit_compliance=False, override_compliance=whitelist())]
    plan = build_plan(make_project(jobs, policy), balanced, policy, CompareMode.GREENEST)
    df = plan_to_dataframe(plan)
    assert list(df["feasible"]) == [True, False]
    summary = summarize_plan(plan)
    assert summary["planned"] == 1
    assert summary["infeasible_by_reason"] == {"NO_ADMISSIBLE_REGION": 1}
    assert summary["shifted_to_greener_window"] == 1
    assert summarize_plan([])["count"] == 0


def test_malformed_job_from_json_is_reported_and_siblings_planned(eu_ca_policy, balanced):
    project = project_from_dict({"id": "proj_mixed", "jobs": [
        {"id": "ok", "compute": {"expectedRuntimeHours": 2}},
        {"id": "bad", "compute": {"gpuRequired": True, "gpuClass": "V100", "expectedRuntimeHours": 2}},
    ]})
    plan = build_plan(project, balanced, eu_ca_policy)
    assert [p.job_id for p in plan] == ["ok", "bad"]
    assert plan[0].feasible
    assert not plan[1].feasible
    assert plan[1].reason == "VALIDATION"
    assert "gpuClass" in plan[1].message


def test_deadline_without_plan_date_is_flagged(eu_ca_policy, balanced):
    job = make_job(deadline=TODAY)
    item = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy, CompareMode.FASTEST)[0]
    assert TAG_DEADLINE_UNCHECKED in item.rationale_tags
    assert TAG_DEADLINE not in item.rationale_tags

    checked = build_plan(make_project([job], eu_ca_policy), balanced, eu_ca_policy,
                         CompareMode.FASTEST, as_of=TODAY)[0]
    assert TAG_DEADLINE in checked.rationale_tags
    assert TAG_DEADLINE_UNCHECKED not in checked.rationale_tags

    no_deadline = build_plan(make_project([make_job()], eu_ca_policy), balanced, eu_ca_policy)[0]
    assert TAG_DEADLINE_UNCHECKED not in no_deadline.rationale_tags
