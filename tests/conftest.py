from datetime import date

import pytest

from sustplan.shared.models import (
    CompliancePolicy, ComputeSpec, GpuClass, Job, LiteProfile, PolicyType, Preset, Project,
)
from sustplan.simulator.seed_project import make_seed_defaults, make_seed_project


TODAY = date(2026, 10, 19)


def make_job(job_id="job_x", runtime=2.0, gpu=GpuClass.NONE, **kwargs) -> Job:
    return Job(
        job_id=job_id,
        name=kwargs.pop("name", f"Job {job_id}"),
        compute=ComputeSpec(
            gpu_required=gpu != GpuClass.NONE,
            gpu_class=gpu,
            expected_runtime_hours=runtime,
        ),
        **kwargs,
    )


def whitelist(*regions, **kwargs) -> CompliancePolicy:
    return CompliancePolicy(type=PolicyType.WHITELIST, regions=list(regions), **kwargs)


def blacklist(*regions, **kwargs) -> CompliancePolicy:
    return CompliancePolicy(type=PolicyType.BLACKLIST, regions=list(regions), **kwargs)


def make_project(jobs, compliance=None, profile=None, project_id="proj_test") -> Project:
    return Project(project_id=project_id, name="Test project", jobs=list(jobs),
                   compliance=compliance, profile=profile)


@pytest.fixture
def eu_ca_policy():
    return whitelist("EU", "CA")


@pytest.fixture
def balanced():
    return LiteProfile(preset=Preset.BALANCED)


@pytest.fixture
def seed_project():
    return make_seed_project(TODAY)


@pytest.fixture
def seed_defaults():
    return make_seed_defaults()
