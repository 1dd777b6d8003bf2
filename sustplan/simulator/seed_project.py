"""
Seed Project
============
The sample workspace a fresh install starts with: one LLM fine-tuning project
with four jobs, plus the workspace-level default profile and compliance.

Kept in the application's own camelCase JSON shape and read through the
boundary parser, exactly like state loaded from the UI.
"""

from datetime import date, timedelta
from typing import Optional

from sustplan.shared.models import CompliancePolicy, OptimizationProfile, Project
from sustplan.shared.parsing import defaults_from_dict, project_from_dict


DEFAULTS_STATE = {
    "defaultReportingRegime": "BOTH",
    "defaultProfile": {"mode": "LITE", "preset": "BALANCED"},
    "defaultCompliance": {
        "type": "WHITELIST",
        "regions": ["EU", "CA"],
        "allowJobOverride": True,
        "enforceDataResidency": True,
        "noCrossBorderTransfer": True,
    },
}


def seed_project_state(today: date) -> dict:
    """The sample project as the UI stores it. The training deadline is two days out."""
    return {
        "id": "proj_seed_001",
        "name": "LLM Fine-Tuning — Customer Support Bot",
        "description": "Carbon-aware orchestration: worst-case estimates, "
                       "compliance constraints, and audit-style reporting.",
        "tags": ["LLM", "GPU", "Customer Support", "Compliance"],
        "reportingRegime": "BOTH",
        "profile": {
            "mode": "FULL",
            "weights": {"co2": 50, "cost": 30, "time": 20, "power": 0},
            "hard": {"maxBudgetUsd": 2500},
            "provider": {"allowedProviders": ["AWS", "GCP", "Azure", "OVHcloud"]},
        },
        "compliance": {
            "type": "WHITELIST",
            "regions": ["EU", "CA"],
            "allowJobOverride": True,
            "enforceDataResidency": True,
            "noCrossBorderTransfer": True,
        },
        "jobs": [
            {
                "id": "job_001", "name": "Data preprocessing", "type": "BATCH", "priority": "LOW",
                "batchableShiftable": True,
                "compute": {"gpuRequired": False, "gpuClass": "NONE", "expectedRuntimeHours": 3.5},
                "inheritProjectSettings": True, "inheritCompliance": True,
                "notes": "Batchable; prefer low-carbon window.",
            },
            {
                "id": "job_002", "name": "Training run", "type": "TRAINING", "priority": "CRITICAL",
                "deadlineISO": (today + timedelta(days=2)).isoformat(),
                "batchableShiftable": False,
                "compute": {"gpuRequired": True, "gpuClass": "A100", "expectedRuntimeHours": 11.0},
                "inheritProjectSettings": True, "inheritCompliance": True,
                "notes": "GPU required; deadline constrained.",
            },
            {
                "id": "job_003", "name": "Evaluation + benchmarks", "type": "BATCH", "priority": "MEDIUM",
                "batchableShiftable": True,
                "compute": {"gpuRequired": True, "gpuClass": "L4", "expectedRuntimeHours": 2.8},
                "inheritProjectSettings": True, "inheritCompliance": True,
                "notes": "Batchable; can shift to greener window.",
            },
            {
                "id": "job_004", "name": "Packaging + artifact export", "type": "CI", "priority": "LOW",
                "batchableShiftable": True,
                "compute": {"gpuRequired": False, "gpuClass": "NONE", "expectedRuntimeHours": 1.2},
                "inheritProjectSettings": True, "inheritCompliance": True,
                "notes": "CI-style job; low compute.",
            },
        ],
    }


def make_seed_project(today: Optional[date] = None) -> Project:
    return project_from_dict(seed_project_state(today or date.today()))


def make_seed_defaults() -> tuple[OptimizationProfile, CompliancePolicy]:
    return defaults_from_dict(DEFAULTS_STATE)
