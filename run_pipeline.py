"""
sust-plan — Pipeline Runner
===========================
Estimates, plans and simulates a run for a project, then saves the report.

Without arguments it uses the seed project (LLM fine-tuning, 4 jobs).
A project exported from the UI can be passed as a JSON file.

Usage:
  python run_pipeline.py
  python run_pipeline.py --mode GREENEST
  python run_pipeline.py --project my_project.json --job job_002
  SUSTPLAN_OVERRUN_BUFFER=1.3 python run_pipeline.py
"""

import argparse
import json
import os
from datetime import date

from sustplan.engine.estimator import estimates_to_dataframe
from sustplan.engine.planner import plan_to_dataframe
from sustplan.orchestrator import Orchestrator
from sustplan.shared.config import EngineConfig
from sustplan.shared.models import CompareMode
from sustplan.shared.parsing import project_from_dict
from sustplan.simulator.seed_project import make_seed_defaults, make_seed_project


def main():
    parser = argparse.ArgumentParser(description="Worst-case estimates and execution plan for a project")
    parser.add_argument("--project", help="Project JSON file (UI export format); default: seed project")
    parser.add_argument("--mode", default="AUTO", choices=[m.value for m in CompareMode])
    parser.add_argument("--job", default=None, help="Plan a single job id")
    parser.add_argument("--out", default="data/plan_report.json")
    parser.add_argument("--no-run", action="store_true", help="Skip the simulated run")
    args = parser.parse_args()

    today = date.today()
    if args.project:
        with open(args.project) as f:
            project = project_from_dict(json.load(f))
    else:
        project = make_seed_project(today)
    default_profile, default_compliance = make_seed_defaults()

    orchestrator = Orchestrator(config=EngineConfig.from_env(), verbose=True)
    result = orchestrator.run(
        project, default_profile, default_compliance,
        compare_mode=CompareMode(args.mode),
        job_id=args.job,
        as_of=today,
        simulate=not args.no_run,
    )

    print(f"\n{'─' * 70}")
    print("  WORST-CASE ESTIMATES")
    print(f"{'─' * 70}")
    print(estimates_to_dataframe(result["estimates"], project).to_string(index=False))

    print(f"\n{'─' * 70}")
    print("  EXECUTION PLAN")
    print(f"{'─' * 70}")
    print(plan_to_dataframe(result["plan"]).to_string(index=False))

    os.makedirs(os.path.dirname(args.out) or ".", exist_ok=True)
    with open(args.out, "w") as f:
        json.dump(result["report"], f, indent=2, ensure_ascii=False)
    print(f"\n  Report saved to: {args.out}")


if __name__ == "__main__":
    main()
