#!/usr/bin/env python3
"""
Run full experiment demo: create -> start -> simulate -> results -> report.

Creates artifacts/experiments/<id>/analysis.json, metrics.csv, exec_summary.html
and data/experiments/<id>/events.<parquet|csv>.
"""

import logging
import sys
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT))


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    from src.experimentation import EngineSettings, ExperimentConfig, ExperimentEngine
    from src.experimentation.event_store import export_events
    from src.experimentation.report import render_exec_summary, save_results
    from src.experimentation.simulate import simulate_traffic

    settings = EngineSettings.from_env()
    data_dir = ROOT / settings.data_dir
    artifacts_dir = ROOT / settings.artifacts_dir

    engine = ExperimentEngine(settings=settings)

    print("1. Creating experiment...")
    experiment = engine.create_experiment(ExperimentConfig(
        name="Script template optimization",
        description="Hook-first script template vs current template for investing videos",
        scope_key="script:investing",
        variants={"control": 50, "variantA": 30, "variantB": 20},
        primary_metric="conversion",
        secondary_metrics={"published"},
        planned_duration_days=14,
        created_by="demo",
        experiment_id="demo_script_template_001",
    ))
    engine.start_experiment(experiment.id)

    print("2. Simulating traffic...")
    summary = simulate_traffic(
        engine,
        experiment.id,
        n_entities=3000,
        true_rates={"control": 0.10, "variantA": 0.14, "variantB": 0.10},
    )
    print(f"   Assigned: {summary['assigned']}")

    print("3. Computing results...")
    results = engine.get_results(experiment.id)
    rec = results.recommendation
    print(f"   Recommendation: {rec.action} (confidence {rec.confidence.value})")
    for reason in rec.reasons:
        print(f"   - {reason}")

    print("4. Writing artifacts...")
    export_events(engine.events, experiment.id, base_dir=str(data_dir))
    out_dir = save_results(results, artifacts_dir=str(artifacts_dir))
    render_exec_summary(results.to_dict(), experiment.id, artifacts_dir=str(artifacts_dir))

    engine.stop_experiment(experiment.id, reason="demo_complete")
    print(f"\n[OK] Demo complete. Artifacts in {out_dir}:")
    for f in sorted(out_dir.iterdir()):
        print(f"   - {f.name}")


if __name__ == "__main__":
    main()
