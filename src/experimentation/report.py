"""
Experiment result artifacts.

Writes analysis.json, a per-variant metrics table and an HTML executive
summary to artifacts/experiments/<experiment_id>/.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import DEFAULT_ARTIFACTS_DIR
from .metrics import metrics_frame
from .schema import ExperimentResults

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
EXEC_SUMMARY_TEMPLATE = "exec_summary.html"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


def _rec_class(action: str) -> str:
    if action.startswith("ship"):
        return "ship"
    if action.startswith("inconclusive"):
        return "stop"
    return ""


def render_exec_summary(
    results: Dict[str, Any],
    experiment_id: str,
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR,
) -> Path:
    """
    Render the HTML executive summary from ExperimentResults.to_dict().

    Returns:
        Path to exec_summary.html
    """
    template = _env.get_template(EXEC_SUMMARY_TEMPLATE)
    html = template.render(
        rec_class=_rec_class(results["recommendation"]["action"]),
        **results,
    )
    out_dir = Path(artifacts_dir) / experiment_id
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / "exec_summary.html"
    out_path.write_text(html, encoding="utf-8")
    logger.info(f"Executive summary written to {out_path}")
    return out_path


def save_results(
    results: ExperimentResults,
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR,
) -> Path:
    """
    Write analysis.json and metrics.csv for a results snapshot.

    Returns:
        Output directory
    """
    experiment_id = results.experiment.id
    out_dir = Path(artifacts_dir) / experiment_id
    out_dir.mkdir(parents=True, exist_ok=True)

    with open(out_dir / "analysis.json", "w") as f:
        json.dump(results.to_dict(), f, indent=2)

    metrics_frame(results.metrics, results.experiment.control_variant).to_csv(
        out_dir / "metrics.csv", index=False
    )
    logger.info(f"Analysis saved to {out_dir}")
    return out_dir
