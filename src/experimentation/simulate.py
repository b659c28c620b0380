"""
Traffic simulator.

Drives an engine the way content pipelines do: ask for a variant per
entity, then report a conversion with a per-variant true rate. Seeded
numpy randomness keeps runs reproducible.
"""

import logging
from datetime import timedelta
from typing import Dict, Optional

import numpy as np

from .engine import ExperimentEngine

logger = logging.getLogger(__name__)

SIMULATOR_SEED = 42


def simulate_traffic(
    engine: ExperimentEngine,
    experiment_id: str,
    n_entities: int,
    true_rates: Dict[str, float],
    event_type: Optional[str] = None,
    entity_prefix: str = "entity",
    random_seed: int = SIMULATOR_SEED,
) -> Dict:
    """
    Assign n_entities and record conversions.

    Args:
        engine: Engine to drive
        experiment_id: Running experiment
        n_entities: Number of synthetic entities
        true_rates: Conversion probability per variant (missing -> 0)
        event_type: Conversion event type (default: experiment primary metric)
        entity_prefix: Prefix for synthetic entity ids
        random_seed: Random seed for reproducibility

    Returns:
        Dict with assigned, fallback, conversions and per-variant counts
    """
    rng = np.random.default_rng(random_seed)
    experiment = engine.get_experiment(experiment_id)
    conversion_type = event_type or experiment.primary_metric

    assigned: Dict[str, int] = {v: 0 for v in experiment.variants}
    converted: Dict[str, int] = {v: 0 for v in experiment.variants}
    n_fallback = 0

    draws = rng.random(n_entities)
    for i in range(n_entities):
        entity_id = f"{entity_prefix}_{i:06d}"
        result = engine.get_assignment(experiment_id, entity_id)
        if result.is_fallback:
            n_fallback += 1
            continue
        assigned[result.variant] += 1
        if draws[i] < true_rates.get(result.variant, 0.0):
            engine.track_event(
                experiment_id,
                entity_id,
                conversion_type,
                properties={"simulated": True},
                timestamp=result.assigned_at + timedelta(seconds=1),
            )
            converted[result.variant] += 1

    summary = {
        "experiment_id": experiment_id,
        "n_entities": n_entities,
        "n_fallback": n_fallback,
        "assigned": assigned,
        "converted": converted,
        "random_seed": random_seed,
    }
    logger.info(f"Simulation complete: {summary}")
    return summary
