"""
Experiment registry: creation-time validation, lookup and listing.
"""

import logging
import uuid
from typing import Dict, List, Optional

from .errors import ExperimentNotFound, InvalidExperimentConfig, InvalidVariantWeights
from .schema import Experiment, ExperimentConfig, ExperimentStatus, utcnow
from .store import ExperimentStore

logger = logging.getLogger(__name__)

TOTAL_WEIGHT = 100


def validate_variants(variants: Dict[str, int]) -> None:
    """
    Check the weight table.

    Raises:
        InvalidVariantWeights: fewer than 2 variants, a non-integer or
            negative weight, or weights not summing to exactly 100.
    """
    if not variants or len(variants) < 2:
        raise InvalidVariantWeights("At least 2 variants are required")
    for name, weight in variants.items():
        if not isinstance(name, str) or not name:
            raise InvalidVariantWeights(f"Variant names must be non-empty strings, got {name!r}")
        if isinstance(weight, bool) or not isinstance(weight, int):
            raise InvalidVariantWeights(f"Weight for {name} must be an integer, got {weight!r}")
        if weight < 0:
            raise InvalidVariantWeights(f"Weight for {name} must be non-negative, got {weight}")
    total = sum(variants.values())
    if total != TOTAL_WEIGHT:
        raise InvalidVariantWeights(f"Variant weights must sum to {TOTAL_WEIGHT}, got {total}")


def generate_experiment_id() -> str:
    return f"exp_{uuid.uuid4().hex[:12]}"


class ExperimentRegistry:
    """CRUD over experiment definitions backed by an ExperimentStore."""

    def __init__(self, store: ExperimentStore):
        self.store = store

    def create(self, config: ExperimentConfig) -> Experiment:
        """
        Validate a config and persist it as a draft experiment.

        Raises:
            InvalidVariantWeights: bad weight table
            InvalidExperimentConfig: missing name, unknown control variant,
                bad duration or an id already in use
        """
        if not config.name or not config.name.strip():
            raise InvalidExperimentConfig("Experiment name is required")
        validate_variants(config.variants)
        if config.control_variant not in config.variants:
            raise InvalidExperimentConfig(
                f"Control variant '{config.control_variant}' is not one of {sorted(config.variants)}"
            )
        if config.planned_duration_days < 1:
            raise InvalidExperimentConfig(
                f"planned_duration_days must be >= 1, got {config.planned_duration_days}"
            )
        if config.alpha is not None and not 0 < config.alpha < 1:
            raise InvalidExperimentConfig(f"alpha must be in (0, 1), got {config.alpha}")
        if config.min_sample_size is not None and config.min_sample_size < 1:
            raise InvalidExperimentConfig(
                f"min_sample_size must be >= 1, got {config.min_sample_size}"
            )

        experiment_id = config.experiment_id or generate_experiment_id()
        experiment = Experiment(
            id=experiment_id,
            name=config.name,
            scope_key=config.scope_key,
            variants=dict(config.variants),
            primary_metric=config.primary_metric,
            secondary_metrics=set(config.secondary_metrics),
            status=ExperimentStatus.DRAFT,
            created_at=utcnow(),
            planned_duration_days=config.planned_duration_days,
            control_variant=config.control_variant,
            description=config.description,
            created_by=config.created_by,
            alpha=config.alpha,
            min_sample_size=config.min_sample_size,
        )
        if not self.store.save_experiment_if_absent(experiment):
            raise InvalidExperimentConfig(f"Experiment id already exists: {experiment_id}")
        logger.info(f"Created experiment {experiment.id} ({experiment.name}) variants={experiment.variants}")
        return experiment

    def get(self, experiment_id: str) -> Experiment:
        experiment = self.store.get_experiment(experiment_id)
        if experiment is None:
            raise ExperimentNotFound(experiment_id)
        return experiment

    def find(self, experiment_id: str) -> Optional[Experiment]:
        """Like get, but returns None instead of raising."""
        return self.store.get_experiment(experiment_id)

    def list(
        self,
        scope_key: Optional[str] = None,
        status: Optional[ExperimentStatus] = None,
    ) -> List[Experiment]:
        """Experiments matching the filters, in insertion order."""
        status = ExperimentStatus(status) if status is not None else None
        return [
            e for e in self.store.list_experiments()
            if (scope_key is None or e.scope_key == scope_key)
            and (status is None or e.status == status)
        ]

    def replace_if_status(self, experiment: Experiment, expected: ExperimentStatus) -> bool:
        """Persist changes only if nobody moved the experiment off expected first."""
        return self.store.update_experiment_if_status(experiment, expected)
