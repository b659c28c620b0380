"""
Deterministic experiment assignment.

Uses the stable hash of (experiment_id, entity_id) and the experiment's
weight table, walked in lexicographic variant order, so the same pair maps
to the same variant in any process or language. The first assignment is
persisted with an insert-if-absent; later calls return the stored record.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from .config import EngineSettings
from .event_store import EventStore
from .hashing import stable_hash
from .registry import ExperimentRegistry
from .schema import (
    ASSIGNMENT_EVENT,
    Assignment,
    AssignmentResult,
    Event,
    Experiment,
    utcnow,
)
from .store import ExperimentStore

logger = logging.getLogger(__name__)


def select_variant(hash_value: float, variants: Dict[str, int]) -> str:
    """
    Map a hash in [0, 1) to a variant.

    Variants are sorted by name and each owns [cum, cum + weight/100).
    Zero-weight variants own no range.
    """
    if not 0.0 <= hash_value < 1.0:
        raise ValueError(f"hash_value must be in [0, 1), got {hash_value}")
    names = sorted(variants)
    cumulative = 0
    for name in names:
        weight = variants[name]
        if weight <= 0:
            continue
        cumulative += weight
        if hash_value < cumulative / 100:
            return name
    return [n for n in names if variants[n] > 0][-1]


def assign_entity(experiment: Experiment, entity_id: str) -> str:
    """Pure bucketing of one entity; nothing is persisted."""
    return select_variant(stable_hash(experiment.id, entity_id), experiment.variants)


class AssignmentEngine:
    """Store-backed assignment with first-write-wins persistence."""

    def __init__(
        self,
        registry: ExperimentRegistry,
        store: ExperimentStore,
        events: EventStore,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.store = store
        self.events = events
        self.settings = settings or EngineSettings()
        self.clock = clock or utcnow

    def _fallback_variant(self, experiment: Optional[Experiment]) -> Optional[str]:
        configured = self.settings.fallback_variant
        if experiment is None:
            return configured
        if configured and configured in experiment.variants:
            return configured
        return experiment.control_variant

    def get_assignment(self, experiment_id: str, entity_id: str) -> AssignmentResult:
        """
        Variant for an entity.

        Never raises for lifecycle reasons: unknown or non-running
        experiments return the fallback variant with is_fallback=True.
        """
        experiment = self.registry.find(experiment_id)
        if experiment is None or not experiment.is_running:
            status = experiment.status.value if experiment else "missing"
            logger.debug(f"Fallback assignment for {experiment_id}/{entity_id} (status={status})")
            return AssignmentResult(
                experiment_id=experiment_id,
                entity_id=entity_id,
                variant=self._fallback_variant(experiment),
                is_fallback=True,
            )

        existing = self.store.get_assignment(experiment_id, entity_id)
        if existing is not None:
            return self._result(existing)

        hash_value = stable_hash(experiment_id, entity_id)
        candidate = Assignment(
            experiment_id=experiment_id,
            entity_id=entity_id,
            variant=select_variant(hash_value, experiment.variants),
            hash_value=hash_value,
            assigned_at=self.clock(),
        )
        stored, inserted = self.store.insert_assignment_if_absent(candidate)
        if inserted:
            self.events.append(Event(
                experiment_id=experiment_id,
                entity_id=entity_id,
                event_type=ASSIGNMENT_EVENT,
                properties={"variant": stored.variant, "hash_value": stored.hash_value},
                timestamp=stored.assigned_at,
            ))
            logger.debug(f"Assigned {entity_id} -> {stored.variant} in {experiment_id}")
        return self._result(stored)

    def assign_many(self, experiment_id: str, entity_ids: Iterable[str]) -> List[AssignmentResult]:
        """Assign a batch of entities and log the resulting split."""
        results = [self.get_assignment(experiment_id, eid) for eid in entity_ids]
        counts: Dict[str, int] = {}
        for r in results:
            key = r.variant if not r.is_fallback else f"{r.variant} (fallback)"
            counts[key] = counts.get(key, 0) + 1
        logger.info(f"Assignment complete: {len(results)} entities -> {counts}")
        return results

    @staticmethod
    def _result(assignment: Assignment) -> AssignmentResult:
        return AssignmentResult(
            experiment_id=assignment.experiment_id,
            entity_id=assignment.entity_id,
            variant=assignment.variant,
            is_fallback=False,
            hash_value=assignment.hash_value,
            assigned_at=assignment.assigned_at,
        )
