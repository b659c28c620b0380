"""
Per-variant metric aggregation.

One pass over an experiment's assignments and events. Users are distinct
entities with an assignment event; conversions are distinct users with at
least one event of the primary metric type, however many they logged.
"""

import logging
from typing import Dict, Optional, Set

import pandas as pd

from .event_store import EventStore
from .schema import ASSIGNMENT_EVENT, Experiment, VariantMetrics
from .store import ExperimentStore

logger = logging.getLogger(__name__)


class MetricsAggregator:
    def __init__(self, store: ExperimentStore, events: EventStore, batch_size: int = 1000):
        self.store = store
        self.events = events
        self.batch_size = batch_size

    def aggregate(self, experiment: Experiment) -> Dict[str, VariantMetrics]:
        """
        Build a metrics snapshot for every configured variant.

        Events from entities that were never assigned are ignored.
        """
        variant_of: Dict[str, str] = {
            a.entity_id: a.variant
            for a in self.store.iter_assignments(experiment.id, self.batch_size)
        }
        tracked = {experiment.primary_metric, *experiment.secondary_metrics}

        users: Dict[str, Set[str]] = {v: set() for v in experiment.variants}
        converters: Dict[str, Set[str]] = {m: set() for m in tracked}
        event_counts: Dict[str, int] = {v: 0 for v in experiment.variants}

        for evt in self.events.query(experiment.id, batch_size=self.batch_size):
            variant = variant_of.get(evt.entity_id)
            if variant is None:
                continue
            event_counts[variant] = event_counts.get(variant, 0) + 1
            if evt.event_type == ASSIGNMENT_EVENT:
                users.setdefault(variant, set()).add(evt.entity_id)
            if evt.event_type in converters:
                converters[evt.event_type].add(evt.entity_id)

        snapshot: Dict[str, VariantMetrics] = {}
        for variant in experiment.variants:
            members = users.get(variant, set())
            snapshot[variant] = VariantMetrics(
                variant=variant,
                total_users=len(members),
                conversions=len(members & converters[experiment.primary_metric]),
                total_events=event_counts.get(variant, 0),
                secondary_conversions={
                    m: len(members & converters[m]) for m in sorted(experiment.secondary_metrics)
                },
            )
        logger.debug(
            f"Aggregated {experiment.id}: "
            + ", ".join(f"{v}={m.conversions}/{m.total_users}" for v, m in snapshot.items())
        )
        return snapshot


def metrics_frame(metrics: Dict[str, VariantMetrics], control: Optional[str] = None) -> pd.DataFrame:
    """Tabular view of a snapshot, control first."""
    order = sorted(metrics, key=lambda v: (v != control, v))
    return pd.DataFrame(
        [metrics[v].to_dict() for v in order],
        columns=["variant", "total_users", "conversions", "conversion_rate", "total_events"],
    )
