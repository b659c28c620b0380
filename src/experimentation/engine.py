"""
Experiment engine: the single entry point callers hold a reference to.

Wires the registry, lifecycle controller, assignment engine, event store,
metrics aggregator, significance calculator and recommendation engine
around one injected store.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .assignment import AssignmentEngine
from .config import EngineSettings
from .event_store import EventStore
from .lifecycle import LifecycleController
from .metrics import MetricsAggregator
from .recommendation import RecommendationEngine
from .registry import ExperimentRegistry
from .schema import (
    AssignmentResult,
    Event,
    Experiment,
    ExperimentConfig,
    ExperimentResults,
    ExperimentStatus,
    TrackAck,
    utcnow,
)
from .stats import calculate_significance, check_srm
from .store import ExperimentStore, InMemoryStore

logger = logging.getLogger(__name__)


class ExperimentEngine:
    """
    A/B testing engine.

    Usage:
        engine = ExperimentEngine(InMemoryStore())
        exp = engine.create_experiment(ExperimentConfig(
            name="Script template", variants={"control": 50, "variantA": 50},
        ))
        engine.start_experiment(exp.id)
        variant = engine.get_assignment(exp.id, "video-123").variant
        engine.track_event(exp.id, "video-123", "conversion")
        results = engine.get_results(exp.id)
    """

    def __init__(
        self,
        store: Optional[ExperimentStore] = None,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.settings = settings or EngineSettings()
        self.clock = clock or utcnow

        self.registry = ExperimentRegistry(self.store)
        self.lifecycle = LifecycleController(self.registry, clock=self.clock)
        self.events = EventStore(self.store, batch_size=self.settings.query_batch_size)
        self.assignments = AssignmentEngine(
            self.registry, self.store, self.events, self.settings, clock=self.clock
        )
        self.aggregator = MetricsAggregator(self.store, self.events, self.settings.query_batch_size)
        self.recommender = RecommendationEngine(
            min_sample_size=self.settings.min_sample_size,
            high_confidence_p=self.settings.high_confidence_p,
            alpha=self.settings.alpha,
            power=self.settings.power,
        )

    # Experiment definitions

    def create_experiment(self, config: ExperimentConfig) -> Experiment:
        return self.registry.create(config)

    def get_experiment(self, experiment_id: str) -> Experiment:
        return self.registry.get(experiment_id)

    def list_experiments(
        self,
        scope_key: Optional[str] = None,
        status: Optional[ExperimentStatus] = None,
    ) -> List[Experiment]:
        return self.registry.list(scope_key=scope_key, status=status)

    # Lifecycle

    def start_experiment(self, experiment_id: str) -> Experiment:
        return self.lifecycle.start(experiment_id)

    def stop_experiment(self, experiment_id: str, reason: str, completed: bool = False) -> Experiment:
        """
        Stop a running experiment and keep a snapshot of its final results.

        The returned experiment carries the snapshot in final_results.
        """
        experiment = self.lifecycle.stop(experiment_id, reason, completed=completed)
        results = self.get_results(experiment_id)
        experiment.final_results = results.to_dict()
        self.registry.replace_if_status(experiment, experiment.status)
        logger.info(f"Final results for {experiment_id}: {results.recommendation.action}")
        return experiment

    # Traffic

    def get_assignment(self, experiment_id: str, entity_id: str) -> AssignmentResult:
        return self.assignments.get_assignment(experiment_id, entity_id)

    def track_event(
        self,
        experiment_id: str,
        entity_id: str,
        event_type: str,
        properties: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> TrackAck:
        """
        Record a custom event (e.g. a conversion).

        Raises:
            ExperimentNotFound: unknown experiment id
            ValueError: empty event type
        """
        if not event_type:
            raise ValueError("event_type is required")
        self.registry.get(experiment_id)
        event = Event(
            experiment_id=experiment_id,
            entity_id=entity_id,
            event_type=event_type,
            properties=dict(properties or {}),
            timestamp=timestamp or self.clock(),
        )
        stored = self.events.append(event)
        return TrackAck(accepted=True, duplicate=not stored)

    # Analysis

    def get_results(self, experiment_id: str) -> ExperimentResults:
        """Metrics, per-variant significance and a recommendation."""
        experiment = self.registry.get(experiment_id)
        alpha = experiment.alpha or self.settings.alpha
        min_n = experiment.min_sample_size or self.settings.min_sample_size
        now = self.clock()

        metrics = self.aggregator.aggregate(experiment)
        significance = calculate_significance(
            metrics,
            control=experiment.control_variant,
            alpha=alpha,
            min_sample_size=min_n,
        )
        srm = check_srm(
            {v: m.total_users for v, m in metrics.items()},
            experiment.variants,
            alpha=self.settings.srm_alpha,
        )
        recommendation = self.recommender.recommend(
            experiment, metrics, significance, now, srm=srm, min_sample_size=min_n, alpha=alpha,
        )
        logger.info(
            f"Results for {experiment_id}: users={sum(m.total_users for m in metrics.values())}, "
            f"action={recommendation.action}"
        )
        return ExperimentResults(
            experiment=experiment,
            metrics=metrics,
            significance=significance,
            recommendation=recommendation,
            srm=srm,
            generated_at=now,
        )
