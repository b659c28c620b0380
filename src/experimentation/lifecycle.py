"""
Experiment lifecycle state machine.

draft --start--> running --stop--> stopped | completed

Terminal states never transition again; only stop metadata is written
on the way in.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .errors import ExperimentNotRunnable, ExperimentNotStoppable
from .registry import ExperimentRegistry
from .schema import Experiment, ExperimentStatus, utcnow

logger = logging.getLogger(__name__)


def elapsed_days(experiment: Experiment, now: datetime) -> float:
    """Days between start and end (or now while running). 0 for drafts."""
    if experiment.actual_start_date is None:
        return 0.0
    end = experiment.actual_end_date or now
    return (end - experiment.actual_start_date) / timedelta(days=1)


def duration_elapsed(experiment: Experiment, now: datetime) -> bool:
    return elapsed_days(experiment, now) >= experiment.planned_duration_days


class LifecycleController:
    """Owns status transitions; the registry only persists them."""

    def __init__(
        self,
        registry: ExperimentRegistry,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.registry = registry
        self.clock = clock or utcnow

    def start(self, experiment_id: str) -> Experiment:
        experiment = self.registry.get(experiment_id)
        if experiment.status != ExperimentStatus.DRAFT:
            raise ExperimentNotRunnable(experiment_id, experiment.status.value)
        experiment.status = ExperimentStatus.RUNNING
        experiment.actual_start_date = self.clock()
        if not self.registry.replace_if_status(experiment, ExperimentStatus.DRAFT):
            raise ExperimentNotRunnable(experiment_id, self._current_status(experiment_id))
        logger.info(f"Started experiment {experiment_id}")
        return experiment

    def stop(self, experiment_id: str, reason: str, completed: bool = False) -> Experiment:
        """
        Freeze new assignments for a running experiment.

        The experiment ends as completed when the caller says so or when its
        planned duration has already elapsed, stopped otherwise.

        Raises:
            ExperimentNotStoppable: experiment is not running
            ValueError: empty reason
        """
        if not reason or not str(reason).strip():
            raise ValueError("A stop reason is required")
        experiment = self.registry.get(experiment_id)
        if experiment.status != ExperimentStatus.RUNNING:
            raise ExperimentNotStoppable(experiment_id, experiment.status.value)

        now = self.clock()
        if completed or duration_elapsed(experiment, now):
            experiment.status = ExperimentStatus.COMPLETED
        else:
            experiment.status = ExperimentStatus.STOPPED
        experiment.actual_end_date = now
        experiment.stop_reason = reason
        if not self.registry.replace_if_status(experiment, ExperimentStatus.RUNNING):
            raise ExperimentNotStoppable(experiment_id, self._current_status(experiment_id))
        logger.info(
            f"Stopped experiment {experiment_id}: status={experiment.status.value}, reason={reason}"
        )
        return experiment

    def _current_status(self, experiment_id: str) -> str:
        return self.registry.get(experiment_id).status.value
