"""
Storage contract for the three record kinds (Experiment, Assignment, Event)
and a thread-safe in-memory backend.

Backends must provide atomic conditional writes for experiments (insert
if the id is free, replace while the status is unchanged), an atomic
insert-if-absent for assignments and an idempotent append for events keyed on
(experiment_id, entity_id, event_type, timestamp).
"""

import copy
import logging
import threading
from typing import Dict, Iterator, List, Optional, Tuple

from .schema import Assignment, Event, Experiment, ExperimentStatus

logger = logging.getLogger(__name__)


class ExperimentStore:
    """Interface every backend implements."""

    def save_experiment_if_absent(self, experiment: Experiment) -> bool:
        """Store a new experiment. Returns False when the id is taken."""
        raise NotImplementedError

    def update_experiment_if_status(self, experiment: Experiment, expected: ExperimentStatus) -> bool:
        """
        Replace the stored experiment only while its status is still expected.

        Returns False when the stored status differs or the id is unknown.
        """
        raise NotImplementedError

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        raise NotImplementedError

    def list_experiments(self) -> List[Experiment]:
        raise NotImplementedError

    def insert_assignment_if_absent(self, assignment: Assignment) -> Tuple[Assignment, bool]:
        """
        Store the assignment unless one exists for the same pair.

        Returns:
            Tuple of (stored assignment, inserted). When inserted is False the
            returned assignment is the one that was already there.
        """
        raise NotImplementedError

    def get_assignment(self, experiment_id: str, entity_id: str) -> Optional[Assignment]:
        raise NotImplementedError

    def read_assignments(self, experiment_id: str, offset: int, limit: int) -> List[Assignment]:
        raise NotImplementedError

    def append_event(self, event: Event) -> bool:
        """Append unless the natural key exists. Returns False for duplicates."""
        raise NotImplementedError

    def read_events(self, experiment_id: str, offset: int, limit: int) -> List[Event]:
        """One page of an experiment's events in insertion order."""
        raise NotImplementedError

    def count_events(self, experiment_id: str) -> int:
        raise NotImplementedError

    def iter_assignments(self, experiment_id: str, batch_size: int = 1000) -> Iterator[Assignment]:
        offset = 0
        while True:
            page = self.read_assignments(experiment_id, offset, batch_size)
            if not page:
                return
            yield from page
            offset += len(page)


class InMemoryStore(ExperimentStore):
    """
    Process-local backend guarded by a single re-entrant lock.

    Experiments are copied on the way in and out so callers cannot mutate
    stored state without going through the conditional writes.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._experiments: Dict[str, Experiment] = {}
        self._assignments: Dict[str, Dict[str, Assignment]] = {}
        self._assignment_log: Dict[str, List[Assignment]] = {}
        self._events: Dict[str, List[Event]] = {}
        self._event_keys: set = set()

    def save_experiment_if_absent(self, experiment: Experiment) -> bool:
        with self._lock:
            if experiment.id in self._experiments:
                return False
            self._experiments[experiment.id] = copy.deepcopy(experiment)
            return True

    def update_experiment_if_status(self, experiment: Experiment, expected: ExperimentStatus) -> bool:
        with self._lock:
            current = self._experiments.get(experiment.id)
            if current is None or current.status != expected:
                return False
            self._experiments[experiment.id] = copy.deepcopy(experiment)
            return True

    def get_experiment(self, experiment_id: str) -> Optional[Experiment]:
        with self._lock:
            exp = self._experiments.get(experiment_id)
            return copy.deepcopy(exp) if exp is not None else None

    def list_experiments(self) -> List[Experiment]:
        with self._lock:
            return [copy.deepcopy(e) for e in self._experiments.values()]

    def insert_assignment_if_absent(self, assignment: Assignment) -> Tuple[Assignment, bool]:
        with self._lock:
            by_entity = self._assignments.setdefault(assignment.experiment_id, {})
            existing = by_entity.get(assignment.entity_id)
            if existing is not None:
                return existing, False
            by_entity[assignment.entity_id] = assignment
            self._assignment_log.setdefault(assignment.experiment_id, []).append(assignment)
            return assignment, True

    def get_assignment(self, experiment_id: str, entity_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._assignments.get(experiment_id, {}).get(entity_id)

    def read_assignments(self, experiment_id: str, offset: int, limit: int) -> List[Assignment]:
        with self._lock:
            return list(self._assignment_log.get(experiment_id, [])[offset:offset + limit])

    def append_event(self, event: Event) -> bool:
        key = event.natural_key
        with self._lock:
            if key in self._event_keys:
                return False
            self._event_keys.add(key)
            self._events.setdefault(event.experiment_id, []).append(event)
            return True

    def read_events(self, experiment_id: str, offset: int, limit: int) -> List[Event]:
        with self._lock:
            return list(self._events.get(experiment_id, [])[offset:offset + limit])

    def count_events(self, experiment_id: str) -> int:
        with self._lock:
            return len(self._events.get(experiment_id, []))
