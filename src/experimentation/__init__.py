"""Experimentation engine: deterministic bucketing, event tracking and significance testing."""

from .schema import (
    ExperimentConfig,
    Experiment,
    ExperimentStatus,
    Assignment,
    AssignmentResult,
    Event,
    TrackAck,
    VariantMetrics,
    SignificanceResult,
    Recommendation,
    ExperimentResults,
)
from .errors import (
    ExperimentError,
    ExperimentNotFound,
    InvalidExperimentConfig,
    InvalidVariantWeights,
    ExperimentNotRunnable,
    ExperimentNotStoppable,
)
from .config import EngineSettings
from .hashing import stable_hash
from .assignment import select_variant, assign_entity
from .store import ExperimentStore, InMemoryStore
from .engine import ExperimentEngine
from .report import save_results, render_exec_summary

__all__ = [
    "ExperimentConfig",
    "Experiment",
    "ExperimentStatus",
    "Assignment",
    "AssignmentResult",
    "Event",
    "TrackAck",
    "VariantMetrics",
    "SignificanceResult",
    "Recommendation",
    "ExperimentResults",
    "ExperimentError",
    "ExperimentNotFound",
    "InvalidExperimentConfig",
    "InvalidVariantWeights",
    "ExperimentNotRunnable",
    "ExperimentNotStoppable",
    "EngineSettings",
    "stable_hash",
    "select_variant",
    "assign_entity",
    "ExperimentStore",
    "InMemoryStore",
    "ExperimentEngine",
    "save_results",
    "render_exec_summary",
]
