"""
Experiment data models for the content experimentation engine.

Dataclass schemas for experiment definitions, assignments, events,
per-variant metrics, significance results and recommendations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

ASSIGNMENT_EVENT = "assignment"
DEFAULT_CONTROL = "control"


def utcnow() -> datetime:
    """Timezone-aware UTC now; every stored timestamp uses it."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ExperimentStatus(str, Enum):
    """Experiment lifecycle state."""
    DRAFT = "draft"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExperimentStatus.STOPPED, ExperimentStatus.COMPLETED)


class Confidence(str, Enum):
    """Confidence attached to a recommendation."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class ExperimentConfig:
    """Caller-supplied definition used to create an experiment."""
    name: str
    variants: Dict[str, int]
    scope_key: str = "all"
    primary_metric: str = "conversion"
    secondary_metrics: Set[str] = field(default_factory=set)
    planned_duration_days: int = 30
    control_variant: str = DEFAULT_CONTROL
    description: str = ""
    created_by: str = "system"
    alpha: Optional[float] = None
    min_sample_size: Optional[int] = None
    experiment_id: Optional[str] = None


@dataclass
class Experiment:
    """A persisted experiment definition and its lifecycle metadata."""
    id: str
    name: str
    scope_key: str
    variants: Dict[str, int]
    primary_metric: str
    secondary_metrics: Set[str] = field(default_factory=set)
    status: ExperimentStatus = ExperimentStatus.DRAFT
    created_at: datetime = field(default_factory=utcnow)
    actual_start_date: Optional[datetime] = None
    actual_end_date: Optional[datetime] = None
    stop_reason: Optional[str] = None
    planned_duration_days: int = 30
    control_variant: str = DEFAULT_CONTROL
    description: str = ""
    created_by: str = "system"
    alpha: Optional[float] = None
    min_sample_size: Optional[int] = None
    version: str = "1.0"
    final_results: Optional[Dict[str, Any]] = None

    @property
    def is_running(self) -> bool:
        return self.status == ExperimentStatus.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "name": self.name,
            "scope_key": self.scope_key,
            "variants": dict(self.variants),
            "primary_metric": self.primary_metric,
            "secondary_metrics": sorted(self.secondary_metrics),
            "status": self.status.value,
            "created_at": _iso(self.created_at),
            "actual_start_date": _iso(self.actual_start_date),
            "actual_end_date": _iso(self.actual_end_date),
            "stop_reason": self.stop_reason,
            "planned_duration_days": self.planned_duration_days,
            "control_variant": self.control_variant,
            "description": self.description,
            "created_by": self.created_by,
            "alpha": self.alpha,
            "min_sample_size": self.min_sample_size,
            "version": self.version,
            "final_results": self.final_results,
        }


@dataclass(frozen=True)
class Assignment:
    """Persisted bucket for one entity in one experiment."""
    experiment_id: str
    entity_id: str
    variant: str
    hash_value: float
    assigned_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class AssignmentResult:
    """What get_assignment hands back to callers."""
    experiment_id: str
    entity_id: str
    variant: Optional[str]
    is_fallback: bool
    hash_value: Optional[float] = None
    assigned_at: Optional[datetime] = None


@dataclass(frozen=True)
class Event:
    """Append-only event record (assignment or caller supplied)."""
    experiment_id: str
    entity_id: str
    event_type: str
    properties: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def natural_key(self) -> tuple:
        return (self.experiment_id, self.entity_id, self.event_type, self.timestamp)


@dataclass(frozen=True)
class TrackAck:
    """Acknowledgement for track_event; duplicates are accepted no-ops."""
    accepted: bool
    duplicate: bool = False


@dataclass
class VariantMetrics:
    """Aggregated counts for a single variant."""
    variant: str
    total_users: int = 0
    conversions: int = 0
    total_events: int = 0
    secondary_conversions: Dict[str, int] = field(default_factory=dict)

    @property
    def conversion_rate(self) -> float:
        return self.conversions / self.total_users if self.total_users > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "total_users": self.total_users,
            "conversions": self.conversions,
            "conversion_rate": self.conversion_rate,
            "total_events": self.total_events,
            "secondary_conversions": dict(self.secondary_conversions),
        }


@dataclass
class SignificanceResult:
    """Two-proportion comparison of one variant against control."""
    variant: str
    control: str
    control_n: int
    variant_n: int
    control_rate: float
    variant_rate: float
    effect: float
    relative_effect: Optional[float] = None
    z_score: Optional[float] = None
    p_value: Optional[float] = None
    ci_low: Optional[float] = None
    ci_high: Optional[float] = None
    significant: bool = False
    insufficient_sample: bool = False
    not_computable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "control": self.control,
            "control_n": self.control_n,
            "variant_n": self.variant_n,
            "control_rate": self.control_rate,
            "variant_rate": self.variant_rate,
            "effect": self.effect,
            "relative_effect": self.relative_effect,
            "z_score": self.z_score,
            "p_value": self.p_value,
            "ci_low": self.ci_low,
            "ci_high": self.ci_high,
            "significant": self.significant,
            "insufficient_sample": self.insufficient_sample,
            "not_computable": self.not_computable,
        }


@dataclass
class SRMResult:
    """Sample ratio mismatch check against configured weights."""
    passed: bool
    chi2: float
    p_value: float
    expected: Dict[str, float] = field(default_factory=dict)
    observed: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "chi2": self.chi2,
            "p_value": self.p_value,
            "expected": dict(self.expected),
            "observed": dict(self.observed),
        }


@dataclass
class Recommendation:
    """Action produced by the recommendation engine."""
    action: str
    confidence: Confidence
    winner: Optional[str] = None
    reasons: List[str] = field(default_factory=list)
    next_steps: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "confidence": self.confidence.value,
            "winner": self.winner,
            "reasons": list(self.reasons),
            "next_steps": list(self.next_steps),
        }


@dataclass
class ExperimentResults:
    """Complete get_results payload."""
    experiment: Experiment
    metrics: Dict[str, VariantMetrics]
    significance: Dict[str, SignificanceResult]
    recommendation: Recommendation
    srm: Optional[SRMResult] = None
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "experiment": self.experiment.to_dict(),
            "metrics": {k: v.to_dict() for k, v in self.metrics.items()},
            "significance": {k: v.to_dict() for k, v in self.significance.items()},
            "recommendation": self.recommendation.to_dict(),
            "srm": self.srm.to_dict() if self.srm else None,
            "generated_at": _iso(self.generated_at),
        }
