"""
Ship / hold recommendations from significance results and lifecycle rules.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from .lifecycle import duration_elapsed, elapsed_days
from .schema import (
    Confidence,
    Experiment,
    ExperimentStatus,
    Recommendation,
    SignificanceResult,
    SRMResult,
    VariantMetrics,
)
from .stats.power import sample_size_proportion

logger = logging.getLogger(__name__)

CONTINUE = "continue running"
INCONCLUSIVE = "inconclusive / stop"
NOT_STARTED = "not started"


def ship_action(variant: str) -> str:
    return f"ship {variant}"


class RecommendationEngine:
    def __init__(
        self,
        min_sample_size: int = 30,
        high_confidence_p: float = 0.01,
        alpha: float = 0.05,
        power: float = 0.8,
    ):
        self.min_sample_size = min_sample_size
        self.high_confidence_p = high_confidence_p
        self.alpha = alpha
        self.power = power

    def recommend(
        self,
        experiment: Experiment,
        metrics: Dict[str, VariantMetrics],
        significance: Dict[str, SignificanceResult],
        now: datetime,
        srm: Optional[SRMResult] = None,
        min_sample_size: Optional[int] = None,
        alpha: Optional[float] = None,
    ) -> Recommendation:
        """
        Decide what to do with an experiment.

        1. A significant variant with positive effect ships (smallest
           p-value wins); high confidence below high_confidence_p.
        2. Planned duration reached, or the experiment already ended,
           without one: inconclusive.
        3. Otherwise keep running, listing arms short of the sample floor.
        """
        min_n = min_sample_size or self.min_sample_size
        alpha = alpha or self.alpha
        warnings = self._srm_warnings(srm)

        if experiment.status == ExperimentStatus.DRAFT:
            return Recommendation(
                action=NOT_STARTED,
                confidence=Confidence.LOW,
                reasons=["Experiment has not been started"],
                next_steps=["Start the experiment to collect data"],
            )

        winners = sorted(
            (r for r in significance.values() if r.significant and r.effect > 0),
            key=lambda r: (r.p_value, r.variant),
        )
        if winners:
            best = winners[0]
            confidence = Confidence.HIGH if best.p_value < self.high_confidence_p else Confidence.MEDIUM
            rel = f" ({best.relative_effect:+.1%} relative)" if best.relative_effect is not None else ""
            rec = Recommendation(
                action=ship_action(best.variant),
                confidence=confidence,
                winner=best.variant,
                reasons=[
                    f"{best.variant} converts at {best.variant_rate:.1%} vs "
                    f"{best.control_rate:.1%} for {best.control}{rel}, p={best.p_value:.4f}",
                    *warnings,
                ],
                next_steps=[f"Roll out {best.variant} as the new default"],
            )
            logger.info(f"Recommendation for {experiment.id}: {rec.action} ({confidence.value})")
            return rec

        if duration_elapsed(experiment, now):
            return Recommendation(
                action=INCONCLUSIVE,
                confidence=Confidence.LOW,
                reasons=[
                    f"Planned duration of {experiment.planned_duration_days} days reached "
                    f"({elapsed_days(experiment, now):.1f} elapsed) without a significant positive result",
                    *warnings,
                ],
                next_steps=["Stop the experiment and keep control, or redesign the variants"],
            )

        if experiment.status.is_terminal:
            return Recommendation(
                action=INCONCLUSIVE,
                confidence=Confidence.LOW,
                reasons=[
                    f"Experiment {experiment.status.value} after {elapsed_days(experiment, now):.1f} "
                    f"of {experiment.planned_duration_days} planned days without a significant positive result",
                    *self._sample_reasons(metrics, min_n),
                    *warnings,
                ],
                next_steps=["Keep control, or rerun the experiment with more traffic"],
            )

        reasons = self._sample_reasons(metrics, min_n)
        reasons.extend(self._power_reasons(experiment, significance, alpha))
        if not reasons:
            reasons.append("No variant shows a significant positive effect yet")
        reasons.extend(warnings)
        return Recommendation(
            action=CONTINUE,
            confidence=Confidence.LOW,
            reasons=reasons,
            next_steps=["Continue the experiment to gather more data"],
        )

    @staticmethod
    def _sample_reasons(metrics: Dict[str, VariantMetrics], min_n: int) -> List[str]:
        return [
            f"{name} has {m.total_users} users, below the minimum of {min_n}"
            for name, m in sorted(metrics.items())
            if m.total_users < min_n
        ]

    def _power_reasons(
        self,
        experiment: Experiment,
        significance: Dict[str, SignificanceResult],
        alpha: float,
    ) -> List[str]:
        reasons = []
        for name, r in significance.items():
            if r.significant or r.effect <= 0:
                continue
            needed = sample_size_proportion(r.control_rate, r.variant_rate, alpha, self.power)
            if needed is not None and min(r.control_n, r.variant_n) < needed:
                reasons.append(
                    f"{name} vs {experiment.control_variant}: about {needed} users per arm "
                    f"needed to detect the observed {r.effect:+.1%} difference"
                )
        return reasons

    @staticmethod
    def _srm_warnings(srm: Optional[SRMResult]) -> List[str]:
        if srm is None or srm.passed:
            return []
        return [f"Sample ratio mismatch detected (p={srm.p_value:.4g}); check assignment before trusting results"]
