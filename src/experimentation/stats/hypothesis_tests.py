"""
Frequentist significance testing for conversion experiments.

Two-proportion z-test of every non-control variant against control,
with minimum-sample gating and a confidence interval for the difference.
"""

from typing import Dict, Optional, Tuple

import numpy as np
from scipy import stats

from ..schema import SignificanceResult, VariantMetrics

DEFAULT_ALPHA = 0.05
DEFAULT_MIN_SAMPLE_SIZE = 30


def proportions_z_test(
    n1: int,
    x1: int,
    n2: int,
    x2: int,
    ci_level: float = 0.95,
) -> Tuple[float, Optional[float], Optional[float], Optional[float], Optional[float], Optional[float]]:
    """
    Two-proportion z-test with pooled standard error.

    Args:
        n1: Control sample size
        x1: Control conversions
        n2: Variant sample size
        x2: Variant conversions
        ci_level: Confidence level for the difference

    Returns:
        Tuple of (effect, relative_effect, z, p_value, ci_low, ci_high).
        relative_effect is None when the control rate is 0; z, p_value and
        the interval are None when the test is not computable (an empty
        arm or zero pooled variance).
    """
    p1 = x1 / n1 if n1 > 0 else 0.0
    p2 = x2 / n2 if n2 > 0 else 0.0
    effect = p2 - p1
    relative_effect = effect / p1 if p1 > 0 else None

    if n1 <= 0 or n2 <= 0:
        return effect, relative_effect, None, None, None, None

    p_pool = (x1 + x2) / (n1 + n2)
    se = float(np.sqrt(p_pool * (1 - p_pool) * (1 / n1 + 1 / n2)))
    if se == 0:
        return effect, relative_effect, None, None, None, None

    z = effect / se
    p_value = float(2 * (1 - stats.norm.cdf(abs(z))))

    # unpooled SE for the interval
    se_diff = float(np.sqrt(p1 * (1 - p1) / n1 + p2 * (1 - p2) / n2))
    z_crit = stats.norm.ppf((1 + ci_level) / 2)
    ci_low = effect - z_crit * se_diff
    ci_high = effect + z_crit * se_diff

    return effect, relative_effect, float(z), p_value, float(ci_low), float(ci_high)


def compare_to_control(
    control: VariantMetrics,
    variant: VariantMetrics,
    alpha: float = DEFAULT_ALPHA,
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
) -> SignificanceResult:
    """
    Significance of one variant against control.

    significant requires p < alpha and both arms at or above
    min_sample_size; arms below it are flagged insufficient_sample.
    """
    n_c, x_c = control.total_users, control.conversions
    n_v, x_v = variant.total_users, variant.conversions
    effect, rel, z, p_value, ci_lo, ci_hi = proportions_z_test(n_c, x_c, n_v, x_v, 1 - alpha)

    insufficient = n_c < min_sample_size or n_v < min_sample_size
    not_computable = p_value is None
    significant = (not insufficient) and (not not_computable) and p_value < alpha

    return SignificanceResult(
        variant=variant.variant,
        control=control.variant,
        control_n=n_c,
        variant_n=n_v,
        control_rate=control.conversion_rate,
        variant_rate=variant.conversion_rate,
        effect=effect,
        relative_effect=rel,
        z_score=z,
        p_value=p_value,
        ci_low=ci_lo,
        ci_high=ci_hi,
        significant=bool(significant),
        insufficient_sample=insufficient,
        not_computable=not_computable,
    )


def calculate_significance(
    metrics: Dict[str, VariantMetrics],
    control: str = "control",
    alpha: float = DEFAULT_ALPHA,
    min_sample_size: int = DEFAULT_MIN_SAMPLE_SIZE,
) -> Dict[str, SignificanceResult]:
    """
    Compare every non-control variant in a metrics snapshot to control.

    Returns:
        Dict of variant name -> SignificanceResult, in variant name order
    """
    if control not in metrics:
        raise ValueError(f"Control variant '{control}' missing from metrics")
    ctrl = metrics[control]
    return {
        name: compare_to_control(ctrl, metrics[name], alpha, min_sample_size)
        for name in sorted(metrics)
        if name != control
    }
