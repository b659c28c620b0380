"""
Power analysis for conversion experiments.

Sample size per arm needed to detect an observed (or planned) difference
between two conversion rates.
"""

from typing import Optional

import numpy as np
from scipy import stats


def sample_size_proportion(
    baseline: float,
    target: float,
    alpha: float = 0.05,
    power: float = 0.8,
) -> Optional[int]:
    """
    Users per arm for a two-sided two-proportion test.

    Args:
        baseline: Control conversion rate
        target: Variant conversion rate to detect
        alpha: Type I error rate
        power: Statistical power (1 - Type II)

    Returns:
        Users needed in each arm, or None when the rates are equal or
        outside (0, 1)
    """
    if not (0 < baseline < 1 and 0 < target < 1) or baseline == target:
        return None

    z_alpha = stats.norm.ppf(1 - alpha / 2)
    z_beta = stats.norm.ppf(power)

    p_bar = (baseline + target) / 2
    effect = abs(target - baseline)
    numerator = (
        z_alpha * np.sqrt(2 * p_bar * (1 - p_bar))
        + z_beta * np.sqrt(baseline * (1 - baseline) + target * (1 - target))
    )
    return int(np.ceil((numerator / effect) ** 2))


def power_proportion(
    baseline: float,
    target: float,
    n_per_arm: int,
    alpha: float = 0.05,
) -> float:
    """
    Achieved power for a given difference and sample size.

    Returns:
        Statistical power (0-1)
    """
    if n_per_arm <= 0:
        return 0.0
    z_alpha = stats.norm.ppf(1 - alpha / 2)
    se = np.sqrt((baseline * (1 - baseline) + target * (1 - target)) / n_per_arm)
    if se == 0:
        return 0.0
    z_crit = abs(target - baseline) / se
    power = 1 - stats.norm.cdf(z_alpha - z_crit) + stats.norm.cdf(-z_alpha - z_crit)
    return float(np.clip(power, 0, 1))
