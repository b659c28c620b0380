"""
Sample Ratio Mismatch (SRM) chi-square test.

Detects if the observed users per variant deviate significantly from the
configured weight table.
"""

from typing import Dict, Tuple

import numpy as np
from scipy import stats

from ..schema import SRMResult


def srm_chi_square(
    observed: Dict[str, int],
    weights: Dict[str, int],
) -> Tuple[float, float]:
    """
    Chi-square goodness of fit of observed counts against weights.

    Variants with zero weight are left out; they must not receive users.

    Returns:
        Tuple of (chi2_statistic, p_value)
    """
    names = sorted(n for n in weights if weights[n] > 0)
    counts = np.array([observed.get(n, 0) for n in names], dtype=float)
    total = counts.sum()
    if total == 0 or len(names) < 2:
        return 0.0, 1.0
    props = np.array([weights[n] for n in names], dtype=float)
    expected = total * props / props.sum()
    chi2, p_value = stats.chisquare(counts, f_exp=expected)
    return float(chi2), float(p_value)


def check_srm(
    observed: Dict[str, int],
    weights: Dict[str, int],
    alpha: float = 0.01,
) -> SRMResult:
    """
    Check for sample ratio mismatch.

    Args:
        observed: Users per variant
        weights: Configured integer weights (sum 100)
        alpha: Significance threshold (default 0.01)
    """
    chi2, p_value = srm_chi_square(observed, weights)
    total = sum(observed.values())
    weight_sum = sum(weights.values()) or 1
    return SRMResult(
        passed=p_value >= alpha,
        chi2=chi2,
        p_value=p_value,
        expected={n: total * w / weight_sum for n, w in weights.items()},
        observed={n: observed.get(n, 0) for n in weights},
    )
