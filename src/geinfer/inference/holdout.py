"""Holdout interval from the pointwise losses of a single test set."""

from typing import Optional, Tuple

import numpy as np
from ezcolorlog import root_logger as logger

from ..core.results import GEEstimate, ResampleResult
from ..utils import normal_ci
from .base import Estimator, EstimatorRegistry, delta_transform


def weighted_loss_mean_se(losses: np.ndarray, inclusion_probs: Optional[np.ndarray] = None) -> Tuple[float, float]:
    """Mean loss and its standard error.

    With inclusion probabilities the mean is the Horvitz-Thompson (Hajek)
    weighted mean sum(l / pi) / sum(1 / pi); without them this reduces to the
    plain mean with se = sd(l) / sqrt(n).
    """
    n = len(losses)
    w = np.ones(n) if inclusion_probs is None else 1.0 / np.asarray(inclusion_probs, dtype=float)
    theta = float(np.sum(w * losses) / np.sum(w))
    if n < 2:
        return theta, float("nan")
    var = n / (n - 1) * np.sum(w**2 * (losses - theta) ** 2) / np.sum(w) ** 2
    return theta, float(np.sqrt(var))


@EstimatorRegistry.register
class HoldoutEstimator(Estimator):
    """Asymptotic normal interval from the sample variance of the test-set losses"""

    name = "holdout"
    scheme_kinds = ("holdout",)
    default_for = ("holdout",)
    requires_pointwise = True

    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        fold = result.fold_results[0]
        losses = np.asarray(fold.pointwise, dtype=float)
        theta, se_theta = weighted_loss_mean_se(losses, fold.inclusion_probs)

        if result.transform != "identity":
            logger.warning(f"{result.measure_id}: using the delta method for the '{result.transform}' transform")
        estimate, se = delta_transform(theta, se_theta, result.transform)

        if np.isnan(se):
            return self.make_estimate(
                result, estimate, (float("nan"), float("nan")), se, alpha, ill_defined=True, n_test=len(losses)
            )
        return self.make_estimate(
            result,
            estimate,
            normal_ci(estimate, se, alpha),
            se,
            alpha,
            n_test=len(losses),
            weighted=fold.inclusion_probs is not None,
        )
