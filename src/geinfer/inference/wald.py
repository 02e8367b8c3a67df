"""Naive Wald interval for cross-validation.

The interval treats the cross-validation losses as independent and so ignores
the correlation between folds; it is anti-conservative and is kept for
comparison with the other methods.
"""

import numpy as np

from ..core.results import GEEstimate, ResampleResult
from ..utils import normal_ci, sample_sd
from .base import Estimator, EstimatorRegistry, delta_transform

CV_KINDS = (
    "cv",
    "repeated_cv",
    "grouped_cv",
    "stratified_cv",
    "spcv_tiles",
    "spcv_block",
    "spcv_coords",
    "spcv_env",
    "spcv_disc",
    "spcv_loo",
)


def per_observation_losses(result: ResampleResult) -> np.ndarray:
    """Pointwise loss of every tested row, averaged over the repeats that tested it"""
    sums = np.zeros(result.n_obs)
    counts = np.zeros(result.n_obs)
    for f in result.fold_results:
        np.add.at(sums, f.test_idx, f.pointwise)
        np.add.at(counts, f.test_idx, 1)
    tested = counts > 0
    return sums[tested] / counts[tested]


@EstimatorRegistry.register
class WaldCVEstimator(Estimator):
    """
    With pointwise losses: mean loss over rows, se = sd / sqrt(n).
    Otherwise: mean fold score, se = sd(scores) / sqrt(number of folds).
    """

    name = "wald"
    scheme_kinds = CV_KINDS
    default_for = CV_KINDS

    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        if result.has_pointwise:
            losses = per_observation_losses(result)
            theta = float(losses.mean())
            se_theta = sample_sd(losses) / np.sqrt(len(losses))
            estimate, se = delta_transform(theta, se_theta, result.transform)
            n = len(losses)
        else:
            scores = result.scores
            estimate = float(scores.mean())
            se = sample_sd(scores) / np.sqrt(len(scores))
            n = len(scores)

        if np.isnan(se):
            return self.make_estimate(
                result, estimate, (float("nan"), float("nan")), se, alpha, ill_defined=True, n=n
            )
        return self.make_estimate(
            result, estimate, normal_ci(estimate, se, alpha), se, alpha, n=n, pointwise=result.has_pointwise
        )
