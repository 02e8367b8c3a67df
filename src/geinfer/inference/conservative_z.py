"""Conservative Z interval for paired subsampling (Nadeau & Bengio, 2003)."""

import numpy as np

from ..core.results import GEEstimate, ResampleResult
from ..utils import normal_ci
from .base import Estimator, EstimatorRegistry


@EstimatorRegistry.register
class ConservativeZEstimator(Estimator):
    """
    The point estimate is the mean score of the full-data subsampling
    iterations. For each outer repeat m, d_m is the difference between the
    mean scores obtained inside the two disjoint halves; the variance

        sigma^2 = sum_m d_m^2 / (2 M)

    estimates the variance at half the sample size, which overestimates the
    variance at full size and makes the interval conservative.
    """

    name = "conservative_z"
    scheme_kinds = ("paired_subsampling",)
    default_for = ("paired_subsampling",)

    def _estimate(self, result: ResampleResult, alpha: float) -> GEEstimate:
        params = result.instantiation.params
        repeats_out = params["repeats_out"]

        full_scores = np.array([f.score for f in result.select(stage="full")])
        estimate = float(full_scores.mean())

        diffs = np.empty(repeats_out)
        for m in range(repeats_out):
            half1 = np.mean([f.score for f in result.select(stage="half", repeat=m, half=1)])
            half2 = np.mean([f.score for f in result.select(stage="half", repeat=m, half=2)])
            diffs[m] = half1 - half2

        sigma2 = float(np.sum(diffs**2) / (2 * repeats_out))
        se = float(np.sqrt(sigma2))
        return self.make_estimate(
            result,
            estimate,
            normal_ci(estimate, se, alpha),
            se,
            alpha,
            repeats_in=params["repeats_in"],
            repeats_out=repeats_out,
        )
